"""ProofLedger — fee-inclusive splits over an explicit, monotonically drained proof set.

Each ``split`` consumes its whole input and returns a fresh ``keep`` set; the
caller threads that ``keep`` into the next split (seller share, then the
donation share, then the melt amount). Proofs consumed once are remembered
and refused if offered again.
"""

from dataclasses import dataclass

import structlog

from settlement.errors import InsufficientProofs, ProofsAlreadySpent, SettlementError, ValueConservationError
from settlement.ledger.proofs import ProofSet
from settlement.ledger.tokens import encode_token
from settlement.mint.port import MintError, MintWallet

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Split:
    """Result of one split: ``send`` is worth exactly the requested amount."""

    send: ProofSet
    keep: ProofSet
    fee: int


class ProofLedger:
    def __init__(self, wallet: MintWallet, token_version: int = 4) -> None:
        self.wallet = wallet
        self.token_version = token_version
        self._consumed: set[str] = set()

    @property
    def mint_url(self) -> str:
        return self.wallet.mint_url

    async def split(self, amount: int, available: ProofSet, include_fees: bool = True) -> Split:
        """Split ``available`` into ``send`` (exactly ``amount``) and ``keep``.

        Value conservation holds exactly: ``send + keep + fee == available``.
        """
        if amount < 1:
            raise ValueError(f"Split amount must be positive, got {amount}")
        if available.secrets & self._consumed:
            raise ProofsAlreadySpent("Proofs were already consumed by an earlier split")
        if available.total < amount:
            raise InsufficientProofs(needed=amount, available=available.total)

        try:
            result = await self.wallet.send(amount, available, include_fees=include_fees)
        except MintError as exc:
            raise SettlementError(f"Mint rejected split of {amount} sats: {exc.detail}") from exc

        fee = available.total - result.send.total - result.keep.total
        if result.send.total != amount or fee < 0:
            raise ValueConservationError(
                f"Split of {available.total} sats returned send={result.send.total}, "
                f"keep={result.keep.total} for a requested {amount} sats"
            )

        self._consumed.update(available.secrets)
        logger.debug(
            "Proofs split",
            amount=amount,
            inputs=available.total,
            kept=result.keep.total,
            fee=fee,
        )
        return Split(send=result.send, keep=result.keep, fee=fee)

    def consume(self, proofs: ProofSet) -> None:
        """Record proofs spent outside a split (a successful melt)."""
        self._consumed.update(proofs.secrets)

    def is_consumed(self, proofs: ProofSet) -> bool:
        return bool(proofs.secrets & self._consumed)

    def encode(self, proofs: ProofSet, memo: str | None = None) -> str:
        """Serialise proofs from this ledger's mint into a token string."""
        return encode_token(self.mint_url, proofs, memo=memo, version=self.token_version)
