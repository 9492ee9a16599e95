"""SettlementEngine — turn one seller's share of the minted proofs into payouts.

Per seller:
    1. compute donation and seller shares
    2. split the seller share, then the donation share from what is left;
       the remainder goes back to the caller (buyer change, or the input of
       the next seller in a cart)
    3. seller prefers Lightning and has a usable address → melt
         success → Lightning payout, leftover proofs as "overpaid fee change"
         failure → every seller proof back to the seller as one ecash token
       otherwise → the seller share as an ecash token
    4. the donation share as an ecash token for the platform

Split failures raise ``SettlementError`` before anything is sent. When the
donation split fails after the seller split, the error carries the split
proofs in ``unspent``. Lightning failures before proofs reach the mint fall
back to step 3's ecash branch.
"""

from dataclasses import dataclass, field
from enum import Enum

import structlog
from shared.config import get_settings

from settlement.engine.policy import MeltPolicy, Shares, compute_shares
from settlement.errors import SettlementError
from settlement.ledger.ledger import ProofLedger
from settlement.ledger.proofs import ProofSet
from settlement.lightning.port import LightningAddressError, LightningAddressResolver
from settlement.mint.port import MeltQuote, MintError

logger = structlog.get_logger(__name__)


class PayoutChannel(Enum):
    ECASH = "ecash"
    LIGHTNING = "lightning"


@dataclass(frozen=True)
class SellerPayout:
    """What the seller receives.

    For ECASH, ``token`` carries ``amount`` sats of proofs. A Lightning
    attempt that did not go through is reported as ECASH with
    ``fallback=True``. For LIGHTNING, ``amount`` sats were paid to the
    seller's address and any leftover proofs travel in ``change_token``.
    """

    channel: PayoutChannel
    amount: int
    mint_url: str
    token: str | None = None
    proofs: ProofSet = field(default_factory=ProofSet.empty)
    invoice: str | None = None
    preimage: str | None = None
    lightning_address: str | None = None
    fallback: bool = False
    change: ProofSet = field(default_factory=ProofSet.empty)
    change_token: str | None = None

    @property
    def change_amount(self) -> int:
        return self.change.total

    @property
    def payment_reference(self) -> str:
        if self.channel == PayoutChannel.LIGHTNING:
            return self.invoice or ""
        return self.mint_url

    @property
    def payment_proof(self) -> str:
        if self.channel == PayoutChannel.LIGHTNING:
            return self.preimage or ""
        return self.proofs.to_json()


@dataclass(frozen=True)
class DonationPayout:
    amount: int
    token: str
    recipient_pubkey: str


@dataclass(frozen=True)
class SettlementResult:
    shares: Shares
    payout: SellerPayout | None
    donation: DonationPayout | None
    remaining: ProofSet
    fees: int = 0
    warnings: tuple[str, ...] = ()


class SettlementEngine:
    def __init__(
        self,
        ledger: ProofLedger,
        resolver: LightningAddressResolver | None = None,
        melt_policy: MeltPolicy | None = None,
        donation_pubkey: str | None = None,
    ) -> None:
        settings = get_settings()
        self.ledger = ledger
        self.resolver = resolver
        self.melt_policy = melt_policy or MeltPolicy.from_settings(settings)
        self.donation_pubkey = donation_pubkey or settings.donation_pubkey

    async def settle(
        self,
        available: ProofSet,
        total_amount: int,
        donation_percentage: float,
        lightning_address: str | None = None,
    ) -> SettlementResult:
        shares = compute_shares(total_amount, donation_percentage)
        if available.total < shares.total:
            raise SettlementError(f"Order needs {shares.total} sats but only {available.total} sats are available")

        seller_proofs = ProofSet.empty()
        remaining = available
        fees = 0
        if shares.seller > 0:
            seller_split = await self.ledger.split(shares.seller, remaining)
            seller_proofs = seller_split.send
            remaining = seller_split.keep
            fees += seller_split.fee

        donation_proofs = ProofSet.empty()
        if shares.donation > 0:
            try:
                donation_split = await self.ledger.split(shares.donation, remaining)
            except SettlementError as exc:
                # ``available`` is consumed by now; hand back what the seller split produced
                exc.unspent = seller_proofs + remaining
                logger.error(
                    "Donation split failed, returning split proofs",
                    donation_amount=shares.donation,
                    unspent=exc.unspent.total,
                    error=str(exc),
                )
                raise
            donation_proofs = donation_split.send
            remaining = donation_split.keep
            fees += donation_split.fee

        logger.info(
            "Shares split",
            seller_amount=shares.seller,
            donation_amount=shares.donation,
            remaining=remaining.total,
        )

        warnings: list[str] = []
        payout = None
        if not seller_proofs:
            logger.info("Seller share rounds to zero, nothing to pay out", total=shares.total)
        elif self.resolver is not None and self.melt_policy.accepts(lightning_address):
            payout = await self._pay_lightning(seller_proofs, shares.seller, lightning_address, warnings)
        else:
            payout = self._pay_ecash(seller_proofs)

        donation = None
        if donation_proofs:
            donation = DonationPayout(
                amount=donation_proofs.total,
                token=self.ledger.encode(donation_proofs),
                recipient_pubkey=self.donation_pubkey,
            )

        return SettlementResult(
            shares=shares,
            payout=payout,
            donation=donation,
            remaining=remaining,
            fees=fees,
            warnings=tuple(warnings),
        )

    def _pay_ecash(self, proofs: ProofSet, fallback: bool = False, lightning_address: str | None = None) -> SellerPayout:
        return SellerPayout(
            channel=PayoutChannel.ECASH,
            amount=proofs.total,
            mint_url=self.ledger.mint_url,
            token=self.ledger.encode(proofs),
            proofs=proofs,
            lightning_address=lightning_address,
            fallback=fallback,
        )

    async def _pay_lightning(
        self,
        seller_proofs: ProofSet,
        seller_amount: int,
        lightning_address: str,
        warnings: list[str],
    ) -> SellerPayout:
        target = self.melt_policy.target_amount(seller_amount)
        if target < 1:
            logger.info("Seller share too small to melt, paying in ecash", seller_amount=seller_amount)
            return self._pay_ecash(seller_proofs)

        # Nothing has been handed to the mint yet; any failure here keeps the proofs intact
        try:
            invoice = await self.resolver.request_invoice(lightning_address, target)
            melt_quote = await self.ledger.wallet.create_melt_quote(invoice.pr)
            melt_inputs, melt_keep = await self._cover_melt(melt_quote, seller_proofs)
        except (LightningAddressError, MintError, SettlementError) as exc:
            logger.warning(
                "Lightning payout unavailable, paying in ecash",
                lightning_address=lightning_address,
                error=str(exc),
            )
            warnings.append(f"Lightning payout to {lightning_address} failed, sent ecash instead")
            return self._pay_ecash(seller_proofs, fallback=True, lightning_address=lightning_address)

        try:
            result = await self.ledger.wallet.melt_proofs(melt_quote, melt_inputs)
        except MintError as exc:
            logger.error("Melt request failed", quote=melt_quote.quote, error=str(exc))
            result = None

        if result is None or not result.paid:
            unused = melt_keep + melt_inputs + (result.change if result is not None else ProofSet.empty())
            logger.warning("Melt not confirmed, returning proofs to seller", quote=melt_quote.quote, amount=unused.total)
            warnings.append(f"Lightning payout to {lightning_address} failed, sent ecash instead")
            return self._pay_ecash(unused, fallback=True, lightning_address=lightning_address)

        self.ledger.consume(melt_inputs)
        change = melt_keep + result.change
        logger.info(
            "Seller paid over Lightning",
            lightning_address=lightning_address,
            amount=melt_quote.amount,
            change=change.total,
        )
        return SellerPayout(
            channel=PayoutChannel.LIGHTNING,
            amount=melt_quote.amount,
            mint_url=self.ledger.mint_url,
            proofs=melt_inputs,
            invoice=melt_quote.request,
            preimage=result.preimage,
            lightning_address=lightning_address,
            change=change,
            change_token=self.ledger.encode(change) if change.total >= 1 else None,
        )

    async def _cover_melt(self, melt_quote: MeltQuote, seller_proofs: ProofSet) -> tuple[ProofSet, ProofSet]:
        """Proofs worth exactly what the melt needs, plus whatever is left over."""
        required = melt_quote.total_required
        if seller_proofs.total == required:
            return seller_proofs, ProofSet.empty()
        split = await self.ledger.split(required, seller_proofs)
        return split.send, split.keep
