"""Mint wallet port (abstract interface).

Defines the contract the settlement context needs from a Cashu mint wallet.
Blind-signature cryptography lives entirely behind this port: adapters hand
back finished proofs. This enables swapping between FakeMint (dev/test) and a
production adapter wrapping a real Cashu wallet without changing any domain
or application code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from settlement.ledger.proofs import ProofSet


class MintError(Exception):
    """The mint rejected a request."""

    def __init__(self, detail: str, code: int | None = None):
        super().__init__(detail)
        self.detail = detail
        self.code = code


class QuoteAlreadyIssued(MintError):
    """Proofs for this mint quote were already issued (possibly to an earlier attempt)."""

    def __init__(self, detail: str = "quote already issued", code: int | None = 20002):
        super().__init__(detail, code)


class MintTransportError(MintError):
    """The mint could not be reached or answered with something unparseable.

    Usually a misconfigured mint URL; waiting does not help.
    """


@dataclass(frozen=True)
class MintQuoteResponse:
    quote: str
    request: str
    amount: int
    state: str
    unit: str = "sat"
    expiry: int | None = None


@dataclass(frozen=True)
class MeltQuote:
    quote: str
    request: str
    amount: int
    fee_reserve: int
    state: str = "UNPAID"

    @property
    def total_required(self) -> int:
        """Proof value the mint wants in order to attempt the payment."""
        return self.amount + self.fee_reserve


@dataclass(frozen=True)
class MeltResult:
    """Outcome of a melt.

    ``quote`` is None when the mint did not confirm the payment; in that case
    the proofs handed to the mint must be treated as unspent by the caller.
    """

    quote: MeltQuote | None
    change: ProofSet = field(default_factory=ProofSet.empty)
    preimage: str | None = None

    @property
    def paid(self) -> bool:
        return self.quote is not None


@dataclass(frozen=True)
class Keyset:
    id: str
    unit: str = "sat"
    active: bool = True
    input_fee_ppk: int = 0


@dataclass(frozen=True)
class SendResult:
    keep: ProofSet
    send: ProofSet


class MintWallet(ABC):
    """Abstract mint wallet interface."""

    @property
    @abstractmethod
    def mint_url(self) -> str:
        """URL of the mint this wallet talks to."""
        ...

    @abstractmethod
    async def create_mint_quote(self, amount: int, unit: str = "sat") -> MintQuoteResponse:
        """Request a Lightning invoice that, once paid, lets us mint ``amount``."""
        ...

    @abstractmethod
    async def check_mint_quote(self, quote_id: str) -> MintQuoteResponse:
        """Fetch the current state of a mint quote."""
        ...

    @abstractmethod
    async def mint_proofs(self, amount: int, quote_id: str) -> ProofSet:
        """Mint proofs for a paid quote. Raises QuoteAlreadyIssued on replays."""
        ...

    @abstractmethod
    async def send(self, amount: int, proofs: ProofSet, include_fees: bool = True) -> SendResult:
        """Swap ``proofs`` into a ``send`` set worth exactly ``amount`` and a ``keep`` set.

        With ``include_fees`` the mint's input fee is paid out of ``keep``.
        """
        ...

    @abstractmethod
    async def create_melt_quote(self, invoice: str) -> MeltQuote:
        """Ask the mint what it costs to pay a Lightning invoice."""
        ...

    @abstractmethod
    async def melt_proofs(self, quote: MeltQuote, proofs: ProofSet) -> MeltResult:
        """Pay the melt quote's invoice with ``proofs``."""
        ...

    @abstractmethod
    async def get_keysets(self) -> list[Keyset]:
        """Keysets the mint currently recognises."""
        ...
