"""QuoteLifecycle — create a mint quote and wait for it to turn into proofs.

Polling outcomes:
    UNPAID            → wait ``interval`` and poll again, up to ``max_attempts``
    PAID              → mint proofs (MINTED)
    PAID + "issued"   → ALREADY_ISSUED warning, no second mint attempt
    ISSUED            → ALREADY_ISSUED warning
    transport error   → QuoteTransportError at once, no retry
    still UNPAID      → QuoteTimeout after ``max_attempts`` polls
    cancelled         → PaymentCancelled; the quote itself is left alone

ALREADY_ISSUED is a settled payment whose proofs this process never held
(the connection dropped mid-flow on an earlier attempt). Replaying
``await_payment`` on a quote already ISSUED never calls the mint again.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog
from protean.exceptions import ValidationError
from shared.config import get_settings
from shared.retry import RetriesExhausted, RetryPolicy, Sleep, attempt

from settlement.ledger.proofs import ProofSet
from settlement.mint.port import MintError, MintTransportError, MintWallet, QuoteAlreadyIssued
from settlement.quote.quote import MintQuote

logger = structlog.get_logger(__name__)

ALREADY_ISSUED_WARNING = "Payment was received but your connection dropped! Please check your wallet balance."


class QuoteLifecycleError(Exception):
    """Base class for failures while waiting on a mint quote."""


class QuoteTimeout(QuoteLifecycleError):
    """The quote stayed UNPAID for every allowed poll. A payment may still land later."""

    def __init__(self, quote_id: str, attempts: int):
        super().__init__(f"Payment timed out for quote {quote_id} after {attempts} checks")
        self.quote_id = quote_id
        self.attempts = attempts


class QuoteTransportError(QuoteLifecycleError):
    """The mint's answer could not be used (unreachable, malformed). Not retried."""


class PaymentCancelled(QuoteLifecycleError):
    """The buyer left the checkout before the payment was confirmed."""


class PaymentStatus(Enum):
    MINTED = "minted"
    ALREADY_ISSUED = "already_issued"


@dataclass(frozen=True)
class PaymentOutcome:
    quote: MintQuote
    status: PaymentStatus
    proofs: ProofSet = field(default_factory=ProofSet.empty)
    warning: str | None = None

    @property
    def minted(self) -> bool:
        return self.status == PaymentStatus.MINTED


class _StillUnpaid(Exception):
    """Internal signal: poll again."""


def _is_already_issued(error: MintError) -> bool:
    return isinstance(error, QuoteAlreadyIssued) or "issued" in str(error).lower()


class QuoteLifecycle:
    def __init__(self, wallet: MintWallet, policy: RetryPolicy | None = None, sleep: Sleep = asyncio.sleep) -> None:
        if policy is None:
            settings = get_settings()
            policy = RetryPolicy.polling(settings.poll_max_attempts, settings.poll_interval)
        self.wallet = wallet
        self.policy = policy
        self._sleep = sleep

    async def create_quote(self, amount: int, unit: str = "sat") -> MintQuote:
        """Ask the mint for an invoice worth ``amount``. No side effects beyond the mint call."""
        if amount < 1:
            raise ValidationError({"amount": ["Payment amount must be greater than 0 sats"]})

        try:
            response = await self.wallet.create_mint_quote(amount, unit)
        except MintTransportError as exc:
            raise QuoteTransportError(f"Failed to create mint quote: {exc}") from exc

        quote = MintQuote.create(
            quote_id=response.quote,
            payment_request=response.request,
            amount=amount,
            mint_url=self.wallet.mint_url,
            unit=unit,
        )
        logger.info("Mint quote created", quote_id=quote.quote_id, amount=amount)
        return quote

    async def await_payment(
        self,
        quote: MintQuote,
        policy: RetryPolicy | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PaymentOutcome:
        """Poll until the quote is paid and minted, or until the policy gives up."""
        if quote.is_issued:
            logger.info("Mint quote already settled, not polling again", quote_id=quote.quote_id)
            return self._already_issued(quote)

        async def poll(attempt_number: int) -> PaymentOutcome:
            self._raise_if_cancelled(cancel, quote)

            try:
                response = await self.wallet.check_mint_quote(quote.quote_id)
            except MintTransportError as exc:
                raise QuoteTransportError(f"Failed to validate invoice: {exc}") from exc

            try:
                quote.observe(response.state)
            except ValidationError as exc:
                raise QuoteTransportError(f"Mint returned an unusable quote state: {response.state!r}") from exc

            if quote.is_issued:
                return self._already_issued(quote)
            if not quote.is_paid:
                raise _StillUnpaid(f"check {attempt_number}")

            return await self._mint(quote)

        async def sleep(delay: float) -> None:
            await self._sleep(delay)
            self._raise_if_cancelled(cancel, quote)

        try:
            return await attempt(
                poll,
                policy or self.policy,
                retry_on=(_StillUnpaid,),
                sleep=sleep,
                operation_name="mint_quote_poll",
            )
        except RetriesExhausted as exc:
            logger.warning("Mint quote payment timed out", quote_id=quote.quote_id, attempts=exc.attempts)
            raise QuoteTimeout(quote.quote_id, exc.attempts) from exc

    async def _mint(self, quote: MintQuote) -> PaymentOutcome:
        try:
            proofs = await self.wallet.mint_proofs(quote.amount, quote.quote_id)
        except MintError as exc:
            if _is_already_issued(exc):
                quote.mark_issued(amount_minted=0, recovered=True)
                return self._already_issued(quote)
            if isinstance(exc, MintTransportError):
                raise QuoteTransportError(f"Failed to mint proofs: {exc}") from exc
            raise

        if not proofs:
            raise QuoteLifecycleError(f"Mint returned no proofs for paid quote {quote.quote_id}")

        quote.mark_issued(amount_minted=proofs.total)
        logger.info("Proofs minted", quote_id=quote.quote_id, amount=proofs.total, count=len(proofs))
        return PaymentOutcome(quote=quote, status=PaymentStatus.MINTED, proofs=proofs)

    def _already_issued(self, quote: MintQuote) -> PaymentOutcome:
        logger.warning("Mint quote was issued by an earlier attempt", quote_id=quote.quote_id)
        return PaymentOutcome(quote=quote, status=PaymentStatus.ALREADY_ISSUED, warning=ALREADY_ISSUED_WARNING)

    @staticmethod
    def _raise_if_cancelled(cancel: asyncio.Event | None, quote: MintQuote) -> None:
        if cancel is not None and cancel.is_set():
            logger.info("Stopped waiting for payment", quote_id=quote.quote_id)
            raise PaymentCancelled(f"Checkout cancelled while waiting on quote {quote.quote_id}")
