"""MintQuote aggregate — a reservation to turn one Lightning payment into proofs.

One quote is created per checkout attempt. Its state only moves forward;
a stale observation (e.g. UNPAID after PAID) is ignored, never applied.

State Machine:
    UNPAID → PAID → ISSUED
    UNPAID → ISSUED (issued by an earlier attempt we did not witness)
"""

from datetime import UTC, datetime
from enum import Enum

import structlog
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, Text

from settlement.domain import settlement
from settlement.quote.events import MintQuoteCreated, MintQuoteIssued, MintQuotePaid

logger = structlog.get_logger(__name__)


class MintQuoteState(Enum):
    UNPAID = "UNPAID"
    PAID = "PAID"
    ISSUED = "ISSUED"


_VALID_TRANSITIONS = {
    MintQuoteState.UNPAID: {MintQuoteState.PAID, MintQuoteState.ISSUED},
    MintQuoteState.PAID: {MintQuoteState.ISSUED},
    MintQuoteState.ISSUED: set(),  # Terminal
}

_STATE_RANK = {
    MintQuoteState.UNPAID: 0,
    MintQuoteState.PAID: 1,
    MintQuoteState.ISSUED: 2,
}


@settlement.aggregate
class MintQuote:
    quote_id = String(required=True, max_length=255)
    payment_request = Text(required=True)
    amount = Integer(required=True, min_value=1)
    unit = String(max_length=10, default="sat")
    mint_url = String(max_length=500)
    status = String(choices=MintQuoteState, default=MintQuoteState.UNPAID.value)
    amount_minted = Integer(default=0)
    recovered = Boolean(default=False)
    created_at = DateTime()
    paid_at = DateTime()
    issued_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, quote_id, payment_request, amount, mint_url=None, unit="sat"):
        now = datetime.now(UTC)
        quote = cls(
            quote_id=quote_id,
            payment_request=payment_request,
            amount=amount,
            unit=unit,
            mint_url=mint_url,
            status=MintQuoteState.UNPAID.value,
            created_at=now,
        )
        quote.raise_(
            MintQuoteCreated(
                mint_quote_id=str(quote.id),
                quote_id=quote_id,
                amount=amount,
                unit=unit,
                mint_url=mint_url,
                created_at=now,
            )
        )
        return quote

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_paid(self) -> bool:
        return MintQuoteState(self.status) in (MintQuoteState.PAID, MintQuoteState.ISSUED)

    @property
    def is_issued(self) -> bool:
        return MintQuoteState(self.status) == MintQuoteState.ISSUED

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target: MintQuoteState) -> None:
        current = MintQuoteState(self.status)
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    def observe(self, reported_state: str) -> bool:
        """Fold a state reported by the mint into the quote.

        Returns True if the quote moved forward. Observations that would move
        it backwards are logged and dropped.
        """
        try:
            reported = MintQuoteState(reported_state)
        except ValueError:
            raise ValidationError({"status": [f"Unknown mint quote state: {reported_state!r}"]}) from None

        current = MintQuoteState(self.status)
        if _STATE_RANK[reported] < _STATE_RANK[current]:
            logger.warning(
                "Ignoring stale mint quote state",
                quote_id=self.quote_id,
                current=current.value,
                reported=reported.value,
            )
            return False
        if reported == current:
            return False

        if reported == MintQuoteState.PAID:
            self.mark_paid()
        else:
            self.mark_issued(amount_minted=0, recovered=True)
        return True

    def mark_paid(self, paid_at=None):
        self._assert_can_transition(MintQuoteState.PAID)

        now = paid_at or datetime.now(UTC)
        self.status = MintQuoteState.PAID.value
        self.paid_at = now

        self.raise_(
            MintQuotePaid(
                mint_quote_id=str(self.id),
                quote_id=self.quote_id,
                amount=self.amount,
                paid_at=now,
            )
        )

    def mark_issued(self, amount_minted, recovered=False, issued_at=None):
        """Record that proofs exist for this quote.

        ``recovered`` means they were issued to an earlier attempt, so this
        process holds none of them.
        """
        self._assert_can_transition(MintQuoteState.ISSUED)

        now = issued_at or datetime.now(UTC)
        self.status = MintQuoteState.ISSUED.value
        self.amount_minted = amount_minted
        self.recovered = recovered
        self.issued_at = now

        self.raise_(
            MintQuoteIssued(
                mint_quote_id=str(self.id),
                quote_id=self.quote_id,
                amount_minted=amount_minted,
                recovered=recovered,
                issued_at=now,
            )
        )
