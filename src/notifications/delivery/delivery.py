"""MessageDelivery aggregate — the audit trail of one order message.

State Machine:
    PENDING → SENT
    PENDING → FAILED

Both outcomes are terminal. A FAILED delivery is logged and left for the
recipient to follow up on; the order itself stays settled.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from notifications.delivery.events import MessageFailed, MessageQueued, MessageSent
from notifications.domain import notifications


class DeliveryStatus(Enum):
    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    DeliveryStatus.PENDING: {DeliveryStatus.SENT, DeliveryStatus.FAILED},
    DeliveryStatus.SENT: set(),  # Terminal
    DeliveryStatus.FAILED: set(),  # Terminal
}


@notifications.aggregate
class MessageDelivery:
    order_id: String(max_length=100)
    message_type: String(required=True, max_length=50)
    template_name: String(max_length=50)
    subject: String(max_length=50)
    recipient_pubkey: String(required=True, max_length=64)
    recipient_role: String(required=True, max_length=20)
    sequence: Integer(required=True, min_value=0)

    body: Text(required=True)

    status: String(choices=DeliveryStatus, default=DeliveryStatus.PENDING.value)
    wrap_event_id: String(max_length=64)
    attempts: Integer(default=0)
    failure_reason: String(max_length=500)

    created_at: DateTime()
    sent_at: DateTime()
    failed_at: DateTime()

    @classmethod
    def create(cls, message, sequence, body):
        """Start tracking ``message`` (already rendered to ``body``) in PENDING status."""
        now = datetime.now(UTC)

        delivery = cls(
            order_id=message.order_id,
            message_type=type(message).__name__,
            template_name=message.template_name,
            subject=message.subject.value,
            recipient_pubkey=message.recipient_pubkey,
            recipient_role=message.role.value,
            sequence=sequence,
            body=body,
            status=DeliveryStatus.PENDING.value,
            attempts=0,
            created_at=now,
        )

        delivery.raise_(
            MessageQueued(
                delivery_id=str(delivery.id),
                order_id=message.order_id,
                message_type=delivery.message_type,
                recipient_role=delivery.recipient_role,
                sequence=sequence,
                queued_at=now,
            )
        )

        return delivery

    def _assert_can_transition(self, target_status):
        current = DeliveryStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def record_attempt(self):
        if DeliveryStatus(self.status) != DeliveryStatus.PENDING:
            raise ValidationError({"status": ["Only pending messages can be attempted"]})
        self.attempts = self.attempts + 1

    def mark_sent(self, wrap_event_id, sent_at=None):
        self._assert_can_transition(DeliveryStatus.SENT)

        now = sent_at or datetime.now(UTC)
        self.status = DeliveryStatus.SENT.value
        self.wrap_event_id = wrap_event_id
        self.sent_at = now

        self.raise_(
            MessageSent(
                delivery_id=str(self.id),
                order_id=self.order_id,
                wrap_event_id=wrap_event_id,
                attempts=self.attempts,
                sent_at=now,
            )
        )

    def mark_failed(self, reason):
        self._assert_can_transition(DeliveryStatus.FAILED)

        now = datetime.now(UTC)
        self.status = DeliveryStatus.FAILED.value
        self.failure_reason = reason[:500]
        self.failed_at = now

        self.raise_(
            MessageFailed(
                delivery_id=str(self.id),
                order_id=self.order_id,
                reason=self.failure_reason,
                attempts=self.attempts,
                failed_at=now,
            )
        )

    @property
    def is_sent(self) -> bool:
        return self.status == DeliveryStatus.SENT.value
