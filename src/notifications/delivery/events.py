"""Domain events for the MessageDelivery aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from notifications.domain import notifications


@notifications.event(part_of="MessageDelivery")
class MessageQueued:
    """An order message was built and is about to be published."""

    __version__ = 1

    delivery_id: Identifier(required=True)
    order_id: String()
    message_type: String(required=True)
    recipient_role: String(required=True)
    sequence: Integer(required=True)
    queued_at: DateTime(required=True)


@notifications.event(part_of="MessageDelivery")
class MessageSent:
    """The relay accepted the gift-wrapped message."""

    __version__ = 1

    delivery_id: Identifier(required=True)
    order_id: String()
    wrap_event_id: String(required=True, max_length=64)
    attempts: Integer(required=True)
    sent_at: DateTime(required=True)


@notifications.event(part_of="MessageDelivery")
class MessageFailed:
    """Every attempt to publish the message failed."""

    __version__ = 1

    delivery_id: Identifier(required=True)
    order_id: String()
    reason: String(required=True, max_length=500)
    attempts: Integer(required=True)
    failed_at: DateTime(required=True)
