"""NotificationSequencer — deliver an order's messages in a fixed order.

    1. payment            (seller)
    2. overpaid fee change (seller)
    3. donation           (platform)
    4. additional info    (seller)
    5. herdshare agreement (buyer)
    6. shipping / contact / pickup (seller)
    7. receipt            (buyer)

Each message is sealed and gift-wrapped with the order's ephemeral keys for
its recipient role, then published with bounded retries. A message that
still fails is recorded as FAILED and the sequence moves on: by the time
messages go out the payment has settled and must not be undone.
"""

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

import structlog
from shared.config import get_settings
from shared.retry import RetriesExhausted, RetryPolicy, Sleep, attempt

from notifications.delivery.delivery import MessageDelivery
from notifications.envelope.gift_wrap import EncryptedEnvelope, Signer, create_rumor, gift_wrap
from notifications.envelope.keys import EphemeralKeyring
from notifications.errors import EnvelopeError
from notifications.message.message import (
    DonationMessage,
    HerdshareMessage,
    InfoKind,
    InfoMessage,
    Message,
    PaymentMessage,
    PaymentPurpose,
    ReceiptMessage,
)
from notifications.relay.port import RelayTransport

logger = structlog.get_logger(__name__)


def message_rank(message: Message) -> int:
    if isinstance(message, PaymentMessage):
        return 1 if message.purpose == PaymentPurpose.FEE_CHANGE else 0
    if isinstance(message, DonationMessage):
        return 2
    if isinstance(message, InfoMessage):
        return 3 if message.kind == InfoKind.ADDITIONAL_INFO else 5
    if isinstance(message, HerdshareMessage):
        return 4
    if isinstance(message, ReceiptMessage):
        return 6
    raise TypeError(f"Not an order message: {message!r}")


def order_messages(messages: Iterable[Message]) -> list[Message]:
    """Messages in delivery order. Messages of the same rank keep their relative order."""
    return sorted(messages, key=message_rank)


@dataclass(frozen=True)
class DeliveryReport:
    deliveries: tuple[MessageDelivery, ...]

    @property
    def sent(self) -> list[MessageDelivery]:
        return [delivery for delivery in self.deliveries if delivery.is_sent]

    @property
    def failed(self) -> list[MessageDelivery]:
        return [delivery for delivery in self.deliveries if not delivery.is_sent]

    @property
    def all_sent(self) -> bool:
        return not self.failed


class NotificationSequencer:
    def __init__(
        self,
        signer: Signer,
        relay: RelayTransport,
        policy: RetryPolicy | None = None,
        pacing_delay: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        settings = get_settings()
        self.signer = signer
        self.relay = relay
        self.policy = policy or RetryPolicy.exponential(settings.send_max_attempts, settings.send_base_delay)
        self.pacing_delay = settings.pacing_delay if pacing_delay is None else pacing_delay
        self._sleep = sleep

    async def deliver(self, messages: Iterable[Message], keyring: EphemeralKeyring) -> DeliveryReport:
        deliveries = []
        for sequence, message in enumerate(order_messages(messages)):
            if sequence > 0 and self.pacing_delay > 0:
                await self._sleep(self.pacing_delay)
            deliveries.append(await self._deliver_one(message, sequence, keyring))

        report = DeliveryReport(deliveries=tuple(deliveries))
        logger.info("Order messages delivered", sent=len(report.sent), failed=len(report.failed))
        return report

    async def _deliver_one(self, message: Message, sequence: int, keyring: EphemeralKeyring) -> MessageDelivery:
        body = message.render()
        delivery = MessageDelivery.create(message, sequence, body)
        log = logger.bind(message_type=delivery.message_type, recipient_role=delivery.recipient_role, sequence=sequence)

        try:
            envelope = await self._envelope(message, body, keyring)
        except EnvelopeError as exc:
            log.error("Could not encrypt order message", error=str(exc))
            delivery.mark_failed(f"Encryption failed: {exc}")
            return delivery
        except Exception as exc:
            # Signers may be remote; once the order is paid no signer failure stops the sequence
            log.exception("Signer failed while sealing order message")
            delivery.mark_failed(f"Signing failed: {type(exc).__name__}: {exc}")
            return delivery

        async def publish(attempt_number: int):
            delivery.record_attempt()
            return await self.relay.publish(envelope.wrap)

        try:
            await attempt(
                publish,
                self.policy,
                retry_on=(Exception,),
                sleep=self._sleep,
                operation_name="publish_order_message",
            )
        except RetriesExhausted as exc:
            log.error("Order message not delivered", attempts=exc.attempts, error=str(exc.last_error))
            delivery.mark_failed(str(exc.last_error) or type(exc.last_error).__name__)
            return delivery

        delivery.mark_sent(envelope.wrap.id)
        log.debug("Order message sent", attempts=delivery.attempts, wrap_event_id=envelope.wrap.id)
        return delivery

    async def _envelope(self, message: Message, body: str, keyring: EphemeralKeyring) -> EncryptedEnvelope:
        keys = keyring.for_role(message.role.value)
        rumor = create_rumor(keys.sender.public_key, message.recipient_pubkey, body, tags=message.tags())
        return await gift_wrap(self.signer, rumor, keys.receiver, message.recipient_pubkey)
