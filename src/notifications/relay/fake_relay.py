"""Fake relay transport — records published events for testing.

Can be configured to reject a number of publishes before accepting, or to
reject every publish.
"""

from notifications.envelope.nostr import NostrEvent
from notifications.errors import RelayError
from notifications.relay.port import PublishResult, RelayTransport

FAKE_RELAY_URL = "wss://relay.fake.test"


class FakeRelay(RelayTransport):
    def __init__(self) -> None:
        self.published: list[NostrEvent] = []
        self.attempts: int = 0
        self.failures_before_success: int = 0
        self.should_fail: bool = False
        self.failure_reason: str = "relay rejected event"

    def configure(
        self,
        should_fail: bool = False,
        failures_before_success: int = 0,
        failure_reason: str = "relay rejected event",
    ) -> None:
        """Configure the fake relay behavior for testing."""
        self.should_fail = should_fail
        self.failures_before_success = failures_before_success
        self.failure_reason = failure_reason

    async def publish(self, event: NostrEvent) -> PublishResult:
        self.attempts += 1

        if self.should_fail:
            raise RelayError(self.failure_reason)
        if self.failures_before_success > 0:
            self.failures_before_success -= 1
            raise RelayError(self.failure_reason)

        self.published.append(event)
        return PublishResult(event_id=event.id, relays=(FAKE_RELAY_URL,))

    def events_for(self, recipient_pubkey: str) -> list[NostrEvent]:
        return [event for event in self.published if recipient_pubkey in event.tag_values("p")]

    def reset(self) -> None:
        """Clear published events (useful between tests)."""
        self.published.clear()
        self.attempts = 0
        self.configure()
