"""Relay transport port (abstract interface).

Publishing a gift-wrapped event is the only thing the notification context
needs from Nostr relays. Connection handling, relay selection and
acknowledgement semantics belong to the adapter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from notifications.envelope.nostr import NostrEvent


@dataclass(frozen=True)
class PublishResult:
    event_id: str
    relays: tuple[str, ...] = ()


class RelayTransport(ABC):
    """Abstract relay transport."""

    @abstractmethod
    async def publish(self, event: NostrEvent) -> PublishResult:
        """Publish ``event``. Raises RelayError when no relay accepted it."""
        ...
