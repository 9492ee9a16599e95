"""Relay transport factory.

Provides get_relay() / set_relay() to swap implementations:
- FakeRelay for development and testing
- a production adapter publishing to Nostr relays
"""

from notifications.relay.fake_relay import FakeRelay
from notifications.relay.port import RelayTransport

_current_relay: RelayTransport | None = None


def get_relay() -> RelayTransport:
    """Return the current relay transport. Defaults to FakeRelay."""
    global _current_relay
    if _current_relay is None:
        _current_relay = FakeRelay()
    return _current_relay


def set_relay(relay: RelayTransport) -> None:
    """Override the active relay transport (useful for tests)."""
    global _current_relay
    _current_relay = relay


def reset_relay() -> None:
    """Reset to default relay transport."""
    global _current_relay
    _current_relay = None
