"""Lightning address resolver factory.

Provides get_resolver() / set_resolver() to swap implementations:
- FakeLightningResolver for development and testing
- LnurlResolver for real LUD-16 addresses
"""

from settlement.lightning.fake_resolver import FakeLightningResolver
from settlement.lightning.port import LightningAddressResolver

_current_resolver: LightningAddressResolver | None = None


def get_resolver() -> LightningAddressResolver:
    """Return the current resolver. Defaults to FakeLightningResolver."""
    global _current_resolver
    if _current_resolver is None:
        _current_resolver = FakeLightningResolver()
    return _current_resolver


def set_resolver(resolver: LightningAddressResolver) -> None:
    """Override the active resolver (useful for tests)."""
    global _current_resolver
    _current_resolver = resolver


def reset_resolver() -> None:
    """Reset to default resolver."""
    global _current_resolver
    _current_resolver = None
