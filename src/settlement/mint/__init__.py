"""Mint wallet factory.

Provides get_mint() / set_mint() to swap implementations:
- FakeMint for development and testing
- a production adapter wrapping a real Cashu wallet
"""

from settlement.mint.fake_adapter import FakeMint
from settlement.mint.port import MintWallet

_current_mint: MintWallet | None = None


def get_mint() -> MintWallet:
    """Return the current mint wallet. Defaults to FakeMint."""
    global _current_mint
    if _current_mint is None:
        _current_mint = FakeMint()
    return _current_mint


def set_mint(mint: MintWallet) -> None:
    """Override the active mint wallet (useful for tests)."""
    global _current_mint
    _current_mint = mint


def reset_mint() -> None:
    """Reset to default mint wallet."""
    global _current_mint
    _current_mint = None
