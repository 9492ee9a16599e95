"""Checkout settings, read from the environment.

Every knob has a production default so the domains work without any
configuration; tests override individual values with ``dataclasses.replace``.
"""

import os
from dataclasses import dataclass, field

DEFAULT_MINT_URL = "https://mint.minibits.cash/Bitcoin"
DEFAULT_DONATION_PUBKEY = "a37118a4888e02d28e8767c08caaf73b49abdac391ad7ff18a304891e416dc33"
DEFAULT_DONATION_PERCENTAGE = 2.1


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _env_list(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class CheckoutSettings:
    mint_url: str = DEFAULT_MINT_URL
    donation_pubkey: str = DEFAULT_DONATION_PUBKEY
    donation_percentage: float = DEFAULT_DONATION_PERCENTAGE

    # Mint quote polling: ~42 * 2.1s, a soft timeout of about 1.5 minutes
    poll_interval: float = 2.1
    poll_max_attempts: int = 42

    # Message delivery
    send_max_attempts: int = 3
    send_base_delay: float = 1.0
    pacing_delay: float = 0.5

    # Lightning payout fee estimate: floor(seller_amount * ratio - offset)
    melt_fee_ratio: float = 0.98
    melt_fee_offset: int = 2
    excluded_ln_domains: tuple[str, ...] = field(default_factory=lambda: ("zeuspay.com",))

    token_version: int = 4
    marketplace_name: str = "milk.market"

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        defaults = cls()
        return cls(
            mint_url=os.getenv("CHECKOUT_MINT_URL", defaults.mint_url),
            donation_pubkey=os.getenv("CHECKOUT_DONATION_PUBKEY", defaults.donation_pubkey),
            donation_percentage=_env_float("CHECKOUT_DONATION_PERCENTAGE", defaults.donation_percentage),
            poll_interval=_env_float("CHECKOUT_POLL_INTERVAL", defaults.poll_interval),
            poll_max_attempts=_env_int("CHECKOUT_POLL_MAX_ATTEMPTS", defaults.poll_max_attempts),
            send_max_attempts=_env_int("CHECKOUT_SEND_MAX_ATTEMPTS", defaults.send_max_attempts),
            send_base_delay=_env_float("CHECKOUT_SEND_BASE_DELAY", defaults.send_base_delay),
            pacing_delay=_env_float("CHECKOUT_PACING_DELAY", defaults.pacing_delay),
            melt_fee_ratio=_env_float("CHECKOUT_MELT_FEE_RATIO", defaults.melt_fee_ratio),
            melt_fee_offset=_env_int("CHECKOUT_MELT_FEE_OFFSET", defaults.melt_fee_offset),
            excluded_ln_domains=_env_list("CHECKOUT_EXCLUDED_LN_DOMAINS", defaults.excluded_ln_domains),
            token_version=_env_int("CHECKOUT_TOKEN_VERSION", defaults.token_version),
            marketplace_name=os.getenv("CHECKOUT_MARKETPLACE_NAME", defaults.marketplace_name),
        )


_current_settings: CheckoutSettings | None = None


def get_settings() -> CheckoutSettings:
    """Return the active settings, loading them from the environment once."""
    global _current_settings
    if _current_settings is None:
        _current_settings = CheckoutSettings.from_env()
    return _current_settings


def set_settings(settings: CheckoutSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _current_settings
    _current_settings = settings


def reset_settings() -> None:
    global _current_settings
    _current_settings = None
