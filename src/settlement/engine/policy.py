"""Share computation and the Lightning payout policy."""

import math
from dataclasses import dataclass, field

from protean.exceptions import ValidationError
from shared.config import CheckoutSettings

from settlement.lightning.port import LightningAddressError, parse_lightning_address


@dataclass(frozen=True)
class Shares:
    total: int
    donation: int
    seller: int
    percentage: float


def compute_shares(total: int, donation_percentage: float) -> Shares:
    """Split ``total`` between the platform donation and the seller.

    The donation is rounded up, so the seller receives ``total - donation``
    and the two always add up to the total.
    """
    if total < 1:
        raise ValidationError({"total_amount": ["Total must be at least 1 sat"]})
    if not 0 <= donation_percentage <= 100:
        raise ValidationError({"donation_percentage": ["Donation percentage must be between 0 and 100"]})

    donation = math.ceil(total * donation_percentage / 100)
    return Shares(total=total, donation=donation, seller=total - donation, percentage=donation_percentage)


@dataclass(frozen=True)
class MeltPolicy:
    """When and how much to melt for a seller who prefers Lightning.

    The melt target leaves head-room for the Lightning routing fee reserve:
    ``floor(seller_amount * fee_ratio - fee_offset)``.
    """

    fee_ratio: float = 0.98
    fee_offset: int = 2
    excluded_domains: tuple[str, ...] = field(default_factory=lambda: ("zeuspay.com",))

    @classmethod
    def from_settings(cls, settings: CheckoutSettings) -> "MeltPolicy":
        return cls(
            fee_ratio=settings.melt_fee_ratio,
            fee_offset=settings.melt_fee_offset,
            excluded_domains=tuple(settings.excluded_ln_domains),
        )

    def target_amount(self, seller_amount: int) -> int:
        return math.floor(seller_amount * self.fee_ratio - self.fee_offset)

    def accepts(self, lightning_address: str | None) -> bool:
        """A usable address: well formed and not hosted by an excluded provider."""
        if not lightning_address:
            return False
        try:
            _, domain = parse_lightning_address(lightning_address)
        except LightningAddressError:
            return False
        return domain not in {excluded.lower() for excluded in self.excluded_domains}
