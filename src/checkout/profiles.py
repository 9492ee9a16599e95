"""Seller profile lookup port and an in-memory implementation.

A seller's profile decides how they get paid: the donation percentage they
pledged to the platform, whether they prefer ecash or Lightning, and their
Lightning address.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from shared.config import get_settings


@dataclass(frozen=True)
class SellerProfile:
    pubkey: str
    donation_percentage: float
    payment_preference: str = "ecash"
    lud16: str | None = None

    @classmethod
    def default(cls, pubkey: str) -> "SellerProfile":
        return cls(pubkey=pubkey, donation_percentage=get_settings().donation_percentage)


class SellerProfileLookup(ABC):
    @abstractmethod
    async def get_profile(self, seller_pubkey: str) -> SellerProfile:
        """Profile for ``seller_pubkey``; sellers without one get the defaults."""
        ...


class InMemorySellerProfiles(SellerProfileLookup):
    def __init__(self, profiles: list[SellerProfile] | None = None) -> None:
        self._profiles = {profile.pubkey: profile for profile in profiles or ()}

    def add(self, profile: SellerProfile) -> None:
        self._profiles[profile.pubkey] = profile

    async def get_profile(self, seller_pubkey: str) -> SellerProfile:
        return self._profiles.get(seller_pubkey) or SellerProfile.default(seller_pubkey)
