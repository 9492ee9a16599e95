"""Lightning address resolver port (abstract interface).

A seller who prefers Lightning publishes a LUD-16 address (``name@domain``).
The settlement engine only needs one thing from it: a BOLT11 invoice for a
given number of sats.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class LightningAddressError(Exception):
    """The Lightning address could not be resolved or refused to issue an invoice."""


@dataclass(frozen=True)
class LightningInvoice:
    lightning_address: str
    amount: int
    pr: str
    verify_url: str | None = None


def parse_lightning_address(lightning_address: str) -> tuple[str, str]:
    """Split ``name@domain`` into its parts, rejecting anything else."""
    address = lightning_address.strip().lower()
    if address.startswith("lightning:"):
        address = address[len("lightning:") :]

    name, sep, domain = address.partition("@")
    if not sep or not name or not domain or "@" in domain or "." not in domain:
        raise LightningAddressError(f"Invalid Lightning address: {lightning_address!r}")
    return name, domain


class LightningAddressResolver(ABC):
    """Abstract Lightning address resolver."""

    @abstractmethod
    async def request_invoice(self, lightning_address: str, amount: int) -> LightningInvoice:
        """Fetch a BOLT11 invoice for ``amount`` sats payable to ``lightning_address``."""
        ...
