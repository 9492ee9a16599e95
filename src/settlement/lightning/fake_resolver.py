"""Configurable fake Lightning address resolver for development and testing.

Issues invoices FakeMint can price (``fake_invoice``). It can be configured
to fail, either for every address or for specific ones.
"""

from settlement.lightning.port import (
    LightningAddressError,
    LightningAddressResolver,
    LightningInvoice,
    parse_lightning_address,
)
from settlement.mint.fake_adapter import fake_invoice


class FakeLightningResolver(LightningAddressResolver):
    def __init__(self) -> None:
        self.should_fail: bool = False
        self.failing_addresses: set[str] = set()
        self.failure_reason: str = "Lightning address unavailable"
        self.calls: list[dict] = []

    def configure(
        self,
        should_fail: bool = False,
        failing_addresses: set[str] | None = None,
        failure_reason: str = "Lightning address unavailable",
    ) -> None:
        """Configure resolver behavior at runtime."""
        self.should_fail = should_fail
        self.failing_addresses = set(failing_addresses or ())
        self.failure_reason = failure_reason

    async def request_invoice(self, lightning_address: str, amount: int) -> LightningInvoice:
        self.calls.append({"lightning_address": lightning_address, "amount": amount})
        parse_lightning_address(lightning_address)

        if self.should_fail or lightning_address in self.failing_addresses:
            raise LightningAddressError(self.failure_reason)
        return LightningInvoice(lightning_address=lightning_address, amount=amount, pr=fake_invoice(amount))
