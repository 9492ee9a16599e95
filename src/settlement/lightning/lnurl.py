"""LUD-16 Lightning address resolver over HTTPS.

``name@domain`` resolves to ``https://domain/.well-known/lnurlp/name``, whose
pay-request document names a callback that returns the invoice. Amounts on
the wire are millisats.
"""

import httpx
import structlog

from settlement.lightning.port import (
    LightningAddressError,
    LightningAddressResolver,
    LightningInvoice,
    parse_lightning_address,
)

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT = 10.0


class LnurlResolver(LightningAddressResolver):
    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = DEFAULT_TIMEOUT) -> None:
        self._client = client
        self.timeout = timeout

    async def request_invoice(self, lightning_address: str, amount: int) -> LightningInvoice:
        if amount < 1:
            raise LightningAddressError(f"Invoice amount must be positive, got {amount}")

        name, domain = parse_lightning_address(lightning_address)
        amount_msat = amount * 1000

        if self._client is not None:
            return await self._request(self._client, lightning_address, name, domain, amount, amount_msat)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._request(client, lightning_address, name, domain, amount, amount_msat)

    async def _request(
        self,
        client: httpx.AsyncClient,
        lightning_address: str,
        name: str,
        domain: str,
        amount: int,
        amount_msat: int,
    ) -> LightningInvoice:
        pay_request = await self._get_json(client, f"https://{domain}/.well-known/lnurlp/{name}")

        if pay_request.get("tag") != "payRequest" or "callback" not in pay_request:
            raise LightningAddressError(f"{lightning_address} did not return a pay request")

        min_sendable = int(pay_request.get("minSendable", 1000))
        max_sendable = int(pay_request.get("maxSendable", amount_msat))
        if not min_sendable <= amount_msat <= max_sendable:
            raise LightningAddressError(
                f"{amount} sats is outside the limits of {lightning_address} "
                f"({min_sendable // 1000}-{max_sendable // 1000} sats)"
            )

        invoice = await self._get_json(client, pay_request["callback"], params={"amount": amount_msat})
        pr = invoice.get("pr")
        if not pr:
            raise LightningAddressError(f"{lightning_address} did not return an invoice")

        logger.info("Lightning invoice fetched", lightning_address=lightning_address, amount=amount)
        return LightningInvoice(
            lightning_address=lightning_address,
            amount=amount,
            pr=pr,
            verify_url=invoice.get("verify"),
        )

    @staticmethod
    async def _get_json(client: httpx.AsyncClient, url: str, params: dict | None = None) -> dict:
        try:
            response = await client.get(url, params=params, follow_redirects=True)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise LightningAddressError(f"Request to {url} failed: {exc}") from exc
        except ValueError as exc:
            raise LightningAddressError(f"Response from {url} is not JSON") from exc

        if not isinstance(data, dict):
            raise LightningAddressError(f"Response from {url} is not a JSON object")
        if str(data.get("status", "")).upper() == "ERROR":
            raise LightningAddressError(data.get("reason") or f"{url} returned an error")
        return data
