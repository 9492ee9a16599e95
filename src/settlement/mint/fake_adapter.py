"""Configurable fake mint wallet for development and testing.

This adapter simulates a Cashu mint without any external calls or blind
signatures. It can be configured at runtime to:
- report a quote as paid only after N status checks
- reject minting as "already issued" or fail with a transport error
- charge a per-input swap fee (``input_fee_ppk``)
- fail a melt, in which case the proofs handed over stay unspent

Every call is recorded in ``calls`` for test assertions. Issued and spent
secrets are tracked so that double spends are rejected the way a real mint
would reject them.
"""

import hashlib
import math
import re
import secrets
from uuid import uuid4

from settlement.ledger.proofs import Proof, ProofSet
from settlement.mint.port import (
    Keyset,
    MeltQuote,
    MeltResult,
    MintError,
    MintQuoteResponse,
    MintTransportError,
    MintWallet,
    QuoteAlreadyIssued,
    SendResult,
)

FAKE_KEYSET_ID = "00ad268c4d1f5826"
FAKE_MINT_URL = "https://fake.mint.test"

_INVOICE_PATTERN = re.compile(r"^lnbcfake(?P<amount>\d+)s")


def fake_invoice(amount: int) -> str:
    """A Lightning-invoice-shaped string that FakeMint knows how to price."""
    return f"lnbcfake{amount}s{uuid4().hex}"


def split_into_denominations(amount: int) -> list[int]:
    """Power-of-two decomposition, the way mints denominate outputs."""
    denominations = []
    bit = 1
    while amount:
        if amount & 1:
            denominations.append(bit)
        amount >>= 1
        bit <<= 1
    return denominations


class FakeMint(MintWallet):
    """Configurable in-memory mint."""

    def __init__(self, mint_url: str = FAKE_MINT_URL, input_fee_ppk: int = 0) -> None:
        self._mint_url = mint_url
        self.input_fee_ppk = input_fee_ppk
        self.keyset_id = FAKE_KEYSET_ID

        self.paid_after_checks: int = 1
        self.mint_error: MintError | None = None
        self.check_error: Exception | None = None
        self.melt_should_succeed: bool = True
        self.melt_fee_reserve: int | None = None
        self.melt_actual_fee: int = 1

        self.quotes: dict[str, dict] = {}
        self.issued_secrets: set[str] = set()
        self.spent_secrets: set[str] = set()
        self.calls: list[dict] = []

    @property
    def mint_url(self) -> str:
        return self._mint_url

    # -------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------
    def configure(
        self,
        paid_after_checks: int = 1,
        mint_error: MintError | None = None,
        check_error: Exception | None = None,
        melt_should_succeed: bool = True,
        melt_fee_reserve: int | None = None,
        melt_actual_fee: int = 1,
    ) -> None:
        """Configure mint behavior at runtime."""
        self.paid_after_checks = paid_after_checks
        self.mint_error = mint_error
        self.check_error = check_error
        self.melt_should_succeed = melt_should_succeed
        self.melt_fee_reserve = melt_fee_reserve
        self.melt_actual_fee = melt_actual_fee

    def issue(self, amount: int, keyset_id: str | None = None) -> ProofSet:
        """Hand out fresh proofs directly, e.g. to seed a buyer's wallet balance."""
        proofs = ProofSet.of(self._new_proof(value, keyset_id) for value in split_into_denominations(amount))
        self.issued_secrets.update(proofs.secrets)
        return proofs

    def calls_to(self, method: str) -> list[dict]:
        return [call for call in self.calls if call["method"] == method]

    def input_fee(self, proofs: ProofSet) -> int:
        return math.ceil(len(proofs) * self.input_fee_ppk / 1000)

    # -------------------------------------------------------------------
    # MintWallet
    # -------------------------------------------------------------------
    async def create_mint_quote(self, amount: int, unit: str = "sat") -> MintQuoteResponse:
        self.calls.append({"method": "create_mint_quote", "amount": amount, "unit": unit})

        quote_id = f"fake_quote_{uuid4().hex[:12]}"
        self.quotes[quote_id] = {
            "amount": amount,
            "unit": unit,
            "state": "UNPAID",
            "checks": 0,
            "request": fake_invoice(amount),
        }
        return self._quote_response(quote_id)

    async def check_mint_quote(self, quote_id: str) -> MintQuoteResponse:
        self.calls.append({"method": "check_mint_quote", "quote_id": quote_id})

        if self.check_error is not None:
            raise self.check_error

        quote = self._get_quote(quote_id)
        quote["checks"] += 1
        if quote["state"] == "UNPAID" and quote["checks"] >= self.paid_after_checks:
            quote["state"] = "PAID"
        return self._quote_response(quote_id)

    async def mint_proofs(self, amount: int, quote_id: str) -> ProofSet:
        self.calls.append({"method": "mint_proofs", "amount": amount, "quote_id": quote_id})

        if self.mint_error is not None:
            raise self.mint_error

        quote = self._get_quote(quote_id)
        if quote["state"] == "ISSUED":
            raise QuoteAlreadyIssued()
        if quote["state"] != "PAID":
            raise MintError("quote not paid", code=20001)
        if amount != quote["amount"]:
            raise MintError(f"amount {amount} does not match quote amount {quote['amount']}")

        quote["state"] = "ISSUED"
        return self.issue(amount)

    async def send(self, amount: int, proofs: ProofSet, include_fees: bool = True) -> SendResult:
        self.calls.append({"method": "send", "amount": amount, "inputs": proofs.total, "include_fees": include_fees})

        self._assert_spendable(proofs)
        fee = self.input_fee(proofs)
        required = amount + fee
        if proofs.total < required:
            raise MintError(f"not enough inputs provided: need {required}, have {proofs.total}")

        self.spent_secrets.update(proofs.secrets)
        send = self.issue(amount)
        keep = self.issue(proofs.total - amount - fee)
        return SendResult(keep=keep, send=send)

    async def create_melt_quote(self, invoice: str) -> MeltQuote:
        self.calls.append({"method": "create_melt_quote", "invoice": invoice})

        match = _INVOICE_PATTERN.match(invoice)
        if match is None:
            raise MintError("could not parse invoice")

        amount = int(match.group("amount"))
        fee_reserve = self.melt_fee_reserve
        if fee_reserve is None:
            fee_reserve = max(2, math.ceil(amount / 100))
        return MeltQuote(quote=f"fake_melt_{uuid4().hex[:12]}", request=invoice, amount=amount, fee_reserve=fee_reserve)

    async def melt_proofs(self, quote: MeltQuote, proofs: ProofSet) -> MeltResult:
        self.calls.append({"method": "melt_proofs", "quote": quote.quote, "inputs": proofs.total})

        self._assert_spendable(proofs)
        input_fee = self.input_fee(proofs)
        if proofs.total < quote.total_required + input_fee:
            raise MintError(f"not enough inputs for melt: need {quote.total_required + input_fee}, have {proofs.total}")

        if not self.melt_should_succeed:
            # Lightning payment failed; the mint releases the inputs unspent
            return MeltResult(quote=None)

        self.spent_secrets.update(proofs.secrets)
        fee_paid = min(self.melt_actual_fee, quote.fee_reserve)
        change = self.issue(proofs.total - quote.amount - fee_paid - input_fee)
        preimage = secrets.token_hex(32)
        paid_quote = MeltQuote(
            quote=quote.quote,
            request=quote.request,
            amount=quote.amount,
            fee_reserve=quote.fee_reserve,
            state="PAID",
        )
        return MeltResult(quote=paid_quote, change=change, preimage=preimage)

    async def get_keysets(self) -> list[Keyset]:
        self.calls.append({"method": "get_keysets"})
        return [Keyset(id=self.keyset_id, unit="sat", active=True, input_fee_ppk=self.input_fee_ppk)]

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _get_quote(self, quote_id: str) -> dict:
        try:
            return self.quotes[quote_id]
        except KeyError:
            raise MintTransportError(f"unknown quote {quote_id}") from None

    def _quote_response(self, quote_id: str) -> MintQuoteResponse:
        quote = self.quotes[quote_id]
        return MintQuoteResponse(
            quote=quote_id,
            request=quote["request"],
            amount=quote["amount"],
            state=quote["state"],
            unit=quote["unit"],
        )

    def _assert_spendable(self, proofs: ProofSet) -> None:
        unknown = proofs.secrets - self.issued_secrets
        if unknown:
            raise MintError("proofs were not issued by this mint", code=10003)
        if proofs.secrets & self.spent_secrets:
            raise MintError("token already spent", code=11001)

    def _new_proof(self, amount: int, keyset_id: str | None = None) -> Proof:
        secret = secrets.token_hex(32)
        C = "02" + hashlib.sha256(secret.encode()).hexdigest()
        return Proof(amount=amount, keyset_id=keyset_id or self.keyset_id, secret=secret, C=C)
