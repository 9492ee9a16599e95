"""Tests for quote creation, payment polling and minting."""

import asyncio

import pytest
from protean.exceptions import ValidationError
from settlement.mint.fake_adapter import FakeMint
from settlement.mint.port import MintError, MintTransportError, QuoteAlreadyIssued
from settlement.quote.lifecycle import (
    ALREADY_ISSUED_WARNING,
    PaymentCancelled,
    PaymentStatus,
    QuoteLifecycle,
    QuoteTimeout,
    QuoteTransportError,
)
from settlement.quote.quote import MintQuoteState
from shared.retry import RetryPolicy


class _RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture()
def mint():
    return FakeMint()


@pytest.fixture()
def sleep():
    return _RecordingSleep()


@pytest.fixture()
def lifecycle(mint, sleep):
    return QuoteLifecycle(mint, policy=RetryPolicy.polling(5, 2.1), sleep=sleep)


class TestCreateQuote:
    @pytest.mark.asyncio
    async def test_creates_unpaid_quote(self, mint, lifecycle):
        quote = await lifecycle.create_quote(1000)

        assert quote.amount == 1000
        assert quote.status == MintQuoteState.UNPAID.value
        assert quote.payment_request.startswith("lnbcfake1000")
        assert quote.mint_url == mint.mint_url
        assert len(mint.calls_to("create_mint_quote")) == 1

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, mint, lifecycle):
        with pytest.raises(ValidationError):
            await lifecycle.create_quote(0)
        assert mint.calls == []

    @pytest.mark.asyncio
    async def test_transport_error(self, sleep):
        class _Unreachable(FakeMint):
            async def create_mint_quote(self, amount, unit="sat"):
                raise MintTransportError("connection refused")

        with pytest.raises(QuoteTransportError):
            await QuoteLifecycle(_Unreachable(), policy=RetryPolicy.polling(3, 1), sleep=sleep).create_quote(10)


class TestAwaitPayment:
    @pytest.mark.asyncio
    async def test_paid_on_third_check_mints_proofs(self, mint, lifecycle, sleep):
        mint.configure(paid_after_checks=3)
        quote = await lifecycle.create_quote(1000)

        outcome = await lifecycle.await_payment(quote)

        assert outcome.status == PaymentStatus.MINTED
        assert outcome.minted
        assert outcome.proofs.total == 1000
        assert quote.is_issued
        assert quote.amount_minted == 1000
        assert len(mint.calls_to("check_mint_quote")) == 3
        assert sleep.delays == [2.1, 2.1]

    @pytest.mark.asyncio
    async def test_times_out_after_bounded_checks(self, mint, lifecycle, sleep):
        mint.configure(paid_after_checks=100)
        quote = await lifecycle.create_quote(500)

        with pytest.raises(QuoteTimeout) as exc_info:
            await lifecycle.await_payment(quote)

        assert exc_info.value.attempts == 5
        assert len(mint.calls_to("check_mint_quote")) == 5
        assert mint.calls_to("mint_proofs") == []
        assert quote.status == MintQuoteState.UNPAID.value

    @pytest.mark.asyncio
    async def test_already_issued_when_minting(self, mint, lifecycle):
        mint.configure(mint_error=QuoteAlreadyIssued())
        quote = await lifecycle.create_quote(1000)

        outcome = await lifecycle.await_payment(quote)

        assert outcome.status == PaymentStatus.ALREADY_ISSUED
        assert outcome.warning == ALREADY_ISSUED_WARNING
        assert outcome.proofs.total == 0
        assert quote.is_issued
        assert quote.recovered is True

    @pytest.mark.asyncio
    async def test_issued_detected_from_error_text(self, mint, lifecycle):
        mint.configure(mint_error=MintError("outputs have already been signed: quote already issued"))
        quote = await lifecycle.create_quote(1000)

        outcome = await lifecycle.await_payment(quote)

        assert outcome.status == PaymentStatus.ALREADY_ISSUED

    @pytest.mark.asyncio
    async def test_mint_reports_issued_state(self, mint, lifecycle):
        quote = await lifecycle.create_quote(1000)
        mint.quotes[quote.quote_id]["state"] = "ISSUED"

        outcome = await lifecycle.await_payment(quote)

        assert outcome.status == PaymentStatus.ALREADY_ISSUED
        assert mint.calls_to("mint_proofs") == []

    @pytest.mark.asyncio
    async def test_replay_on_issued_quote_does_not_call_mint(self, mint, lifecycle):
        quote = await lifecycle.create_quote(1000)
        await lifecycle.await_payment(quote)
        calls_before = len(mint.calls)

        outcome = await lifecycle.await_payment(quote)

        assert outcome.status == PaymentStatus.ALREADY_ISSUED
        assert len(mint.calls) == calls_before

    @pytest.mark.asyncio
    async def test_transport_error_is_not_retried(self, mint, lifecycle, sleep):
        quote = await lifecycle.create_quote(1000)
        mint.configure(check_error=MintTransportError("bad mint url"))

        with pytest.raises(QuoteTransportError):
            await lifecycle.await_payment(quote)

        assert len(mint.calls_to("check_mint_quote")) == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_other_mint_errors_propagate(self, mint, lifecycle):
        mint.configure(mint_error=MintError("keyset inactive", code=12002))
        quote = await lifecycle.create_quote(1000)

        with pytest.raises(MintError, match="keyset inactive"):
            await lifecycle.await_payment(quote)

    @pytest.mark.asyncio
    async def test_cancel_before_polling(self, mint, lifecycle):
        quote = await lifecycle.create_quote(1000)
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(PaymentCancelled):
            await lifecycle.await_payment(quote, cancel=cancel)

        assert mint.calls_to("check_mint_quote") == []
        assert quote.status == MintQuoteState.UNPAID.value

    @pytest.mark.asyncio
    async def test_cancel_while_waiting(self, mint):
        cancel = asyncio.Event()

        async def cancelling_sleep(delay):
            cancel.set()

        mint.configure(paid_after_checks=10)
        lifecycle = QuoteLifecycle(mint, policy=RetryPolicy.polling(10, 2.1), sleep=cancelling_sleep)
        quote = await lifecycle.create_quote(1000)

        with pytest.raises(PaymentCancelled):
            await lifecycle.await_payment(quote, cancel=cancel)

        assert len(mint.calls_to("check_mint_quote")) == 1
