"""Tests for per-seller settlement: shares, ecash payouts, Lightning melts and fallbacks."""

import pytest
from settlement.engine.engine import PayoutChannel, SettlementEngine
from settlement.engine.policy import MeltPolicy
from settlement.errors import SettlementError
from settlement.ledger.ledger import ProofLedger
from settlement.ledger.tokens import decode_token
from settlement.lightning.fake_resolver import FakeLightningResolver
from settlement.mint.fake_adapter import FakeMint
from settlement.mint.port import MintError

DONATION_PUBKEY = "d" * 64
LN_ADDRESS = "farmer@getalby.com"


@pytest.fixture()
def mint():
    return FakeMint()


@pytest.fixture()
def resolver():
    return FakeLightningResolver()


@pytest.fixture()
def engine(mint, resolver):
    return SettlementEngine(
        ProofLedger(mint),
        resolver=resolver,
        melt_policy=MeltPolicy(),
        donation_pubkey=DONATION_PUBKEY,
    )


class TestEcashSettlement:
    @pytest.mark.asyncio
    async def test_seller_and_donation_tokens(self, mint, engine):
        result = await engine.settle(mint.issue(1000), 1000, 2.1)

        assert result.shares.seller == 979
        assert result.shares.donation == 21
        assert result.payout.channel == PayoutChannel.ECASH
        assert result.payout.amount == 979
        assert decode_token(result.payout.token).amount == 979
        assert result.donation.amount == 21
        assert decode_token(result.donation.token).amount == 21
        assert result.donation.recipient_pubkey == DONATION_PUBKEY
        assert result.remaining.total == 0
        assert result.warnings == ()

    @pytest.mark.asyncio
    async def test_overpayment_is_returned_as_remaining(self, mint, engine):
        result = await engine.settle(mint.issue(1500), 1000, 2.1)
        assert result.remaining.total == 500

    @pytest.mark.asyncio
    async def test_payment_proof_is_proof_json(self, mint, engine):
        result = await engine.settle(mint.issue(100), 100, 0)
        assert result.payout.payment_reference == mint.mint_url
        assert '"amount"' in result.payout.payment_proof
        assert result.donation is None

    @pytest.mark.asyncio
    async def test_tiny_order_goes_entirely_to_donation(self, mint, engine):
        result = await engine.settle(mint.issue(1), 1, 2.1)
        assert result.payout is None
        assert result.donation.amount == 1

    @pytest.mark.asyncio
    async def test_insufficient_proofs_raise(self, mint, engine):
        with pytest.raises(SettlementError):
            await engine.settle(mint.issue(500), 1000, 2.1)

    @pytest.mark.asyncio
    async def test_excluded_domain_pays_ecash(self, mint, engine, resolver):
        result = await engine.settle(mint.issue(1000), 1000, 2.1, lightning_address="farmer@zeuspay.com")
        assert result.payout.channel == PayoutChannel.ECASH
        assert result.payout.fallback is False
        assert resolver.calls == []


class TestLightningSettlement:
    @pytest.mark.asyncio
    async def test_melt_pays_seller_and_returns_change(self, mint, engine, resolver):
        mint.configure(melt_fee_reserve=10, melt_actual_fee=1)

        result = await engine.settle(mint.issue(1000), 1000, 2.1, lightning_address=LN_ADDRESS)

        payout = result.payout
        assert resolver.calls == [{"lightning_address": LN_ADDRESS, "amount": 957}]
        assert payout.channel == PayoutChannel.LIGHTNING
        assert payout.amount == 957
        assert payout.preimage
        assert payout.payment_reference == payout.invoice
        assert payout.payment_proof == payout.preimage
        # 979 - 957 paid - 1 routing fee
        assert payout.change_amount == 21
        assert decode_token(payout.change_token).amount == 21
        assert result.donation.amount == 21

    @pytest.mark.asyncio
    async def test_failed_melt_returns_every_seller_proof(self, mint, engine):
        mint.configure(melt_should_succeed=False, melt_fee_reserve=10)

        result = await engine.settle(mint.issue(1000), 1000, 2.1, lightning_address=LN_ADDRESS)

        payout = result.payout
        assert payout.channel == PayoutChannel.ECASH
        assert payout.fallback is True
        assert payout.lightning_address == LN_ADDRESS
        assert payout.amount == 979
        assert decode_token(payout.token).amount == 979
        assert len(result.warnings) == 1

    @pytest.mark.asyncio
    async def test_melt_exception_is_treated_as_unpaid(self, mint, engine):
        class _BrokenMelt(FakeMint):
            async def melt_proofs(self, quote, proofs):
                raise MintError("lightning backend offline")

        broken = _BrokenMelt()
        engine = SettlementEngine(ProofLedger(broken), resolver=FakeLightningResolver(), donation_pubkey=DONATION_PUBKEY)

        result = await engine.settle(broken.issue(1000), 1000, 2.1, lightning_address=LN_ADDRESS)

        assert result.payout.fallback is True
        assert result.payout.amount == 979

    @pytest.mark.asyncio
    async def test_resolver_failure_falls_back_to_ecash(self, mint, engine, resolver):
        resolver.configure(should_fail=True)

        result = await engine.settle(mint.issue(1000), 1000, 2.1, lightning_address=LN_ADDRESS)

        assert result.payout.channel == PayoutChannel.ECASH
        assert result.payout.fallback is True
        assert result.payout.amount == 979
        assert mint.calls_to("create_melt_quote") == []

    @pytest.mark.asyncio
    async def test_fee_reserve_larger_than_share_falls_back(self, mint, engine):
        mint.configure(melt_fee_reserve=500)

        result = await engine.settle(mint.issue(1000), 1000, 2.1, lightning_address=LN_ADDRESS)

        assert result.payout.fallback is True
        assert result.payout.amount == 979
        assert mint.calls_to("melt_proofs") == []

    @pytest.mark.asyncio
    async def test_share_too_small_to_melt_pays_ecash(self, mint, engine, resolver):
        result = await engine.settle(mint.issue(3), 3, 0, lightning_address=LN_ADDRESS)

        assert result.payout.channel == PayoutChannel.ECASH
        assert result.payout.fallback is False
        assert resolver.calls == []

    @pytest.mark.asyncio
    async def test_no_resolver_pays_ecash(self, mint):
        engine = SettlementEngine(ProofLedger(mint), resolver=None, donation_pubkey=DONATION_PUBKEY)
        result = await engine.settle(mint.issue(1000), 1000, 2.1, lightning_address=LN_ADDRESS)
        assert result.payout.channel == PayoutChannel.ECASH


class TestFeeChargingMint:
    @pytest.fixture()
    def mint(self):
        return FakeMint(input_fee_ppk=100)

    @pytest.mark.asyncio
    async def test_value_is_conserved_across_splits(self, mint, engine):
        available = mint.issue(1100)

        result = await engine.settle(available, 1000, 2.1)

        assert result.payout.amount == 979
        assert result.donation.amount == 21
        # One sat of input fees per split
        assert result.fees == 2
        assert result.remaining.total == 98
        assert result.payout.amount + result.donation.amount + result.remaining.total + result.fees == available.total

    @pytest.mark.asyncio
    async def test_failed_donation_split_returns_split_proofs(self, mint, engine):
        available = mint.issue(1000)

        with pytest.raises(SettlementError) as exc_info:
            await engine.settle(available, 1000, 2.1)

        unspent = exc_info.value.unspent
        assert unspent.total == 999
        assert unspent.secrets <= mint.issued_secrets
        assert not unspent.secrets & mint.spent_secrets

    @pytest.mark.asyncio
    async def test_melt_fallback_pays_seller_what_is_left_after_fees(self, mint, engine):
        mint.configure(melt_fee_reserve=10)

        result = await engine.settle(mint.issue(1100), 1000, 2.1, lightning_address=LN_ADDRESS)

        payout = result.payout
        # 979 split again into 967 for the melt and 11 kept, paying 1 sat;
        # the mint then wants one more sat of input fee than the melt inputs hold
        assert payout.channel == PayoutChannel.ECASH
        assert payout.fallback is True
        assert payout.amount == 978
        assert decode_token(payout.token).amount == 978
        assert not payout.proofs.secrets & mint.spent_secrets
        assert result.remaining.total == 98
