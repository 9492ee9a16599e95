"""CheckoutWorkflow — one buyer's checkout, from invoice to delivered order messages.

Flow (Lightning invoice):
    1. validate the cart                      → ValidationError, nothing charged
    2. create a mint quote                    → the buyer pays its invoice
    3. wait for payment and mint proofs       → QuoteTimeout / PaymentCancelled / ALREADY_ISSUED
    4. per cart line, in order:
         settle (split, donation, optional melt) from what is left
         deliver the order messages
         save an order record
    5. whatever is left is the buyer's change → stored with an "in" history entry

Flow (wallet balance): the buyer's stored proofs from this mint replace
steps 2-3, and step 5 stores the kept proofs with an "out" history entry.

Sellers are processed strictly one after another from a single proof set
that only ever shrinks. Message delivery failures are recorded, never
raised: once a seller is paid the order stands.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum

import structlog
from notifications.envelope.gift_wrap import Signer
from notifications.envelope.keys import EphemeralKeyring
from notifications.relay import get_relay
from notifications.relay.port import RelayTransport
from notifications.sequencer import DeliveryReport, NotificationSequencer
from settlement.engine.engine import SettlementEngine, SettlementResult
from settlement.engine.policy import MeltPolicy
from settlement.errors import SettlementError
from settlement.ledger.ledger import ProofLedger
from settlement.ledger.proofs import ProofSet
from settlement.lightning import get_resolver
from settlement.lightning.port import LightningAddressResolver
from settlement.mint import get_mint
from settlement.mint.port import MintWallet
from settlement.quote.lifecycle import PaymentOutcome, PaymentStatus, QuoteLifecycle
from settlement.quote.quote import MintQuote
from shared.config import CheckoutSettings, get_settings
from shared.logging import add_context, clear_context
from shared.retry import RetryPolicy, Sleep

from checkout.messages import build_order_messages
from checkout.order import CheckoutRequest, OrderContext
from checkout.profiles import InMemorySellerProfiles, SellerProfileLookup
from checkout.storage import (
    HistoryDirection,
    HistoryEntry,
    InMemoryOrderRecordStore,
    InMemoryProofStore,
    OrderRecord,
    OrderRecordStore,
    ProofStore,
)
from checkout.validation import validate_checkout

logger = structlog.get_logger(__name__)


class CheckoutStatus(Enum):
    COMPLETED = "completed"
    ALREADY_ISSUED = "already_issued"


@dataclass(frozen=True)
class SellerOrderResult:
    order: OrderContext
    settlement: SettlementResult
    delivery: DeliveryReport
    record: OrderRecord


@dataclass(frozen=True)
class CheckoutResult:
    status: CheckoutStatus
    orders: tuple[SellerOrderResult, ...] = ()
    change: ProofSet = field(default_factory=ProofSet.empty)
    quote: MintQuote | None = None
    warnings: tuple[str, ...] = ()

    @property
    def settled(self) -> bool:
        return self.status == CheckoutStatus.COMPLETED


class CheckoutWorkflow:
    def __init__(
        self,
        signer: Signer,
        wallet: MintWallet | None = None,
        relay: RelayTransport | None = None,
        resolver: LightningAddressResolver | None = None,
        profiles: SellerProfileLookup | None = None,
        proof_store: ProofStore | None = None,
        order_records: OrderRecordStore | None = None,
        settings: CheckoutSettings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.settings = settings or get_settings()
        self.signer = signer
        self.wallet = wallet or get_mint()
        self.profiles = profiles or InMemorySellerProfiles()
        self.proof_store = proof_store or InMemoryProofStore()
        self.order_records = order_records or InMemoryOrderRecordStore()

        self.ledger = ProofLedger(self.wallet, token_version=self.settings.token_version)
        self.lifecycle = QuoteLifecycle(
            self.wallet,
            policy=RetryPolicy.polling(self.settings.poll_max_attempts, self.settings.poll_interval),
            sleep=sleep,
        )
        self.engine = SettlementEngine(
            self.ledger,
            resolver=resolver or get_resolver(),
            melt_policy=MeltPolicy.from_settings(self.settings),
            donation_pubkey=self.settings.donation_pubkey,
        )
        self.sequencer = NotificationSequencer(
            signer,
            relay or get_relay(),
            policy=RetryPolicy.exponential(self.settings.send_max_attempts, self.settings.send_base_delay),
            pacing_delay=self.settings.pacing_delay,
            sleep=sleep,
        )
        self._cancelled = asyncio.Event()

    # -------------------------------------------------------------------
    # Lightning invoice checkout
    # -------------------------------------------------------------------
    async def start(self, request: CheckoutRequest) -> MintQuote:
        """Validate the cart and create the invoice the buyer has to pay."""
        validate_checkout(request)
        self._cancelled.clear()
        quote = await self.lifecycle.create_quote(request.total_amount)
        logger.info("Checkout started", quote_id=quote.quote_id, amount=quote.amount, items=len(request.items))
        return quote

    async def complete(self, request: CheckoutRequest, quote: MintQuote) -> CheckoutResult:
        """Wait for the invoice to be paid, then settle and announce every order."""
        outcome = await self.lifecycle.await_payment(quote, cancel=self._cancelled)
        return await self._settle_paid_quote(request, outcome)

    async def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        quote = await self.start(request)
        return await self.complete(request, quote)

    def cancel(self) -> None:
        """The buyer left the invoice screen. Stops polling; the quote is left as is."""
        self._cancelled.set()

    async def _settle_paid_quote(self, request: CheckoutRequest, outcome: PaymentOutcome) -> CheckoutResult:
        if outcome.status == PaymentStatus.ALREADY_ISSUED:
            return CheckoutResult(
                status=CheckoutStatus.ALREADY_ISSUED,
                quote=outcome.quote,
                warnings=(outcome.warning,),
            )

        orders, change = await self._settle_orders(request, outcome.proofs, mint_quote_id=outcome.quote.quote_id)
        if change:
            await self._store_change(change, history=HistoryDirection.IN)

        return CheckoutResult(
            status=CheckoutStatus.COMPLETED,
            orders=orders,
            change=change,
            quote=outcome.quote,
            warnings=tuple(warning for order in orders for warning in order.record.warnings),
        )

    # -------------------------------------------------------------------
    # Wallet balance checkout
    # -------------------------------------------------------------------
    async def pay_with_wallet(self, request: CheckoutRequest) -> CheckoutResult:
        """Pay from the buyer's stored ecash balance instead of a Lightning invoice."""
        validate_checkout(request)

        keysets = await self.wallet.get_keysets()
        stored = await self.proof_store.load()
        usable = stored.filter_keysets(keyset.id for keyset in keysets)
        untouched = stored.without(usable)

        price = request.total_amount
        split = await self.ledger.split(price, usable)
        logger.info("Paying from wallet balance", amount=price, balance=usable.total, kept=split.keep.total)

        # The balance is rewritten before settling so spent proofs never linger in the store
        await self.proof_store.save(untouched + split.keep)
        await self.proof_store.add_history(
            HistoryEntry(direction=HistoryDirection.OUT, amount=price, mint_url=self.ledger.mint_url)
        )

        orders, change = await self._settle_orders(request, split.send)
        if change:
            await self._store_change(change)

        return CheckoutResult(
            status=CheckoutStatus.COMPLETED,
            orders=orders,
            change=split.keep + change,
            warnings=tuple(warning for order in orders for warning in order.record.warnings),
        )

    # -------------------------------------------------------------------
    # Per-seller settlement
    # -------------------------------------------------------------------
    async def _settle_orders(
        self,
        request: CheckoutRequest,
        proofs: ProofSet,
        mint_quote_id: str | None = None,
    ) -> tuple[tuple[SellerOrderResult, ...], ProofSet]:
        remaining = proofs
        results = []

        for item in request.items:
            profile = await self.profiles.get_profile(item.seller_pubkey)
            order = OrderContext.for_item(request, item, profile)
            add_context(order_id=order.order_id, seller_pubkey=order.seller_pubkey)
            try:
                try:
                    settlement = await self.engine.settle(
                        remaining,
                        order.total_amount,
                        order.donation_percentage,
                        lightning_address=order.lightning_address if order.wants_lightning else None,
                    )
                except SettlementError as exc:
                    # Keep whatever was not handed over so the buyer can recover it
                    unspent = exc.unspent
                    if unspent is None and not self.ledger.is_consumed(remaining):
                        unspent = remaining
                    if unspent:
                        await self._store_change(unspent)
                    logger.error(
                        "Settlement failed",
                        amount=order.total_amount,
                        available=remaining.total,
                        recovered=unspent.total if unspent else 0,
                    )
                    raise

                remaining = settlement.remaining
                results.append(await self._announce(order, settlement, mint_quote_id))
            finally:
                clear_context("order_id", "seller_pubkey")

        return tuple(results), remaining

    async def _announce(
        self,
        order: OrderContext,
        settlement: SettlementResult,
        mint_quote_id: str | None,
    ) -> SellerOrderResult:
        keyring = EphemeralKeyring()
        try:
            report = await self.sequencer.deliver(build_order_messages(order, settlement), keyring)
        finally:
            keyring.discard()

        warnings = list(settlement.warnings)
        if report.failed:
            warnings.append(f"{len(report.failed)} order message(s) could not be delivered")

        payout = settlement.payout
        record = OrderRecord(
            order_id=order.order_id,
            buyer_pubkey=order.buyer_pubkey,
            seller_pubkey=order.seller_pubkey,
            product_title=order.product.title,
            total_amount=order.total_amount,
            seller_amount=order.seller_amount,
            donation_amount=order.donation_amount,
            payment_channel=payout.channel.value if payout else "none",
            payment_reference=payout.payment_reference if payout else "",
            mint_quote_id=mint_quote_id,
            messages_sent=len(report.sent),
            messages_failed=len(report.failed),
            warnings=tuple(warnings),
        )
        await self.order_records.save(record)
        logger.info(
            "Seller order settled",
            channel=record.payment_channel,
            seller_amount=order.seller_amount,
            donation_amount=order.donation_amount,
            messages_sent=record.messages_sent,
            messages_failed=record.messages_failed,
        )
        return SellerOrderResult(order=order, settlement=settlement, delivery=report, record=record)

    async def _store_change(self, change: ProofSet, history: HistoryDirection | None = None) -> None:
        balance = await self.proof_store.load()
        await self.proof_store.save(balance + change)
        if history is not None:
            await self.proof_store.add_history(
                HistoryEntry(direction=history, amount=change.total, mint_url=self.ledger.mint_url)
            )
        logger.info("Change stored in wallet", amount=change.total)
