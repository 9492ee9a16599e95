"""Tests for choosing which messages a settled order produces."""

from checkout.messages import build_order_messages
from checkout.order import CartItem, CheckoutRequest, ContactDetails, OrderContext, ProductSnapshot, ShippingAddress
from checkout.profiles import SellerProfile
from notifications.envelope.keys import npub_encode
from notifications.message.message import (
    DonationMessage,
    HerdshareMessage,
    InfoKind,
    InfoMessage,
    PaymentMessage,
    PaymentPurpose,
    PaymentType,
    ReceiptKind,
    ReceiptMessage,
)
from settlement.engine.engine import DonationPayout, PayoutChannel, SellerPayout, SettlementResult
from settlement.engine.policy import compute_shares
from settlement.ledger.proofs import Proof, ProofSet

BUYER = "b" * 64
SELLER = "5" * 64
PLATFORM = "d" * 64
MINT_URL = "https://mint.example"


def _proofs(amount):
    return ProofSet.of([Proof(amount=amount, keyset_id="00ad268c4d1f5826", secret=f"s{amount}", C="02" + "ab" * 32)])


def _order(shipping_type="Added Cost", shipping=True, contact=False, additional_info=None, **product_overrides):
    product = {"product_id": "prod-1", "title": "Raw Milk", "price": 1000, "shipping_type": shipping_type}
    product.update(product_overrides)
    request = CheckoutRequest(
        buyer_pubkey=BUYER,
        items=(CartItem(seller_pubkey=SELLER, product=ProductSnapshot(**product), amount=1000),),
        shipping=ShippingAddress(
            name="Jo", address="1 Lane", city="Town", postal_code="1", state="OR", country="US"
        )
        if shipping
        else None,
        contact=ContactDetails(contact="@jo", contact_type="Signal", instructions="Evenings") if contact else None,
        additional_info=additional_info,
    )
    return OrderContext.for_item(request, request.items[0], SellerProfile(SELLER, 2.1), order_id="order-1")


def _ecash_settlement():
    return SettlementResult(
        shares=compute_shares(1000, 2.1),
        payout=SellerPayout(
            channel=PayoutChannel.ECASH, amount=979, mint_url=MINT_URL, token="cashuBseller", proofs=_proofs(979)
        ),
        donation=DonationPayout(amount=21, token="cashuBdonation", recipient_pubkey=PLATFORM),
        remaining=ProofSet.empty(),
    )


def _lightning_settlement(change=21):
    return SettlementResult(
        shares=compute_shares(1000, 2.1),
        payout=SellerPayout(
            channel=PayoutChannel.LIGHTNING,
            amount=957,
            mint_url=MINT_URL,
            invoice="lnbc957",
            preimage="ff" * 32,
            lightning_address="farmer@getalby.com",
            change=_proofs(change) if change else ProofSet.empty(),
            change_token="cashuBchange" if change else None,
        ),
        donation=DonationPayout(amount=21, token="cashuBdonation", recipient_pubkey=PLATFORM),
        remaining=ProofSet.empty(),
    )


def _of_type(messages, cls):
    return [message for message in messages if isinstance(message, cls)]


class TestPaymentMessages:
    def test_ecash_payment_to_seller(self):
        messages = build_order_messages(_order(), _ecash_settlement())

        [payment] = _of_type(messages, PaymentMessage)
        assert payment.recipient_pubkey == SELLER
        assert payment.payment_type == PaymentType.ECASH
        assert payment.amount == 979
        assert payment.token == "cashuBseller"
        assert payment.buyer_npub == npub_encode(BUYER)
        assert payment.payment_reference == MINT_URL

    def test_lightning_payment_with_fee_change(self):
        messages = build_order_messages(_order(), _lightning_settlement())

        sale, change = _of_type(messages, PaymentMessage)
        assert sale.payment_type == PaymentType.LIGHTNING
        assert sale.payment_reference == "lnbc957"
        assert sale.payment_proof == "ff" * 32
        assert change.purpose == PaymentPurpose.FEE_CHANGE
        assert change.amount == 21
        assert change.token == "cashuBchange"

    def test_lightning_without_change(self):
        messages = build_order_messages(_order(), _lightning_settlement(change=0))
        assert len(_of_type(messages, PaymentMessage)) == 1

    def test_donation_to_platform(self):
        [donation] = _of_type(build_order_messages(_order(), _ecash_settlement()), DonationMessage)
        assert donation.recipient_pubkey == PLATFORM
        assert donation.amount == 21

    def test_no_payout_no_payment_message(self):
        settlement = SettlementResult(
            shares=compute_shares(1, 2.1),
            payout=None,
            donation=DonationPayout(amount=1, token="cashuBdonation", recipient_pubkey=PLATFORM),
            remaining=ProofSet.empty(),
        )
        assert _of_type(build_order_messages(_order(), settlement), PaymentMessage) == []


class TestFulfilmentRouting:
    def test_shipped_product(self):
        messages = build_order_messages(_order("Added Cost"), _ecash_settlement())

        [info] = _of_type(messages, InfoMessage)
        assert info.kind == InfoKind.SHIPPING
        [receipt] = _of_type(messages, ReceiptMessage)
        assert receipt.kind == ReceiptKind.CONFIRMED
        assert receipt.recipient_pubkey == BUYER
        assert receipt.seller_npub == npub_encode(SELLER)

    def test_contact_for_pickup_product(self):
        messages = build_order_messages(_order("Pickup", shipping=False, contact=True), _ecash_settlement())

        [info] = _of_type(messages, InfoMessage)
        assert info.kind == InfoKind.CONTACT
        assert _of_type(messages, ReceiptMessage)[0].kind == ReceiptKind.CONFIRMED

    def test_dual_type_follows_submitted_form(self):
        shipped = build_order_messages(_order("Free/Pickup"), _ecash_settlement())
        contacted = build_order_messages(_order("Free/Pickup", shipping=False, contact=True), _ecash_settlement())

        assert _of_type(shipped, InfoMessage)[0].kind == InfoKind.SHIPPING
        assert _of_type(contacted, InfoMessage)[0].kind == InfoKind.CONTACT

    def test_no_form_gets_thank_you_receipt(self):
        messages = build_order_messages(_order("N/A", shipping=False), _ecash_settlement())

        assert _of_type(messages, InfoMessage) == []
        assert _of_type(messages, ReceiptMessage)[0].kind == ReceiptKind.THANK_YOU

    def test_pickup_location_notifies_seller(self):
        messages = build_order_messages(
            _order("Pickup", shipping=False, pickup_location="Barn"), _ecash_settlement()
        )

        [info] = _of_type(messages, InfoMessage)
        assert info.kind == InfoKind.PICKUP
        assert info.buyer_npub == npub_encode(BUYER)
        assert _of_type(messages, ReceiptMessage)[0].kind == ReceiptKind.THANK_YOU


class TestOptionalMessages:
    def test_additional_info(self):
        messages = build_order_messages(_order(additional_info="Gate code 42"), _ecash_settlement())
        kinds = [message.kind for message in _of_type(messages, InfoMessage)]
        assert kinds == [InfoKind.ADDITIONAL_INFO, InfoKind.SHIPPING]

    def test_herdshare_agreement_goes_to_buyer(self):
        messages = build_order_messages(
            _order(herdshare_agreement="https://example.com/agreement.pdf"), _ecash_settlement()
        )
        [herdshare] = _of_type(messages, HerdshareMessage)
        assert herdshare.recipient_pubkey == BUYER

    def test_receipt_is_always_last(self):
        messages = build_order_messages(_order(additional_info="x"), _lightning_settlement())
        assert isinstance(messages[-1], ReceiptMessage)


class TestReceipt:
    def test_receipt_references_order_amount_and_ecash_payment(self):
        [receipt] = _of_type(build_order_messages(_order(), _ecash_settlement()), ReceiptMessage)

        assert receipt.order_id == "order-1"
        assert receipt.amount == 1000
        assert receipt.payment_type == PaymentType.ECASH
        assert receipt.payment_reference == MINT_URL
        assert ("order", "order-1") in receipt.tags()
        assert ("amount", "1000") in receipt.tags()
        assert ("payment", "ecash", MINT_URL) in receipt.tags()

        body = receipt.render()
        assert "Order ID: order-1" in body
        assert "Amount: 1000 sats" in body
        assert f"Payment: ecash ({MINT_URL})" in body

    def test_receipt_references_lightning_invoice(self):
        [receipt] = _of_type(build_order_messages(_order(), _lightning_settlement()), ReceiptMessage)

        assert receipt.payment_type == PaymentType.LIGHTNING
        assert receipt.payment_reference == "lnbc957"
        assert ("payment", "lightning", "lnbc957") in receipt.tags()

    def test_receipt_without_payout_has_no_payment_reference(self):
        settlement = SettlementResult(
            shares=compute_shares(1, 2.1),
            payout=None,
            donation=DonationPayout(amount=1, token="cashuBdonation", recipient_pubkey=PLATFORM),
            remaining=ProofSet.empty(),
        )
        [receipt] = _of_type(build_order_messages(_order(), settlement), ReceiptMessage)

        assert receipt.payment_type is None
        assert not [tag for tag in receipt.tags() if tag[0] == "payment"]
        assert "Payment:" not in receipt.render()
