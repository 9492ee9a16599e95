"""Shared BDD fixtures and step definitions for checkout settlement."""

import asyncio

import pytest
from checkout.order import CartItem, CheckoutRequest, ProductSnapshot, ShippingAddress
from checkout.profiles import SellerProfile
from notifications.envelope.gift_wrap import open_envelope
from pytest_bdd import given, parsers, then, when
from settlement.engine.engine import PayoutChannel
from settlement.ledger.tokens import decode_token
from settlement.quote.lifecycle import ALREADY_ISSUED_WARNING, QuoteLifecycleError


class CheckoutState:
    """What the scenario has set up so far."""

    def __init__(self):
        self.shipping = None
        self.items = []
        self.result = None


@pytest.fixture()
def state():
    return CheckoutState()


@pytest.fixture()
def error():
    """Container for capturing errors raised in When steps."""
    return {"exc": None}


def _read(relay, keys):
    return [open_envelope(event, keys.private_key)[1].content for event in relay.events_for(keys.public_key)]


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a buyer with a shipping address")
def _buyer_with_address(state):
    state.shipping = ShippingAddress(
        name="Jo Farmer", address="1 Dairy Lane", city="Springfield", postal_code="12345", state="OR", country="US"
    )


@given("a seller who prefers ecash")
def _ecash_seller(profiles, seller_keys):
    profiles.add(SellerProfile(pubkey=seller_keys.public_key, donation_percentage=2.1))


@given(parsers.cfparse('a seller who prefers Lightning at "{address}"'))
def _lightning_seller(profiles, seller_keys, address):
    profiles.add(
        SellerProfile(
            pubkey=seller_keys.public_key,
            donation_percentage=2.1,
            payment_preference="lightning",
            lud16=address,
        )
    )


@given(parsers.cfparse('the seller lists "{title}" for {amount:d} sats'))
def _listing(state, seller_keys, title, amount):
    product = ProductSnapshot(product_id="prod-bdd", title=title, price=amount, shipping_type="Added Cost")
    state.items.append(CartItem(seller_pubkey=seller_keys.public_key, product=product, amount=amount))


@given(parsers.cfparse("the mint reserves {fee_reserve:d} sats for routing fees"))
def _fee_reserve(mint, fee_reserve):
    mint.configure(melt_fee_reserve=fee_reserve, melt_actual_fee=1)


@given("the Lightning payment will fail")
def _melt_fails(mint):
    mint.configure(melt_should_succeed=False, melt_fee_reserve=10)


@given("the buyer never pays the invoice")
def _never_paid(mint):
    mint.configure(paid_after_checks=1000)


@given("the quote was already issued")
def _already_issued(mint):
    from settlement.mint.port import QuoteAlreadyIssued

    mint.configure(mint_error=QuoteAlreadyIssued())


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
def _checkout_request(state, buyer_keys):
    return CheckoutRequest(buyer_pubkey=buyer_keys.public_key, items=tuple(state.items), shipping=state.shipping)


@when("the buyer checks out and pays the invoice")
def _checkout_paid(state, workflow, buyer_keys):
    state.result = asyncio.run(workflow.checkout(_checkout_request(state, buyer_keys)))


@when("the buyer checks out")
def _checkout(state, workflow, buyer_keys, error):
    try:
        state.result = asyncio.run(workflow.checkout(_checkout_request(state, buyer_keys)))
    except QuoteLifecycleError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the checkout is completed")
def _completed(state):
    assert state.result.settled


@then(parsers.cfparse("the seller receives a {amount:d} sat ecash token"))
def _ecash_token(state, amount):
    payout = state.result.orders[0].settlement.payout
    assert payout.channel == PayoutChannel.ECASH
    assert decode_token(payout.token).amount == amount


@then(parsers.cfparse("the platform receives a {amount:d} sat donation"))
def _donation(state, amount):
    assert decode_token(state.result.orders[0].settlement.donation.token).amount == amount


@then(parsers.cfparse("the seller is paid {amount:d} sats over Lightning"))
def _lightning_paid(state, amount):
    payout = state.result.orders[0].settlement.payout
    assert payout.channel == PayoutChannel.LIGHTNING
    assert payout.amount == amount


@then(parsers.cfparse("the seller receives {amount:d} sats of overpaid fee change"))
def _fee_change(state, amount):
    assert decode_token(state.result.orders[0].settlement.payout.change_token).amount == amount


@then(parsers.cfparse("the seller receives {count:d} messages"))
def _seller_messages(relay, seller_keys, count):
    assert len(_read(relay, seller_keys)) == count


@then("the buyer receives a receipt")
def _buyer_receipt(relay, buyer_keys):
    [receipt] = _read(relay, buyer_keys)
    assert "was processed successfully" in receipt


@then("the checkout reports a warning")
def _warning(state):
    assert state.result.warnings


@then(parsers.cfparse('the checkout fails with "{text}"'))
def _fails_with(error, text):
    assert error["exc"] is not None
    assert text in str(error["exc"])


@then("the buyer is warned to check their wallet balance")
def _already_issued_warning(state):
    assert not state.result.settled
    assert state.result.warnings == (ALREADY_ISSUED_WARNING,)


@then("nobody receives a message")
def _no_messages(relay):
    assert relay.published == []
