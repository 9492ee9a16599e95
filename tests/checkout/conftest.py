import pytest
from checkout.profiles import InMemorySellerProfiles, SellerProfile
from checkout.storage import InMemoryOrderRecordStore, InMemoryProofStore
from checkout.workflow import CheckoutWorkflow
from notifications.envelope.gift_wrap import LocalSigner
from notifications.envelope.keys import KeyPair
from notifications.relay.fake_relay import FakeRelay
from settlement.lightning.fake_resolver import FakeLightningResolver
from settlement.mint.fake_adapter import FakeMint


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield


async def no_sleep(delay):
    return None


@pytest.fixture()
def buyer_keys():
    return KeyPair.generate()


@pytest.fixture()
def seller_keys():
    return KeyPair.generate()


@pytest.fixture()
def mint():
    return FakeMint()


@pytest.fixture()
def relay():
    return FakeRelay()


@pytest.fixture()
def resolver():
    return FakeLightningResolver()


@pytest.fixture()
def profiles():
    return InMemorySellerProfiles()


@pytest.fixture()
def proof_store():
    return InMemoryProofStore()


@pytest.fixture()
def order_records():
    return InMemoryOrderRecordStore()


@pytest.fixture()
def workflow(buyer_keys, mint, relay, resolver, profiles, proof_store, order_records):
    return CheckoutWorkflow(
        LocalSigner(buyer_keys),
        wallet=mint,
        relay=relay,
        resolver=resolver,
        profiles=profiles,
        proof_store=proof_store,
        order_records=order_records,
        sleep=no_sleep,
    )


@pytest.fixture()
def lightning_seller(profiles, seller_keys):
    profiles.add(
        SellerProfile(
            pubkey=seller_keys.public_key,
            donation_percentage=2.1,
            payment_preference="lightning",
            lud16="farmer@getalby.com",
        )
    )
    return seller_keys
