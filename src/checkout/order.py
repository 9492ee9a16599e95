"""Order value objects and the immutable per-seller OrderContext."""

from dataclasses import dataclass
from enum import Enum
from uuid import uuid4

from protean.fields import Integer, String, Text

from checkout.domain import checkout
from checkout.profiles import SellerProfile
from notifications.message.message import ContactInstructions, OrderProduct, PostalAddress
from settlement.engine.policy import compute_shares


class ShippingType(Enum):
    ADDED_COST = "Added Cost"
    FREE = "Free"
    PICKUP = "Pickup"
    FREE_OR_PICKUP = "Free/Pickup"
    ADDED_COST_OR_PICKUP = "Added Cost/Pickup"
    NOT_APPLICABLE = "N/A"


SHIPS_PRODUCT = {
    ShippingType.ADDED_COST.value,
    ShippingType.FREE.value,
    ShippingType.FREE_OR_PICKUP.value,
    ShippingType.ADDED_COST_OR_PICKUP.value,
}
TAKES_CONTACT = {
    ShippingType.NOT_APPLICABLE.value,
    ShippingType.PICKUP.value,
    ShippingType.FREE_OR_PICKUP.value,
    ShippingType.ADDED_COST_OR_PICKUP.value,
}


@checkout.value_object
class ShippingAddress:
    """Where the seller should ship the order."""

    name = String(required=True, max_length=255)
    address = String(required=True, max_length=255)
    unit = String(max_length=50)
    city = String(required=True, max_length=100)
    postal_code = String(required=True, max_length=20)
    state = String(required=True, max_length=100)
    country = String(required=True, max_length=100)

    def to_postal_address(self) -> PostalAddress:
        return PostalAddress(
            name=self.name,
            address=self.address,
            unit=self.unit,
            city=self.city,
            postal_code=self.postal_code,
            state=self.state,
            country=self.country,
        )


@checkout.value_object
class ContactDetails:
    """How the seller should reach the buyer to finalize the sale."""

    contact = String(required=True, max_length=255)
    contact_type = String(required=True, max_length=50)
    instructions = Text(required=True)

    def to_instructions(self) -> ContactInstructions:
        return ContactInstructions(contact=self.contact, contact_type=self.contact_type, instructions=self.instructions)


@checkout.value_object
class ProductSnapshot:
    """The listing as the buyer saw it, with the options they picked."""

    product_id = String(max_length=255)
    title = String(required=True, max_length=500)
    price = Integer(required=True)
    currency = String(max_length=10, default="sats")
    shipping_type = String(max_length=50)
    required_info = String(max_length=500)
    herdshare_agreement = Text()
    size = String(max_length=50)
    volume = String(max_length=50)
    weight = String(max_length=50)
    pickup_location = String(max_length=255)
    quantity = Integer(default=1, min_value=1)

    def to_order_product(self) -> OrderProduct:
        return OrderProduct(
            title=self.title,
            product_id=self.product_id or "",
            size=self.size,
            volume=self.volume,
            weight=self.weight,
            pickup_location=self.pickup_location,
            quantity=self.quantity,
        )


@dataclass(frozen=True)
class CartItem:
    """One line of the cart: a listing, its seller and what it costs in sats (shipping included)."""

    seller_pubkey: str
    product: ProductSnapshot
    amount: int


@dataclass(frozen=True)
class CheckoutRequest:
    buyer_pubkey: str
    items: tuple[CartItem, ...]
    shipping: ShippingAddress | None = None
    contact: ContactDetails | None = None
    additional_info: str | None = None
    currency: str = "sats"

    @property
    def total_amount(self) -> int:
        return sum(item.amount for item in self.items)


@dataclass(frozen=True)
class OrderContext:
    """Everything one seller's sub-workflow needs, fixed before any money moves."""

    order_id: str
    buyer_pubkey: str
    seller_pubkey: str
    total_amount: int
    donation_percentage: float
    donation_amount: int
    seller_amount: int
    product: ProductSnapshot
    currency: str = "sats"
    shipping: ShippingAddress | None = None
    contact: ContactDetails | None = None
    additional_info: str | None = None
    payment_preference: str = "ecash"
    lightning_address: str | None = None

    @classmethod
    def for_item(cls, request: CheckoutRequest, item: CartItem, profile: SellerProfile, order_id: str | None = None) -> "OrderContext":
        shares = compute_shares(item.amount, profile.donation_percentage)
        return cls(
            order_id=order_id or str(uuid4()),
            buyer_pubkey=request.buyer_pubkey,
            seller_pubkey=item.seller_pubkey,
            total_amount=shares.total,
            donation_percentage=shares.percentage,
            donation_amount=shares.donation,
            seller_amount=shares.seller,
            product=item.product,
            currency=request.currency,
            shipping=request.shipping,
            contact=request.contact,
            additional_info=request.additional_info,
            payment_preference=profile.payment_preference,
            lightning_address=profile.lud16,
        )

    @property
    def wants_lightning(self) -> bool:
        return self.payment_preference == "lightning" and bool(self.lightning_address)

    @property
    def ships(self) -> bool:
        return self.shipping is not None and self.product.shipping_type in SHIPS_PRODUCT

    @property
    def takes_contact(self) -> bool:
        return self.shipping is None and self.contact is not None and self.product.shipping_type in TAKES_CONTACT
