"""Order messages — a closed set of message types with structured fields.

Every message is validated when it is built; its text is a rendering of its
fields (see ``notifications.templates``), never the other way round.

    PaymentMessage    seller   order-payment  ecash token, Lightning payout or fee change
    DonationMessage   platform donation       donation share as an ecash token
    InfoMessage       seller   order-info     additional info, shipping, contact, pickup
    HerdshareMessage  buyer    order-info     herdshare agreement to sign
    ReceiptMessage    buyer    order-info     order confirmation
"""

from dataclasses import dataclass
from enum import Enum

from protean.exceptions import ValidationError


class RecipientRole(Enum):
    SELLER = "seller"
    BUYER = "buyer"
    DONATION = "donation"


class MessageSubject(Enum):
    ORDER_PAYMENT = "order-payment"
    ORDER_INFO = "order-info"
    DONATION = "donation"


class PaymentType(Enum):
    ECASH = "ecash"
    LIGHTNING = "lightning"


class PaymentPurpose(Enum):
    SALE = "sale"
    FEE_CHANGE = "fee_change"


class InfoKind(Enum):
    ADDITIONAL_INFO = "additional_info"
    SHIPPING = "shipping"
    CONTACT = "contact"
    PICKUP = "pickup"


class ReceiptKind(Enum):
    CONFIRMED = "confirmed"
    THANK_YOU = "thank_you"


# Order message "type" tag values understood by marketplace clients
ORDER_TYPE_INFO = 1
ORDER_TYPE_PAYMENT = 3
ORDER_TYPE_RECEIPT = 4


@dataclass(frozen=True)
class OrderProduct:
    title: str
    product_id: str = ""
    size: str | None = None
    volume: str | None = None
    weight: str | None = None
    pickup_location: str | None = None
    quantity: int = 1

    def __post_init__(self) -> None:
        if not self.title or not self.title.strip():
            raise ValidationError({"title": ["Product title is required"]})
        if self.quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

    def detail_phrase(self) -> str:
        """Selected options as a phrase, e.g. " in size M and a 1L (pickup at: Barn)"."""
        phrase = ""
        if self.size:
            phrase += f" in size {self.size}"
        if self.volume:
            phrase += f" and a {self.volume}" if phrase else f" in a {self.volume}"
        if self.weight:
            phrase += f" and weighing {self.weight}" if phrase else f" weighing {self.weight}"
        if self.pickup_location:
            phrase += f" (pickup at: {self.pickup_location})"
        return phrase

    def listing_phrase(self) -> str:
        """ "your Raw Milk listing" or "3 of your Raw Milk listing"."""
        if self.quantity > 1:
            return f"{self.quantity} of your {self.title} listing"
        return f"your {self.title} listing"


@dataclass(frozen=True)
class PostalAddress:
    name: str
    address: str
    city: str
    postal_code: str
    state: str
    country: str
    unit: str | None = None

    def __post_init__(self) -> None:
        errors = {
            name: [f"{label} is required"]
            for name, label in (
                ("name", "Name"),
                ("address", "Address"),
                ("city", "City"),
                ("postal_code", "Postal code"),
                ("state", "State/Province"),
                ("country", "Country"),
            )
            if not (getattr(self, name) or "").strip()
        }
        if errors:
            raise ValidationError(errors)

    def one_line(self) -> str:
        street = f"{self.address} {self.unit}" if self.unit else self.address
        return f"{street}, {self.city}, {self.postal_code}, {self.state}, {self.country}"


@dataclass(frozen=True)
class ContactInstructions:
    contact: str
    contact_type: str
    instructions: str

    def __post_init__(self) -> None:
        errors = {
            name: [f"{label} is required"]
            for name, label in (("contact", "Contact"), ("contact_type", "Contact type"), ("instructions", "Instructions"))
            if not (getattr(self, name) or "").strip()
        }
        if errors:
            raise ValidationError(errors)


@dataclass(frozen=True)
class OrderMessage:
    """Fields shared by every message. Subclasses set ``subject`` and ``role``."""

    recipient_pubkey: str
    order_id: str | None = None

    subject = MessageSubject.ORDER_INFO
    role = RecipientRole.SELLER

    def __post_init__(self) -> None:
        if not self.recipient_pubkey:
            raise ValidationError({"recipient_pubkey": ["Recipient is required"]})

    @property
    def template_name(self) -> str:
        raise NotImplementedError

    def order_tags(self) -> list[tuple[str, ...]]:
        return []

    def tags(self) -> tuple[tuple[str, ...], ...]:
        """Tags for the inner message, after the recipient ``p`` tag."""
        tags: list[tuple[str, ...]] = [("subject", self.subject.value)]
        if self.order_id:
            tags.append(("order", self.order_id))
        tags.extend(self.order_tags())
        return tuple(tags)

    def render(self) -> str:
        from notifications.templates import get_template

        return get_template(self.template_name).render(self)


@dataclass(frozen=True)
class PaymentMessage(OrderMessage):
    product: OrderProduct | None = None
    buyer_npub: str = ""
    payment_type: PaymentType = PaymentType.ECASH
    amount: int = 0
    payment_reference: str = ""
    payment_proof: str = ""
    token: str | None = None
    lightning_address: str | None = None
    purpose: PaymentPurpose = PaymentPurpose.SALE

    subject = MessageSubject.ORDER_PAYMENT

    def __post_init__(self) -> None:
        super().__post_init__()
        errors: dict[str, list[str]] = {}
        if self.amount < 1:
            errors["amount"] = ["Payment amount must be at least 1 sat"]
        if self.product is None:
            errors["product"] = ["Product is required"]
        if self.payment_type == PaymentType.ECASH and not self.token:
            errors["token"] = ["Ecash payments must carry a token"]
        if self.payment_type == PaymentType.LIGHTNING:
            if not self.lightning_address:
                errors["lightning_address"] = ["Lightning payments must name the address paid"]
            if self.purpose == PaymentPurpose.FEE_CHANGE:
                errors["purpose"] = ["Fee change is always paid in ecash"]
        if self.purpose == PaymentPurpose.SALE and not self.buyer_npub:
            errors["buyer_npub"] = ["Buyer is required"]
        if errors:
            raise ValidationError(errors)

    @property
    def template_name(self) -> str:
        if self.purpose == PaymentPurpose.FEE_CHANGE:
            return "fee_change"
        return f"{self.payment_type.value}_payment"

    def order_tags(self) -> list[tuple[str, ...]]:
        tags = [
            ("type", str(ORDER_TYPE_PAYMENT)),
            ("amount", str(self.amount)),
            ("payment", self.payment_type.value, self.payment_reference, self.payment_proof),
        ]
        if self.product.product_id:
            tags.append(("item", self.product.product_id, str(self.product.quantity)))
        return tags


@dataclass(frozen=True)
class DonationMessage(OrderMessage):
    token: str = ""
    amount: int = 0

    subject = MessageSubject.DONATION
    role = RecipientRole.DONATION
    template_name = "donation"

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.amount < 1:
            raise ValidationError({"amount": ["Donation amount must be at least 1 sat"]})
        if not self.token:
            raise ValidationError({"token": ["Donation must carry a token"]})

    def tags(self) -> tuple[tuple[str, ...], ...]:
        # Donations are not tied to an order on the platform side
        return (("subject", self.subject.value),)


@dataclass(frozen=True)
class InfoMessage(OrderMessage):
    kind: InfoKind = InfoKind.ADDITIONAL_INFO
    product: OrderProduct | None = None
    text: str | None = None
    address: PostalAddress | None = None
    contact: ContactInstructions | None = None
    buyer_npub: str = ""

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.product is None:
            raise ValidationError({"product": ["Product is required"]})
        if self.kind == InfoKind.ADDITIONAL_INFO and not (self.text or "").strip():
            raise ValidationError({"text": ["Additional information is empty"]})
        if self.kind == InfoKind.SHIPPING and self.address is None:
            raise ValidationError({"address": ["Shipping messages need an address"]})
        if self.kind == InfoKind.CONTACT and self.contact is None:
            raise ValidationError({"contact": ["Contact messages need contact details"]})
        if self.kind == InfoKind.PICKUP and not self.product.pickup_location:
            raise ValidationError({"pickup_location": ["Pickup messages need a pickup location"]})

    @property
    def template_name(self) -> str:
        return self.kind.value

    def order_tags(self) -> list[tuple[str, ...]]:
        return [("type", str(ORDER_TYPE_INFO)), ("quantity", str(self.product.quantity))]


@dataclass(frozen=True)
class HerdshareMessage(OrderMessage):
    agreement: str = ""
    product: OrderProduct | None = None

    role = RecipientRole.BUYER
    template_name = "herdshare"

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.agreement.strip():
            raise ValidationError({"agreement": ["Herdshare agreement is required"]})

    def order_tags(self) -> list[tuple[str, ...]]:
        quantity = self.product.quantity if self.product else 1
        return [("type", str(ORDER_TYPE_INFO)), ("quantity", str(quantity))]


@dataclass(frozen=True)
class ReceiptMessage(OrderMessage):
    """Confirms the order to the buyer, with the amount paid and the payment reference."""

    kind: ReceiptKind = ReceiptKind.CONFIRMED
    product: OrderProduct | None = None
    seller_npub: str = ""
    amount: int = 0
    payment_type: PaymentType | None = None
    payment_reference: str = ""

    role = RecipientRole.BUYER

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.product is None:
            raise ValidationError({"product": ["Product is required"]})
        if not self.seller_npub:
            raise ValidationError({"seller_npub": ["Seller is required"]})
        if self.amount < 0:
            raise ValidationError({"amount": ["Amount cannot be negative"]})

    @property
    def template_name(self) -> str:
        return f"receipt_{self.kind.value}"

    def order_tags(self) -> list[tuple[str, ...]]:
        tags = [("type", str(ORDER_TYPE_RECEIPT)), ("status", "confirmed")]
        if self.amount:
            tags.append(("amount", str(self.amount)))
        if self.payment_type is not None:
            tags.append(("payment", self.payment_type.value, self.payment_reference))
        return tags


Message = PaymentMessage | DonationMessage | InfoMessage | HerdshareMessage | ReceiptMessage
