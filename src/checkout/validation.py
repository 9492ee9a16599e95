"""Pre-flight checks, run before a mint quote is created.

All problems are collected and raised together as one
``ValidationError({field: [messages]})``; nothing has been charged yet.
"""

from protean.exceptions import ValidationError

from checkout.order import CheckoutRequest, ContactDetails, ShippingAddress, ShippingType

SUPPORTED_CURRENCIES = ("sats", "sat")

SHIPPING_FORM_FIELDS = {
    "Name": "name",
    "Address": "address",
    "Unit": "unit",
    "City": "city",
    "Postal Code": "postal_code",
    "State/Province": "state",
    "Country": "country",
}
CONTACT_FORM_FIELDS = {
    "Contact": "contact",
    "Contact Type": "contact_type",
    "Instructions": "instructions",
}

_SHIPPING_ONLY = {ShippingType.ADDED_COST.value, ShippingType.FREE.value}


def _missing(form: dict, fields: dict[str, str], optional: tuple[str, ...] = ()) -> dict[str, list[str]]:
    return {
        attr: [f"{label} is required"]
        for label, attr in fields.items()
        if label not in optional and not str(form.get(label) or "").strip()
    }


def parse_form(form: dict) -> tuple[ShippingAddress | None, ContactDetails | None, str | None]:
    """Read the checkout form (shipping or contact fields, plus ``Required``).

    The shipping form wins when any shipping field is filled in.
    """
    additional_info = str(form.get("Required") or "").strip() or None

    if any(str(form.get(label) or "").strip() for label in SHIPPING_FORM_FIELDS):
        errors = _missing(form, SHIPPING_FORM_FIELDS, optional=("Unit",))
        if errors:
            raise ValidationError(errors)
        values = {attr: str(form.get(label) or "").strip() or None for label, attr in SHIPPING_FORM_FIELDS.items()}
        return ShippingAddress(**values), None, additional_info

    if any(str(form.get(label) or "").strip() for label in CONTACT_FORM_FIELDS):
        errors = _missing(form, CONTACT_FORM_FIELDS)
        if errors:
            raise ValidationError(errors)
        values = {attr: str(form[label]).strip() for label, attr in CONTACT_FORM_FIELDS.items()}
        return None, ContactDetails(**values), additional_info

    return None, None, additional_info


def validate_checkout(request: CheckoutRequest) -> None:
    errors: dict[str, list[str]] = {}

    if not request.buyer_pubkey:
        errors.setdefault("buyer_pubkey", []).append("Sign in before checking out")
    if not request.items:
        errors.setdefault("items", []).append("Cart is empty")
    if request.currency.lower() not in SUPPORTED_CURRENCIES:
        errors.setdefault("currency", []).append(f"Unsupported currency: {request.currency}")

    for item in request.items:
        title = item.product.title
        if item.amount < 1:
            errors.setdefault("amount", []).append(f"Price of {title} must be at least 1 sat")
        if not item.seller_pubkey:
            errors.setdefault("seller_pubkey", []).append(f"{title} has no seller")
        if item.product.required_info and not (request.additional_info or "").strip():
            errors.setdefault("additional_info", []).append(f"{title} requires: {item.product.required_info}")
        if item.product.shipping_type in _SHIPPING_ONLY and request.shipping is None:
            errors.setdefault("shipping", []).append(f"{title} must be shipped; a shipping address is required")

    if errors:
        raise ValidationError(errors)
