"""Order information templates — what the seller needs to fulfil the order."""

from shared.config import get_settings


class AdditionalInfoTemplate:
    name = "additional_info"

    @staticmethod
    def render(message) -> str:
        return f"Additional customer information: {message.text}"


class ShippingTemplate:
    name = "shipping"

    @staticmethod
    def render(message) -> str:
        address = message.address
        return f"Please ship the product{message.product.detail_phrase()} to {address.name} at {address.one_line()}."


class ContactTemplate:
    name = "contact"

    @staticmethod
    def render(message) -> str:
        product = message.product
        contact = message.contact
        return (
            f"To finalize the sale of your {product.title} listing{product.detail_phrase()} "
            f"on {get_settings().marketplace_name}, please contact {contact.contact} over "
            f"{contact.contact_type} using the following instructions: {contact.instructions}"
        )


class PickupTemplate:
    name = "pickup"

    @staticmethod
    def render(message) -> str:
        product = message.product
        return (
            f"{message.buyer_npub} will pick up {product.listing_phrase()}{product.detail_phrase()} "
            f"from {get_settings().marketplace_name}. Please reach out to arrange a pickup time."
        )
