"""Payment templates — sent to the seller with (or about) their share."""

from shared.config import get_settings


class EcashPaymentTemplate:
    name = "ecash_payment"

    @staticmethod
    def render(message) -> str:
        product = message.product
        return (
            f"This is a Cashu token payment from {message.buyer_npub} for {product.listing_phrase()}"
            f"{product.detail_phrase()} on {get_settings().marketplace_name}: {message.token}"
        )


class LightningPaymentTemplate:
    name = "lightning_payment"

    @staticmethod
    def render(message) -> str:
        product = message.product
        return (
            f"You have received a payment from {message.buyer_npub} for {product.listing_phrase()}"
            f"{product.detail_phrase()} on {get_settings().marketplace_name}! "
            f"Check your Lightning address ({message.lightning_address}) for your sats."
        )


class FeeChangeTemplate:
    name = "fee_change"

    @staticmethod
    def render(message) -> str:
        return f"Overpaid fee change: {message.token}"
