"""Receipt templates — the buyer's confirmation, last message of every order."""


def _order_summary(message) -> str:
    """Order id, amount and payment reference, for whichever of them the receipt carries."""
    lines = []
    if message.order_id:
        lines.append(f"Order ID: {message.order_id}")
    if message.amount:
        lines.append(f"Amount: {message.amount} sats")
    if message.payment_type is not None:
        reference = f" ({message.payment_reference})" if message.payment_reference else ""
        lines.append(f"Payment: {message.payment_type.value}{reference}")
    return "\n\n" + "\n".join(lines) if lines else ""


class ConfirmedReceiptTemplate:
    name = "receipt_confirmed"

    @staticmethod
    def render(message) -> str:
        product = message.product
        return (
            f"Your order for {product.title}{product.detail_phrase()} was processed successfully! "
            f"If applicable, you should be receiving delivery information from {message.seller_npub} "
            "as soon as they review your order."
            + _order_summary(message)
        )


class ThankYouReceiptTemplate:
    name = "receipt_thank_you"

    @staticmethod
    def render(message) -> str:
        product = message.product
        return (
            f"Thank you for your purchase of {product.title}{product.detail_phrase()} from {message.seller_npub}."
            + _order_summary(message)
        )
