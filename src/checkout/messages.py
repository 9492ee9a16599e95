"""Build the order messages for one settled seller order."""

from notifications.envelope.keys import npub_encode
from notifications.message.message import (
    DonationMessage,
    HerdshareMessage,
    InfoKind,
    InfoMessage,
    Message,
    PaymentMessage,
    PaymentPurpose,
    PaymentType,
    ReceiptKind,
    ReceiptMessage,
)
from settlement.engine.engine import PayoutChannel, SellerPayout, SettlementResult

from checkout.order import OrderContext


def _payment_messages(order: OrderContext, payout: SellerPayout, buyer_npub: str) -> list[Message]:
    product = order.product.to_order_product()

    if payout.channel == PayoutChannel.ECASH:
        return [
            PaymentMessage(
                recipient_pubkey=order.seller_pubkey,
                order_id=order.order_id,
                product=product,
                buyer_npub=buyer_npub,
                payment_type=PaymentType.ECASH,
                amount=payout.amount,
                payment_reference=payout.payment_reference,
                payment_proof=payout.payment_proof,
                token=payout.token,
            )
        ]

    messages: list[Message] = [
        PaymentMessage(
            recipient_pubkey=order.seller_pubkey,
            order_id=order.order_id,
            product=product,
            buyer_npub=buyer_npub,
            payment_type=PaymentType.LIGHTNING,
            amount=payout.amount,
            payment_reference=payout.payment_reference,
            payment_proof=payout.payment_proof,
            lightning_address=payout.lightning_address,
        )
    ]
    if payout.change_token:
        messages.append(
            PaymentMessage(
                recipient_pubkey=order.seller_pubkey,
                order_id=order.order_id,
                product=product,
                payment_type=PaymentType.ECASH,
                purpose=PaymentPurpose.FEE_CHANGE,
                amount=payout.change_amount,
                payment_reference=payout.mint_url,
                payment_proof=payout.change.to_json(),
                token=payout.change_token,
            )
        )
    return messages


def build_order_messages(order: OrderContext, settlement: SettlementResult) -> list[Message]:
    """Every message this order produces, in no particular order."""
    buyer_npub = npub_encode(order.buyer_pubkey)
    seller_npub = npub_encode(order.seller_pubkey)
    product = order.product.to_order_product()
    payout = settlement.payout
    messages: list[Message] = []

    if payout is not None:
        messages.extend(_payment_messages(order, payout, buyer_npub))

    if settlement.donation is not None:
        messages.append(
            DonationMessage(
                recipient_pubkey=settlement.donation.recipient_pubkey,
                order_id=order.order_id,
                token=settlement.donation.token,
                amount=settlement.donation.amount,
            )
        )

    if order.additional_info:
        messages.append(
            InfoMessage(
                recipient_pubkey=order.seller_pubkey,
                order_id=order.order_id,
                kind=InfoKind.ADDITIONAL_INFO,
                product=product,
                text=order.additional_info,
            )
        )

    if order.product.herdshare_agreement:
        messages.append(
            HerdshareMessage(
                recipient_pubkey=order.buyer_pubkey,
                order_id=order.order_id,
                agreement=order.product.herdshare_agreement,
                product=product,
            )
        )

    receipt_kind = ReceiptKind.CONFIRMED
    if order.ships:
        messages.append(
            InfoMessage(
                recipient_pubkey=order.seller_pubkey,
                order_id=order.order_id,
                kind=InfoKind.SHIPPING,
                product=product,
                address=order.shipping.to_postal_address(),
            )
        )
    elif order.takes_contact:
        messages.append(
            InfoMessage(
                recipient_pubkey=order.seller_pubkey,
                order_id=order.order_id,
                kind=InfoKind.CONTACT,
                product=product,
                contact=order.contact.to_instructions(),
            )
        )
    else:
        receipt_kind = ReceiptKind.THANK_YOU
        if product.pickup_location:
            messages.append(
                InfoMessage(
                    recipient_pubkey=order.seller_pubkey,
                    order_id=order.order_id,
                    kind=InfoKind.PICKUP,
                    product=product,
                    buyer_npub=buyer_npub,
                )
            )

    messages.append(
        ReceiptMessage(
            recipient_pubkey=order.buyer_pubkey,
            order_id=order.order_id,
            kind=receipt_kind,
            product=product,
            seller_npub=seller_npub,
            amount=order.total_amount,
            payment_type=PaymentType(payout.channel.value) if payout is not None else None,
            payment_reference=payout.payment_reference if payout is not None else "",
        )
    )
    return messages
