"""Template registry — maps a message's template name to the class that renders it."""

from notifications.templates.donation import DonationTemplate
from notifications.templates.herdshare import HerdshareTemplate
from notifications.templates.order_info import (
    AdditionalInfoTemplate,
    ContactTemplate,
    PickupTemplate,
    ShippingTemplate,
)
from notifications.templates.payment import EcashPaymentTemplate, FeeChangeTemplate, LightningPaymentTemplate
from notifications.templates.receipt import ConfirmedReceiptTemplate, ThankYouReceiptTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    template.name: template
    for template in (
        EcashPaymentTemplate,
        LightningPaymentTemplate,
        FeeChangeTemplate,
        DonationTemplate,
        AdditionalInfoTemplate,
        ShippingTemplate,
        ContactTemplate,
        PickupTemplate,
        HerdshareTemplate,
        ConfirmedReceiptTemplate,
        ThankYouReceiptTemplate,
    )
}


def get_template(name: str):
    """Look up a template class by name."""
    template_cls = TEMPLATE_REGISTRY.get(name)
    if template_cls is None:
        raise ValueError(f"No template registered for message: {name}")
    return template_cls
