"""Checkout bounded context — turns a paid invoice into settled, announced orders.

Orchestrates the settlement and notification contexts for one buyer:
validate the order, create a mint quote, wait for the Lightning payment,
then for every seller in the cart split the proofs, pay the seller and the
platform donation, and deliver the encrypted order messages.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
