"""Settlement bounded context — Ecash reconciliation, splitting and payout.

Turns a paid mint quote into bearer proofs, splits them between seller,
platform donation and buyer change, and optionally melts the seller's share
into a Lightning payment. The mint wallet and the Lightning address resolver
are collaborators behind ports.
"""

import structlog
from protean.domain import Domain

settlement = Domain(name="settlement")

logger = structlog.get_logger(__name__)
