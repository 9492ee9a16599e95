"""Notifications bounded context — encrypted order messages.

Builds the ordered set of messages a checkout produces (payment, fee
change, donation, order details, receipt), wraps each one in a seal and
gift wrap, and hands it to the relay transport. Delivery of each message is
tracked for audit; a failed delivery never undoes a settled payment.
"""

import structlog
from protean.domain import Domain

notifications = Domain(name="notifications")

logger = structlog.get_logger(__name__)
