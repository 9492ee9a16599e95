"""Process bootstrap for anything that runs a checkout.

Domains are initialized once per process; every checkout then runs inside
the checkout domain context:

    bootstrap()
    with checkout.domain_context():
        result = await CheckoutWorkflow(signer).checkout(request)

PROTEAN_ENV selects the protean config overlay, ENVIRONMENT the log format.
"""

from notifications.domain import notifications
from settlement.domain import settlement
from shared.logging import configure_logging

from checkout.domain import checkout

_initialized = False


def bootstrap(configure_logs: bool = True) -> None:
    global _initialized
    if configure_logs:
        configure_logging()
    if _initialized:
        return

    settlement.init()
    notifications.init()
    checkout.init()
    _initialized = True
