import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Sets the protean config environment before any domain module is imported.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.bdd)


# ---------------------------------------------------------------------------
# Domain beds: one per bounded context, set up once per session
# ---------------------------------------------------------------------------
@pytest.fixture(scope="session")
def settlement_bed():
    from protean.integrations.pytest import DomainFixture
    from settlement.domain import settlement

    bed = DomainFixture(settlement)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(scope="session")
def notifications_bed():
    from notifications.domain import notifications
    from protean.integrations.pytest import DomainFixture

    bed = DomainFixture(notifications)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(scope="session")
def checkout_bed(settlement_bed, notifications_bed):
    from checkout.domain import checkout
    from protean.integrations.pytest import DomainFixture

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _reset_adapters():
    """Every test starts from fresh fake adapters and default settings."""
    yield

    from notifications.relay import reset_relay
    from settlement.lightning import reset_resolver
    from settlement.mint import reset_mint
    from shared.config import reset_settings

    reset_mint()
    reset_resolver()
    reset_relay()
    reset_settings()
