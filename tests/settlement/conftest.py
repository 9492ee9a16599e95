import pytest


@pytest.fixture(autouse=True)
def _ctx(settlement_bed):
    with settlement_bed.domain_context():
        yield
