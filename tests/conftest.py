"""Shared fixtures."""

import pytest

from broker_service.engine.cursor import DrainPolicy
from fakes import FakeBroker, FakeMessage, FakeTransport


@pytest.fixture
def broker():
    """Broker with queue Q holding m1, m2, m3."""
    broker = FakeBroker()
    broker.put(
        "Q",
        FakeMessage("m1", body="one", correlation_id="c1"),
        FakeMessage("m2", body="two", correlation_id="c2"),
        FakeMessage("m3", body="three", correlation_id="c3"),
    )
    return broker


@pytest.fixture
def transport(broker):
    return FakeTransport(broker)


@pytest.fixture
def policy():
    return DrainPolicy(receive_timeout=0.01, max_receive_errors=3, enumeration_limit=100)
