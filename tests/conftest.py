"""Shared fixtures for the paystream test suite."""

import pytest

import paystream.persistence as persistence
from paystream.config import PaystreamConfig, PolicyConfig
from paystream.persistence import InMemoryRepository
from paystream.services import build_services
from paystream.settlement.simulated import SimulatedSettlementNetwork

_ENV_VARS = (
    "PAYSTREAM_CONFIG",
    "PAYSTREAM_DATABASE_URL",
    "DATABASE_URL",
    "PAYSTREAM_SETTLEMENT_MODE",
    "PAYSTREAM_RPC_URL",
    "PAYSTREAM_PRIVATE_KEY",
    "PAYSTREAM_BATCH_PAYER_ADDRESS",
    "PAYSTREAM_APPROVAL_THRESHOLD",
    "PAYSTREAM_LOG_LEVEL",
)


class RecordingNotifier:
    """Keeps every pay stub it is asked to send."""

    def __init__(self):
        self.sent = []

    async def send_pay_stub(self, stub):
        self.sent.append(stub)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    persistence._repository_instance = None
    yield
    persistence._repository_instance = None


@pytest.fixture(autouse=True)
def retry_delays(monkeypatch):
    """Record retry delays instead of sleeping."""
    delays = []

    async def _no_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("paystream.utils.retry.schedule_retry", _no_sleep)
    return delays


@pytest.fixture
def config():
    return PaystreamConfig(policy=PolicyConfig(approval_threshold=10000.0))


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def network():
    return SimulatedSettlementNetwork(balance=100000)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def services(config, repository, network, notifier):
    return build_services(
        config, repository=repository, network=network, notifier=notifier
    )
