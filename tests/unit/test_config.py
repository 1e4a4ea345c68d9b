"""Tests for configuration loading."""

import pytest

from paystream.config import load_config
from paystream.persistence import (
    InMemoryRepository,
    PostgresRepository,
    SQLiteRepository,
    get_repository,
)
from paystream.settlement import SimulatedSettlementNetwork, get_settlement_network


def test_defaults_without_config_file():
    config = load_config()

    assert config.policy.approval_threshold == 10000.0
    assert config.settlement.mode == "simulated"
    assert config.settlement.max_attempts == 3
    assert config.payroll.pay_period == "biweekly"
    assert config.notifications.backend == "log"
    assert config.database_url is None


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "paystream.yaml"
    config_path.write_text(
        """
policy:
  approval_threshold: 2500
settlement:
  max_attempts: 5
  rate_limit_backoff: 0.5
payroll:
  pay_period: monthly
  tax_rate: 0.25
"""
    )
    monkeypatch.setenv("PAYSTREAM_CONFIG", str(config_path))

    config = load_config()
    assert config.policy.approval_threshold == 2500
    assert config.settlement.max_attempts == 5
    assert config.settlement.rate_limit_backoff == 0.5
    assert config.payroll.pay_period == "monthly"
    assert config.payroll.tax_rate == 0.25


def test_environment_overrides_yaml(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("policy:\n  approval_threshold: 2500\n")
    monkeypatch.setenv("PAYSTREAM_APPROVAL_THRESHOLD", "7500")
    monkeypatch.setenv("PAYSTREAM_SETTLEMENT_MODE", "LIVE")
    monkeypatch.setenv("PAYSTREAM_PRIVATE_KEY", "0x" + "11" * 32)
    monkeypatch.setenv("DATABASE_URL", f"sqlite://{tmp_path / 'wf.db'}")

    config = load_config(str(config_path))
    assert config.policy.approval_threshold == 7500
    assert config.settlement.mode == "live"
    assert config.settlement.private_key == "0x" + "11" * 32
    assert config.database_url.startswith("sqlite://")


def test_invalid_settlement_mode_is_rejected(monkeypatch):
    monkeypatch.setenv("PAYSTREAM_SETTLEMENT_MODE", "carrier-pigeon")
    with pytest.raises(ValueError):
        load_config()


def test_get_repository_uses_database_url(tmp_path):
    assert isinstance(get_repository(), InMemoryRepository)
    assert isinstance(
        get_repository(database_url=f"sqlite://{tmp_path / 'wf.db'}"), SQLiteRepository
    )
    assert isinstance(
        get_repository(database_url="postgresql://user@localhost/db"), PostgresRepository
    )
    with pytest.raises(ValueError):
        get_repository(database_url="mysql://localhost/db")


def test_get_repository_reuses_instance():
    repo = get_repository()
    assert get_repository() is repo


def test_get_settlement_network_uses_config(monkeypatch):
    network = get_settlement_network()
    assert isinstance(network, SimulatedSettlementNetwork)

    monkeypatch.setenv("PAYSTREAM_SETTLEMENT_MODE", "live")
    with pytest.raises(ValueError):
        get_settlement_network()
