from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel


class PolicyConfig(BaseModel):
    """Thresholds used by the decision engine."""

    approval_threshold: float = 10000.0
    expense_threshold: float = 5000.0
    salary_min: float = 0.0
    salary_max: float = 500000.0


class SettlementConfig(BaseModel):
    """Settlement network and retry settings."""

    mode: Literal["simulated", "live"] = "simulated"
    rpc_url: str = "https://rpc-arc-testnet.circle.com"
    private_key: Optional[str] = None
    batch_payer_address: Optional[str] = None
    explorer_url: str = "https://testnet.arcscan.app/tx/"
    max_attempts: int = 3
    rate_limit_backoff: float = 2.0
    nonce_conflict_backoff: float = 1.0
    base_gas: int = 500000
    gas_per_payee: int = 100000
    amount_decimals: int = 6
    balance_decimals: int = 18
    confirmation_timeout: Optional[float] = None
    simulated_balance: float = 100000.0


class PayrollConfig(BaseModel):
    """Payroll math settings."""

    pay_period: Literal["weekly", "biweekly", "monthly"] = "biweekly"
    standard_hours: float = 80.0
    tax_rate: float = 0.20
    fixed_pay_per_employee: Optional[float] = None


class SmtpConfig(BaseModel):
    host: Optional[str] = None
    port: int = 587
    username: Optional[str] = None
    password: Optional[str] = None
    from_address: str = "Paystream <payroll@paystream.ai>"


class NotificationConfig(BaseModel):
    """Deliver-stage notification settings."""

    backend: Literal["log", "smtp", "webhook"] = "log"
    smtp: SmtpConfig = SmtpConfig()
    webhook_url: Optional[str] = None


class ApiConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8000


class PaystreamConfig(BaseModel):
    """Top-level configuration model."""

    policy: PolicyConfig = PolicyConfig()
    settlement: SettlementConfig = SettlementConfig()
    payroll: PayrollConfig = PayrollConfig()
    notifications: NotificationConfig = NotificationConfig()
    api: ApiConfig = ApiConfig()
    database_url: Optional[str] = None
    log_level: str = "INFO"


def load_config(path: Optional[str] = None) -> PaystreamConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to PAYSTREAM_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("PAYSTREAM_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = PaystreamConfig(**data)
    else:
        config = PaystreamConfig()

    env_db_url = os.getenv("PAYSTREAM_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url

    settlement = config.settlement
    if os.getenv("PAYSTREAM_SETTLEMENT_MODE"):
        settlement.mode = os.environ["PAYSTREAM_SETTLEMENT_MODE"].lower()
    settlement.rpc_url = os.getenv("PAYSTREAM_RPC_URL", settlement.rpc_url)
    settlement.private_key = os.getenv("PAYSTREAM_PRIVATE_KEY", settlement.private_key)
    settlement.batch_payer_address = os.getenv(
        "PAYSTREAM_BATCH_PAYER_ADDRESS", settlement.batch_payer_address
    )

    threshold = os.getenv("PAYSTREAM_APPROVAL_THRESHOLD")
    if threshold:
        config.policy.approval_threshold = float(threshold)
    config.log_level = os.getenv("PAYSTREAM_LOG_LEVEL", config.log_level)

    # Re-validate so environment values go through the same checks as YAML.
    return PaystreamConfig.model_validate(config.model_dump())
