"""Settlement network factory and executor."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..config import PaystreamConfig, SettlementConfig, load_config
from .base import SettlementNetwork, SettlementReceipt
from .executor import AccountLocks, SettlementExecutor
from .simulated import SimulatedSettlementNetwork


def get_settlement_network(
    mode: Optional[str] = None, config: Optional[PaystreamConfig] = None
) -> SettlementNetwork:
    """Factory returning the configured settlement network.

    Chosen once at startup; the rest of the pipeline only sees the
    ``SettlementNetwork`` interface.
    """

    config = config or load_config()
    settlement: SettlementConfig = config.settlement
    mode = (mode or settlement.mode).lower()

    if mode == "simulated":
        return SimulatedSettlementNetwork(
            balance=Decimal(str(settlement.simulated_balance)),
            amount_decimals=settlement.amount_decimals,
        )
    elif mode == "live":
        from .live import Web3SettlementNetwork

        if not settlement.private_key:
            raise ValueError("PAYSTREAM_PRIVATE_KEY is required for live settlement")
        return Web3SettlementNetwork(
            rpc_url=settlement.rpc_url,
            private_key=settlement.private_key,
            batch_payer_address=settlement.batch_payer_address or "",
            balance_decimals=settlement.balance_decimals,
            confirmation_timeout=settlement.confirmation_timeout,
        )
    else:
        raise ValueError(f"Unsupported settlement mode: {mode}")


__all__ = [
    "AccountLocks",
    "SettlementExecutor",
    "SettlementNetwork",
    "SettlementReceipt",
    "SimulatedSettlementNetwork",
    "get_settlement_network",
]
