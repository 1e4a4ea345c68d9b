"""In-process settlement network for development and tests."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import deque
from decimal import Decimal
from typing import Any, Deque, Dict, List, Optional

from ..exceptions import NonceConflictError, SettlementNetworkError
from .base import SettlementNetwork, SettlementReceipt

logger = logging.getLogger(__name__)

DEFAULT_FUNDING_ADDRESS = "0x" + "5e" * 20


class SimulatedSettlementNetwork(SettlementNetwork):
    """Simulates balance, sequence numbers and block inclusion locally.

    Failures can be queued with :meth:`fail_next_submissions` to exercise the
    executor's retry handling. Nothing leaves the process.
    """

    def __init__(
        self,
        balance: Decimal | float | str = Decimal("100000"),
        funding_address: str = DEFAULT_FUNDING_ADDRESS,
        amount_decimals: int = 6,
    ) -> None:
        self.funding_address = funding_address
        self.balance = Decimal(str(balance))
        self._amount_decimals = amount_decimals
        self._nonce = 0
        self._block_number = 1000
        self._pending: Dict[str, SettlementReceipt] = {}
        self._failures: Deque[Exception] = deque()
        self._lock = asyncio.Lock()
        self.revert_next = False
        self.submissions: List[Dict[str, Any]] = []
        self.balance_queries = 0
        self.nonce_queries = 0

    def fail_next_submissions(self, *errors: Exception) -> None:
        """Raise ``errors`` from the next submissions, in order."""
        self._failures.extend(errors)

    async def get_balance(self) -> Decimal:
        self.balance_queries += 1
        return self.balance

    async def get_pending_nonce(self) -> int:
        self.nonce_queries += 1
        return self._nonce

    async def submit_batch(
        self,
        recipients: List[str],
        amounts: List[int],
        value: int,
        *,
        nonce: int,
        gas_limit: int,
    ) -> str:
        async with self._lock:
            if self._failures:
                raise self._failures.popleft()
            if nonce != self._nonce:
                raise NonceConflictError(
                    f"nonce {nonce} already used, expected {self._nonce}"
                )
            if len(recipients) != len(amounts):
                raise SettlementNetworkError("recipients and amounts length mismatch")
            if sum(amounts) != value:
                raise SettlementNetworkError("value does not cover batch amounts")

            tx_hash = "0x" + uuid.uuid4().hex + uuid.uuid4().hex
            self._nonce += 1
            self.submissions.append(
                {
                    "tx_hash": tx_hash,
                    "recipients": list(recipients),
                    "amounts": list(amounts),
                    "value": value,
                    "nonce": nonce,
                    "gas_limit": gas_limit,
                }
            )
            succeeded = not self.revert_next
            self.revert_next = False
            if succeeded:
                self.balance -= Decimal(value) / (Decimal(10) ** self._amount_decimals)
            self._pending[tx_hash] = SettlementReceipt(
                tx_hash=tx_hash,
                block_number=0,
                succeeded=succeeded,
                gas_used=21000 + 30000 * len(recipients),
            )
            logger.info(f"Simulated submission {tx_hash} with nonce {nonce}")
            return tx_hash

    async def wait_for_confirmation(self, tx_hash: str) -> SettlementReceipt:
        async with self._lock:
            receipt: Optional[SettlementReceipt] = self._pending.pop(tx_hash, None)
            if receipt is None:
                raise SettlementNetworkError(f"Unknown transaction {tx_hash}")
            self._block_number += 1
            return receipt.model_copy(update={"block_number": self._block_number})
