"""Settlement network interface."""

from __future__ import annotations

import abc
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class SettlementReceipt(BaseModel):
    """Inclusion proof for a submitted transaction."""

    tx_hash: str
    block_number: int
    succeeded: bool = True
    gas_used: Optional[int] = None


class SettlementNetwork(metaclass=abc.ABCMeta):
    """Abstract client for the external settlement network.

    Implementations translate transport failures into the typed errors from
    :mod:`paystream.exceptions`: ``RateLimitedError`` and ``NonceConflictError``
    for the retryable classes, ``SettlementNetworkError`` for everything else.
    """

    funding_address: str

    async def connect(self) -> None:
        """Open connections to the network (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Release network resources (no-op by default)."""
        pass

    @abc.abstractmethod
    async def get_balance(self) -> Decimal:
        """Return the current funding account balance in token units."""
        raise NotImplementedError

    @abc.abstractmethod
    async def get_pending_nonce(self) -> int:
        """Return the next sequence number, counting pending transactions."""
        raise NotImplementedError

    @abc.abstractmethod
    async def submit_batch(
        self,
        recipients: List[str],
        amounts: List[int],
        value: int,
        *,
        nonce: int,
        gas_limit: int,
    ) -> str:
        """Submit one batched payment and return its transaction hash.

        ``amounts`` and ``value`` are expressed in base units.
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def wait_for_confirmation(self, tx_hash: str) -> SettlementReceipt:
        """Block until ``tx_hash`` is included in a block."""
        raise NotImplementedError
