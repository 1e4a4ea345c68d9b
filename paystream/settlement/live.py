"""Settlement network backed by an EVM JSON-RPC endpoint via web3.py."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import TimeExhausted

from ..constants import BATCH_PAYER_ABI
from ..exceptions import (
    NonceConflictError,
    RateLimitedError,
    SettlementNetworkError,
)
from .base import SettlementNetwork, SettlementReceipt

logger = logging.getLogger(__name__)

RATE_LIMIT_CODES = frozenset({429, -32005})
RATE_LIMIT_MARKERS = ("rate limit", "request limit", "too many requests", "limit exceeded")
NONCE_MARKERS = (
    "nonce",
    "already known",
    "already been used",
    "replacement transaction underpriced",
)
# Receipt polling window used when no operator timeout is configured.
POLL_WINDOW = 120.0


def _rpc_error(exc: Exception) -> Tuple[Optional[int], Optional[str]]:
    payload = getattr(exc, "rpc_response", None)
    if payload is None and exc.args and isinstance(exc.args[0], dict):
        payload = {"error": exc.args[0]}
    error = (payload or {}).get("error") if isinstance(payload, dict) else None
    if isinstance(error, dict):
        return error.get("code"), error.get("message")
    if isinstance(error, str):
        return None, error
    return None, None


def classify_error(exc: Exception) -> SettlementNetworkError:
    """Map a raw client failure onto the settlement error taxonomy."""
    if isinstance(exc, SettlementNetworkError):
        return exc
    code, message = _rpc_error(exc)
    text = (message or str(exc)).lower()
    if getattr(exc, "status", None) == 429 or code in RATE_LIMIT_CODES:
        return RateLimitedError(text)
    if any(marker in text for marker in RATE_LIMIT_MARKERS):
        return RateLimitedError(text)
    if any(marker in text for marker in NONCE_MARKERS):
        return NonceConflictError(text)
    return SettlementNetworkError(text or exc.__class__.__name__)


class Web3SettlementNetwork(SettlementNetwork):
    """Pays through a deployed BatchPayer contract.

    The funding account signs locally with ``private_key``; the batch total is
    sent as the transaction value.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        batch_payer_address: str,
        balance_decimals: int = 18,
        confirmation_timeout: Optional[float] = None,
    ) -> None:
        if not batch_payer_address:
            raise ValueError("batch_payer_address is required for live settlement")
        self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._account = self._w3.eth.account.from_key(private_key)
        self.funding_address = self._account.address
        self._contract = self._w3.eth.contract(
            address=Web3.to_checksum_address(batch_payer_address),
            abi=BATCH_PAYER_ABI,
        )
        self._balance_decimals = balance_decimals
        self._confirmation_timeout = confirmation_timeout

    async def _guard(self, awaitable: Any) -> Any:
        try:
            return await awaitable
        except (SettlementNetworkError, TimeExhausted):
            raise
        except Exception as exc:
            raise classify_error(exc) from exc

    async def get_balance(self) -> Decimal:
        raw = await self._guard(self._w3.eth.get_balance(self.funding_address))
        return Decimal(raw) / (Decimal(10) ** self._balance_decimals)

    async def get_pending_nonce(self) -> int:
        return await self._guard(
            self._w3.eth.get_transaction_count(self.funding_address, "pending")
        )

    async def submit_batch(
        self,
        recipients: List[str],
        amounts: List[int],
        value: int,
        *,
        nonce: int,
        gas_limit: int,
    ) -> str:
        return await self._guard(
            self._sign_and_send(recipients, amounts, value, nonce, gas_limit)
        )

    async def _sign_and_send(
        self,
        recipients: List[str],
        amounts: List[int],
        value: int,
        nonce: int,
        gas_limit: int,
    ) -> str:
        checksummed = [Web3.to_checksum_address(r) for r in recipients]
        tx = await self._contract.functions.batchPay(checksummed, amounts).build_transaction(
            {
                "from": self.funding_address,
                "value": value,
                "nonce": nonce,
                "gas": gas_limit,
            }
        )
        signed = self._account.sign_transaction(tx)
        tx_hash = await self._w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(tx_hash)

    async def wait_for_confirmation(self, tx_hash: str) -> SettlementReceipt:
        timeout = self._confirmation_timeout or POLL_WINDOW
        while True:
            try:
                receipt = await self._guard(
                    self._w3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
                )
                break
            except TimeExhausted:
                if self._confirmation_timeout is not None:
                    raise SettlementNetworkError(
                        f"Transaction {tx_hash} not confirmed within {timeout}s"
                    ) from None
                logger.info(f"Still waiting for confirmation of {tx_hash}")
        return SettlementReceipt(
            tx_hash=tx_hash,
            block_number=receipt["blockNumber"],
            succeeded=receipt["status"] == 1,
            gas_used=receipt.get("gasUsed"),
        )
