"""Batch settlement execution with balance verification and bounded retries."""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import SettlementConfig
from ..constants import is_valid_address
from ..contracts import BatchPaymentEmployee, BatchPaymentResult
from ..exceptions import (
    InsufficientFundsError,
    SettlementNetworkError,
    SubmissionError,
    TransientNetworkError,
    ValidationError,
)
from ..persistence.repository import EmployeeRepository
from ..utils import retry
from ..utils.retry import RetryPolicy
from .base import SettlementNetwork, SettlementReceipt

logger = logging.getLogger(__name__)

class AccountLocks:
    """One lock per funding account, so an account has one settlement in flight.

    Created by the composition root and shared by every executor it builds.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_account(self, address: str) -> asyncio.Lock:
        return self._locks.setdefault(address.lower(), asyncio.Lock())

    def __len__(self) -> int:
        return len(self._locks)


class SettlementExecutor:
    """Pays a list of payees in one atomic batched transaction.

    The executor never splits a batch: either every payee is included in the
    single submitted transaction or nothing is submitted at all. Once the
    transaction is confirmed the payees are mirrored as ``paid`` in the store;
    that mirror is best-effort because the network is the source of truth.
    """

    def __init__(
        self,
        network: SettlementNetwork,
        employees: EmployeeRepository,
        config: Optional[SettlementConfig] = None,
        locks: Optional[AccountLocks] = None,
    ) -> None:
        self._network = network
        self._locks = locks if locks is not None else AccountLocks()
        self._employees = employees
        self._config = config or SettlementConfig()
        self._retry = RetryPolicy(
            max_attempts=self._config.max_attempts,
            rate_limit_backoff=self._config.rate_limit_backoff,
            nonce_conflict_backoff=self._config.nonce_conflict_backoff,
        )

    @property
    def network(self) -> SettlementNetwork:
        return self._network

    def gas_limit_for(self, payee_count: int) -> int:
        """Execution budget grows with the number of recipients."""
        return self._config.base_gas + payee_count * self._config.gas_per_payee

    def to_base_units(self, amount: float) -> int:
        scaled = Decimal(str(amount)) * (Decimal(10) ** self._config.amount_decimals)
        return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))

    def _prepare(
        self, payees: Sequence[BatchPaymentEmployee]
    ) -> Tuple[List[str], List[int]]:
        if not payees:
            raise ValidationError("No employees to pay")

        recipients: List[str] = []
        amounts: List[int] = []
        for payee in payees:
            if not is_valid_address(payee.wallet_address):
                raise ValidationError(
                    f"Invalid wallet address format for {payee.employee_id}: "
                    f"{payee.wallet_address}"
                )
            units = self.to_base_units(payee.net_pay)
            if payee.net_pay <= 0 or units <= 0:
                raise ValidationError(
                    f"Invalid payment amount for {payee.employee_id}: {payee.net_pay}"
                )
            recipients.append(payee.wallet_address.lower())
            amounts.append(units)
        return recipients, amounts

    async def get_balance(self) -> Decimal:
        """Current funding balance, queried fresh from the network."""
        return await self._network.get_balance()

    async def execute_batch(
        self, payees: Sequence[BatchPaymentEmployee]
    ) -> BatchPaymentResult:
        """Validate, fund-check, submit, confirm and mirror one payroll batch.

        Raises:
            ValidationError: A payee has a malformed address or non-positive
                amount. Raised before any network call.
            InsufficientFundsError: The funding balance is below the total.
            SubmissionError: Submission failed after the retry budget or the
                transaction was not confirmed.
        """
        recipients, amounts = self._prepare(payees)
        value = sum(amounts)
        total = Decimal(value) / (Decimal(10) ** self._config.amount_decimals)
        logger.info(f"Executing batch payment for {len(payees)} employees, total {total:.2f}")

        async with self._locks.for_account(self._network.funding_address):
            try:
                balance = await self._network.get_balance()
            except SettlementNetworkError as exc:
                raise SubmissionError(f"Could not read funding balance: {exc}") from exc
            logger.info(f"Funding balance {balance:.2f}")
            if balance < total:
                raise InsufficientFundsError(required=total, available=balance)

            tx_hash, attempts = await self._submit(recipients, amounts, value)
            receipt = await self._confirm(tx_hash, attempts)

        logger.info(f"Payment {tx_hash} confirmed in block {receipt.block_number}")
        await self._mirror_paid(payees, tx_hash)

        explorer = self._config.explorer_url
        return BatchPaymentResult(
            tx_hash=tx_hash,
            total_paid=float(total),
            employee_count=len(payees),
            block_number=receipt.block_number,
            explorer_url=f"{explorer}{tx_hash}" if explorer else None,
            gas_used=receipt.gas_used,
        )

    async def _submit(
        self, recipients: List[str], amounts: List[int], value: int
    ) -> Tuple[str, int]:
        max_attempts = self._retry.max_attempts
        gas_limit = self.gas_limit_for(len(recipients))
        last_error: Optional[TransientNetworkError] = None

        for attempt in range(1, max_attempts + 1):
            try:
                nonce = await self._network.get_pending_nonce()
                logger.info(f"Attempt {attempt}/{max_attempts} using nonce {nonce}")
                tx_hash = await self._network.submit_batch(
                    recipients, amounts, value, nonce=nonce, gas_limit=gas_limit
                )
                logger.info(f"Submitted transaction {tx_hash}")
                return tx_hash, attempt
            except TransientNetworkError as exc:
                last_error = exc
                if attempt < max_attempts:
                    delay = self._retry.delay_for(exc)
                    logger.warning(
                        f"{exc.kind} on attempt {attempt}/{max_attempts}, retrying in {delay}s"
                    )
                    await retry.schedule_retry(delay)
            except SettlementNetworkError as exc:
                raise SubmissionError(
                    f"Batch submission failed: {exc}", attempts=attempt
                ) from exc

        raise SubmissionError(
            f"Failed to submit transaction after {max_attempts} attempts: {last_error}",
            attempts=max_attempts,
        ) from last_error

    async def _confirm(self, tx_hash: str, attempts: int) -> SettlementReceipt:
        # Past this point the transaction is on the network and cannot be recalled.
        try:
            receipt = await self._network.wait_for_confirmation(tx_hash)
        except SettlementNetworkError as exc:
            raise SubmissionError(
                f"Transaction {tx_hash} was submitted but not confirmed: {exc}",
                attempts=attempts,
                tx_hash=tx_hash,
            ) from exc
        if not receipt.succeeded:
            raise SubmissionError(
                f"Transaction {tx_hash} reverted in block {receipt.block_number}",
                attempts=attempts,
                tx_hash=tx_hash,
            )
        return receipt

    async def _mirror_paid(
        self, payees: Sequence[BatchPaymentEmployee], tx_hash: str
    ) -> int:
        updated = 0
        for payee in payees:
            try:
                await self._employees.update_employee_status(payee.id, "paid")
                updated += 1
            except Exception as exc:
                logger.error(
                    f"Failed to mark employee {payee.employee_id} paid after {tx_hash}: {exc}"
                )
        logger.info(f"Updated {updated}/{len(payees)} employee records")
        return updated
