"""Error taxonomy for the payroll pipeline."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional


class PaystreamError(Exception):
    """Base class for all paystream errors."""

    kind = "error"

    def details(self) -> dict[str, Any]:
        """Structured details reported alongside the message."""
        return {}


class ValidationError(PaystreamError):
    """Malformed input. Always local, never retried."""

    kind = "validation_error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class IneligiblePayeesError(PaystreamError):
    """Payees of an approved batch are no longer eligible for payment."""

    kind = "ineligible_payees"

    def __init__(self, employee_ids: list[int]) -> None:
        listed = ", ".join(str(i) for i in employee_ids)
        super().__init__(f"Employees no longer eligible for payment: {listed}")
        self.employee_ids = list(employee_ids)

    def details(self) -> dict[str, Any]:
        return {"employeeIds": self.employee_ids}


class InsufficientFundsError(PaystreamError):
    """Funding account balance is below the batch total."""

    kind = "insufficient_funds"

    def __init__(self, required: Decimal, available: Decimal) -> None:
        self.required = required
        self.available = available
        self.shortfall = required - available
        super().__init__(
            f"Insufficient balance. Need {required:.2f}, have {available:.2f}"
        )

    def details(self) -> dict[str, Any]:
        return {
            "required": float(self.required),
            "available": float(self.available),
            "shortfall": float(self.shortfall),
        }


class SubmissionError(PaystreamError):
    """Settlement transaction could not be submitted or confirmed."""

    kind = "submission_error"

    def __init__(
        self, message: str, attempts: int = 0, tx_hash: Optional[str] = None
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.tx_hash = tx_hash

    def details(self) -> dict[str, Any]:
        return {"attempts": self.attempts, "txHash": self.tx_hash}


# ----------------------------------------------------------------------
# Errors raised by settlement network adapters


class SettlementNetworkError(PaystreamError):
    """Non-retryable failure talking to the settlement network."""

    kind = "network_error"


class TransientNetworkError(SettlementNetworkError):
    """Failure class that is expected to clear within seconds."""


class RateLimitedError(TransientNetworkError):
    """The RPC endpoint throttled the request."""

    kind = "rate_limited"


class NonceConflictError(TransientNetworkError):
    """The sequence number was stale or already used."""

    kind = "nonce_conflict"


# ----------------------------------------------------------------------
# Review queue


class ReviewError(PaystreamError):
    """Base class for review submission failures."""


class ReviewNotFoundError(ReviewError):
    kind = "review_not_found"

    def __init__(self, review_id: str) -> None:
        super().__init__(f"Review request not found: {review_id}")
        self.review_id = review_id


class ReviewAlreadyDecidedError(ReviewError):
    kind = "review_already_decided"

    def __init__(self, review_id: str, decision: str) -> None:
        super().__init__(f"Review request {review_id} was already {decision}")
        self.review_id = review_id
        self.decision = decision

    def details(self) -> dict[str, Any]:
        return {"reviewId": self.review_id, "decision": self.decision}


class InvalidReviewDecisionError(ReviewError):
    kind = "invalid_review_decision"

    def __init__(self, decision: Any) -> None:
        super().__init__(
            f'Decision must be either "approved" or "rejected", got {decision!r}'
        )
        self.decision = decision


# ----------------------------------------------------------------------
# Store


class StoreError(PaystreamError):
    """Base class for persistence failures."""


class ExecutionNotFoundError(StoreError):
    kind = "execution_not_found"

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Workflow execution not found: {execution_id}")
        self.execution_id = execution_id


class EmployeeNotFoundError(StoreError):
    kind = "employee_not_found"

    def __init__(self, employee_id: int) -> None:
        super().__init__(f"Employee not found: {employee_id}")
        self.employee_id = employee_id


class ProvenanceConflictError(StoreError):
    """A provenance record already exists for the execution."""

    kind = "provenance_conflict"

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Provenance already recorded for execution {execution_id}")
        self.execution_id = execution_id


class WorkflowExecutionError(PaystreamError):
    """Unexpected failure inside a pipeline stage."""

    kind = "workflow_error"

    def __init__(
        self,
        message: str,
        workflow_type: str,
        step: str,
        execution_id: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.workflow_type = workflow_type
        self.step = step
        self.execution_id = execution_id

    def details(self) -> dict[str, Any]:
        return {"workflowType": self.workflow_type, "step": self.step}
