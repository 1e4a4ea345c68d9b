"""Confidence scoring used by the ``understand`` stage."""

from __future__ import annotations

from typing import Any, Dict, Protocol

from .contracts import WorkflowType

_REQUIRED_FIELDS: Dict[str, tuple[str, ...]] = {
    "payroll-approval": ("employees",),
    "employee-onboarding": ("employeeData",),
    "compliance-audit": ("period",),
    "expense-approval": ("amount",),
}

_PAYEE_FIELDS = ("walletAddress", "amount", "status")


class ConfidenceScorer(Protocol):
    """Annotates a workflow payload with a 0..1 confidence score."""

    version: str

    async def score(self, workflow_type: WorkflowType, data: Dict[str, Any]) -> float:
        ...


class HeuristicScorer:
    """Score by how complete the payload is.

    Every missing top-level field and every incomplete payee lowers the score.
    The score only guides how prominently a decision is displayed; it never
    changes control flow.
    """

    version = "heuristic-scorer/1.0"

    def __init__(self, base: float = 0.92, floor: float = 0.5) -> None:
        self.base = base
        self.floor = floor

    async def score(self, workflow_type: WorkflowType, data: Dict[str, Any]) -> float:
        required = _REQUIRED_FIELDS.get(workflow_type, ())
        missing = sum(1 for field in required if not data.get(field))
        score = self.base - 0.2 * missing

        if workflow_type == "payroll-approval":
            employees = data.get("employees") or []
            if employees:
                incomplete = sum(
                    1
                    for e in employees
                    if any(e.get(field) in (None, "") for field in _PAYEE_FIELDS)
                )
                score -= 0.3 * incomplete / len(employees)
        return round(max(self.floor, min(score, 1.0)), 4)
