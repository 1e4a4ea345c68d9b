"""Policy evaluation for workflow inputs.

Every function in this module is pure: no I/O, no mutation of the input and
the same inputs always produce the same ``DecisionLogic``.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import PolicyConfig
from .constants import ELIGIBLE_PAYEE_STATUSES, EMAIL_PATTERN, is_valid_address
from .contracts import DecisionLogic, DecisionResult, ThresholdCheck, WorkflowType

_SEVERITY: Dict[str, int] = {"auto_approve": 0, "flag_for_review": 1, "reject": 2}

# (decision, reason, confidence) produced by one triggered rule
Outcome = Tuple[DecisionResult, str, float]


def as_number(value: Any) -> Optional[float]:
    """Coerce ``value`` to ``float``; ``None`` when it is not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def payroll_total(data: Dict[str, Any]) -> float:
    """Total requested amount for a payroll batch."""
    total = as_number(data.get("totalAmount"))
    if total is not None:
        return total
    return sum(as_number(e.get("amount")) or 0.0 for e in data.get("employees") or [])


def _combine(
    outcomes: List[Outcome],
    rules_fired: List[str],
    flags: List[str],
    checks: List[ThresholdCheck],
    approve_reason: str,
    approve_confidence: float = 0.95,
) -> DecisionLogic:
    """Pick the strictest triggered outcome, auto-approving when none fired."""
    if not outcomes:
        return DecisionLogic(
            decision="auto_approve",
            reason=approve_reason,
            rules_fired=rules_fired,
            confidence=approve_confidence,
            flags=flags,
            auto_approval_eligible=True,
            threshold_checks=checks,
        )
    decision, reason, confidence = max(outcomes, key=lambda o: _SEVERITY[o[0]])
    return DecisionLogic(
        decision=decision,
        reason=reason,
        rules_fired=rules_fired,
        confidence=confidence,
        flags=flags,
        auto_approval_eligible=False,
        threshold_checks=checks,
    )


def _structural_reject(
    rule: str, reason: str, flag: str, checks: List[ThresholdCheck]
) -> DecisionLogic:
    return DecisionLogic(
        decision="reject",
        reason=reason,
        rules_fired=[rule],
        confidence=1.0,
        flags=[flag],
        auto_approval_eligible=False,
        threshold_checks=checks,
    )


def evaluate_payroll(data: Dict[str, Any], policy: PolicyConfig) -> DecisionLogic:
    employees = data.get("employees") or []
    threshold = as_number(data.get("approvalThreshold")) or policy.approval_threshold
    total = payroll_total(data)
    checks: List[ThresholdCheck] = []

    # Structural preconditions short-circuit everything else.
    invalid_wallets = [e for e in employees if not is_valid_address(e.get("walletAddress"))]
    checks.append(
        ThresholdCheck(
            name="wallet_validation",
            passed=not invalid_wallets,
            value=len(invalid_wallets),
            threshold=0,
        )
    )
    if invalid_wallets:
        return _structural_reject(
            "invalid_wallets_detected",
            "Invalid wallet addresses detected",
            f"{len(invalid_wallets)} employee(s) with invalid wallet addresses",
            checks,
        )

    invalid_amounts = [
        e for e in employees if (as_number(e.get("amount")) or 0.0) <= 0
    ]
    checks.append(
        ThresholdCheck(
            name="amount_validation",
            passed=not invalid_amounts,
            value=len(invalid_amounts),
            threshold=0,
        )
    )
    if invalid_amounts:
        return _structural_reject(
            "invalid_amounts_detected",
            "Non-positive payment amounts detected",
            f"{len(invalid_amounts)} employee(s) with non-positive amounts",
            checks,
        )

    rules_fired: List[str] = []
    flags: List[str] = []
    outcomes: List[Outcome] = []

    inactive = [e for e in employees if e.get("status") not in ELIGIBLE_PAYEE_STATUSES]
    if inactive:
        rules_fired.append("inactive_employees_detected")
        flags.append(f"{len(inactive)} inactive employee(s) in batch")
        outcomes.append(("reject", "Inactive employees detected in payroll batch", 1.0))

    amount_check = ThresholdCheck(
        name="total_amount_threshold",
        passed=total < threshold,
        value=total,
        threshold=threshold,
    )
    checks.append(amount_check)
    if not amount_check.passed:
        rules_fired.append("amount_threshold_exceeded")
        flags.append(f"Total amount ${total:,.2f} exceeds threshold ${threshold:,.2f}")
        outcomes.append(
            (
                "flag_for_review",
                f"Amount exceeds threshold (${total:,.2f} >= ${threshold:,.2f})",
                0.85,
            )
        )

    return _combine(
        outcomes,
        rules_fired,
        flags,
        checks,
        approve_reason="All checks passed, amount under threshold",
    )


def evaluate_onboarding(data: Dict[str, Any], policy: PolicyConfig) -> DecisionLogic:
    employee = data.get("employeeData") or {}
    name = employee.get("name")
    email = employee.get("email")
    checks: List[ThresholdCheck] = []

    if not name or not email:
        return _structural_reject(
            "missing_required_fields",
            "Missing required fields (name or email)",
            "Missing name or email",
            checks,
        )
    if not EMAIL_PATTERN.fullmatch(str(email)):
        return _structural_reject(
            "invalid_email", "Invalid email format", "Invalid email format", checks
        )

    salary = as_number(employee.get("salaryAnnual"))
    salary_check = ThresholdCheck(
        name="salary_range_check",
        passed=salary is not None and policy.salary_min < salary < policy.salary_max,
        value=salary,
        threshold={"min": policy.salary_min, "max": policy.salary_max},
    )
    checks.append(salary_check)

    rules_fired: List[str] = []
    flags: List[str] = []
    outcomes: List[Outcome] = []
    if not salary_check.passed:
        rules_fired.append("unusual_salary")
        flags.append(f"Salary {salary} outside normal range")
        outcomes.append(("flag_for_review", "Unusual salary detected", 0.8))

    return _combine(outcomes, rules_fired, flags, checks, approve_reason="All checks passed")


def evaluate_compliance(data: Dict[str, Any], policy: PolicyConfig) -> DecisionLogic:
    period = data.get("period") or {}
    try:
        start = date.fromisoformat(str(period.get("start")))
        end = date.fromisoformat(str(period.get("end")))
    except ValueError:
        return _structural_reject(
            "invalid_audit_period",
            "Audit period is missing or malformed",
            "Audit period must have ISO start and end dates",
            [],
        )
    if end < start:
        return _structural_reject(
            "invalid_audit_period",
            "Audit period ends before it starts",
            f"Audit period {start} to {end} is inverted",
            [],
        )
    return _combine(
        [],
        ["audit_completed"],
        [],
        [],
        approve_reason="Compliance audit completed",
        approve_confidence=0.9,
    )


def evaluate_expense(data: Dict[str, Any], policy: PolicyConfig) -> DecisionLogic:
    amount = as_number(data.get("amount"))
    if amount is None or amount <= 0:
        return _structural_reject(
            "invalid_amounts_detected",
            "Expense amount must be positive",
            f"Expense amount {data.get('amount')!r} is not a positive number",
            [],
        )

    check = ThresholdCheck(
        name="expense_amount_threshold",
        passed=amount < policy.expense_threshold,
        value=amount,
        threshold=policy.expense_threshold,
    )
    rules_fired: List[str] = []
    flags: List[str] = []
    outcomes: List[Outcome] = []
    if not check.passed:
        rules_fired.append("amount_threshold_exceeded")
        flags.append(
            f"Expense ${amount:,.2f} exceeds threshold ${policy.expense_threshold:,.2f}"
        )
        outcomes.append(("flag_for_review", "Expense exceeds threshold", 0.85))

    return _combine(
        outcomes, rules_fired, flags, [check], approve_reason="Expense under threshold"
    )


_RULES: Dict[str, Callable[[Dict[str, Any], PolicyConfig], DecisionLogic]] = {
    "payroll-approval": evaluate_payroll,
    "employee-onboarding": evaluate_onboarding,
    "compliance-audit": evaluate_compliance,
    "expense-approval": evaluate_expense,
}


def evaluate(
    workflow_type: WorkflowType, data: Dict[str, Any], policy: PolicyConfig
) -> DecisionLogic:
    """Evaluate ``data`` against the policy rules registered for ``workflow_type``."""
    try:
        rules = _RULES[workflow_type]
    except KeyError:
        raise ValueError(f"Unsupported workflow type: {workflow_type}") from None
    return rules(data, policy)
