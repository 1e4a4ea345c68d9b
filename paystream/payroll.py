"""Payroll math and the payroll run service."""

from __future__ import annotations

import asyncio
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Set

from pydantic import Field

from .config import PayrollConfig
from .constants import EXPECTED_HOURS, OVERTIME_MULTIPLIER, PERIODS_PER_YEAR
from .contracts import (
    CamelModel,
    Employee,
    WorkflowExecution,
    WorkflowInput,
    WorkflowMetadata,
)
from .exceptions import ValidationError
from .orchestrator import WorkflowOrchestrator
from .persistence.repository import EmployeeRepository, ExecutionRepository

logger = logging.getLogger(__name__)


def _round(value: float | Decimal, places: str = "0.01") -> float:
    return float(Decimal(str(value)).quantize(Decimal(places), rounding=ROUND_HALF_UP))


class PayrollInput(CamelModel):
    employee_id: str
    employee_name: str
    salary_annual: float
    hours_this_period: float
    pay_period: str = "biweekly"


class PayrollResult(CamelModel):
    employee_id: str
    employee_name: str
    base_pay: float
    hours_worked: float
    ot_hours: float
    ot_pay: float
    gross_pay: float
    total_tax_estimated: float
    net_pay: float
    pay_period: str

    def breakdown(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"employee_id", "employee_name"})


class PayrollCalculator:
    """Per-period pay from annual salary, or a fixed amount per employee."""

    def __init__(self, config: Optional[PayrollConfig] = None) -> None:
        self.config = config or PayrollConfig()

    def calculate(self, payroll_input: PayrollInput) -> PayrollResult:
        period = payroll_input.pay_period
        if period not in PERIODS_PER_YEAR:
            raise ValidationError(f"Unsupported pay period: {period}")
        if payroll_input.salary_annual <= 0:
            raise ValidationError(
                f"Salary for {payroll_input.employee_name} must be positive"
            )

        base_pay = _round(payroll_input.salary_annual / PERIODS_PER_YEAR[period])
        expected_hours = EXPECTED_HOURS[period]
        hourly_rate = base_pay / expected_hours
        hours = payroll_input.hours_this_period
        ot_hours = max(0.0, hours - expected_hours)
        ot_pay = _round(ot_hours * hourly_rate * OVERTIME_MULTIPLIER)
        gross_pay = _round(base_pay + ot_pay)
        tax = _round(gross_pay * self.config.tax_rate)

        return PayrollResult(
            employee_id=payroll_input.employee_id,
            employee_name=payroll_input.employee_name,
            base_pay=base_pay,
            hours_worked=_round(hours, "0.1"),
            ot_hours=_round(ot_hours, "0.1"),
            ot_pay=ot_pay,
            gross_pay=gross_pay,
            total_tax_estimated=tax,
            net_pay=_round(gross_pay - tax),
            pay_period=period,
        )

    def fixed(self, employee_id: str, employee_name: str, amount: float) -> PayrollResult:
        """Flat untaxed payment for one period."""
        amount = _round(amount)
        return PayrollResult(
            employee_id=employee_id,
            employee_name=employee_name,
            base_pay=amount,
            hours_worked=self.config.standard_hours,
            ot_hours=0.0,
            ot_pay=0.0,
            gross_pay=amount,
            total_tax_estimated=0.0,
            net_pay=amount,
            pay_period=self.config.pay_period,
        )

    def for_employee(self, employee: Employee) -> PayrollResult:
        if self.config.fixed_pay_per_employee is not None:
            return self.fixed(
                str(employee.id), employee.name, self.config.fixed_pay_per_employee
            )
        if employee.salary_annual is None:
            raise ValidationError(f"Employee {employee.name} has no annual salary")
        return self.calculate(
            PayrollInput(
                employee_id=str(employee.id),
                employee_name=employee.name,
                salary_annual=employee.salary_annual,
                hours_this_period=self.config.standard_hours,
                pay_period=self.config.pay_period,
            )
        )


class PayrollRunResponse(CamelModel):
    """Outcome of ``POST /payroll``."""

    success: bool
    status: Optional[str] = None
    message: Optional[str] = None
    execution_id: Optional[str] = None
    review_id: Optional[str] = None
    paid: int = 0
    total_paid: float = 0.0
    tx: Optional[str] = None
    block_number: Optional[int] = None
    explorer: Optional[str] = None
    gas_used: Optional[int] = None
    emails_sent: int = 0
    payroll_results: List[PayrollResult] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def from_execution(
        cls, execution: WorkflowExecution, payroll_results: List[PayrollResult]
    ) -> "PayrollRunResponse":
        outputs = execution.outputs
        response = cls(
            success=execution.status != "failed",
            status=execution.status,
            execution_id=execution.id,
            payroll_results=payroll_results,
        )
        if execution.status == "completed":
            response.paid = outputs.get("employeesProcessed") or 0
            response.total_paid = outputs.get("totalPaid") or 0.0
            response.tx = outputs.get("transactionHash")
            response.block_number = outputs.get("blockNumber")
            response.explorer = outputs.get("explorerUrl")
            response.gas_used = outputs.get("gasUsed")
            response.emails_sent = outputs.get("emailsSent") or 0
            response.message = f"Paid {response.paid} employees"
        elif execution.status == "pending":
            response.review_id = execution.review_request.id
            response.message = "Payroll flagged for review"
        elif execution.status == "rejected":
            if execution.error is not None:
                response.message = execution.error.message
            elif execution.decision is not None:
                response.message = execution.decision.reason
            else:
                response.message = "Rejected"
        elif execution.error is not None:
            response.error = execution.error.message
            response.error_kind = execution.error.kind
            response.details = execution.error.details
        return response


class PayrollService:
    """Runs payroll for every pending employee through the workflow pipeline.

    Employees already part of a payroll batch that is waiting for review are
    left out of later runs until that review is decided. Runs are serialized
    so two concurrent requests cannot build overlapping batches.
    """

    def __init__(
        self,
        employees: EmployeeRepository,
        orchestrator: WorkflowOrchestrator,
        calculator: Optional[PayrollCalculator] = None,
        executions: Optional[ExecutionRepository] = None,
    ) -> None:
        self._employees = employees
        self._orchestrator = orchestrator
        self._calculator = calculator or PayrollCalculator()
        self._executions = executions
        self._lock = asyncio.Lock()

    async def pending_summary(self) -> Dict[str, Any]:
        pending = await self._employees.list_employees(status="pending")
        return {
            "pendingCount": len(pending),
            "employees": [e.to_dict() for e in pending],
        }

    async def _awaiting_review(self) -> Set[int]:
        if self._executions is None:
            return set()
        parked = await self._executions.list_executions(
            status="pending", workflow_type="payroll-approval"
        )
        return {
            int(entry["id"])
            for execution in parked
            for entry in execution.inputs.get("employees") or []
        }

    async def process_payroll(
        self, requested_by: Optional[str] = None
    ) -> PayrollRunResponse:
        async with self._lock:
            return await self._process_payroll(requested_by)

    async def _process_payroll(
        self, requested_by: Optional[str]
    ) -> PayrollRunResponse:
        pending = await self._employees.list_employees(status="pending")
        if not pending:
            return PayrollRunResponse(
                success=False, message="No pending employees to process"
            )
        held = await self._awaiting_review()
        eligible = [e for e in pending if e.id not in held]
        if len(eligible) < len(pending):
            logger.info(
                f"Skipping {len(pending) - len(eligible)} employees already awaiting review"
            )
        if not eligible:
            return PayrollRunResponse(
                success=False, message="All pending employees are awaiting review"
            )
        pending = eligible
        logger.info(f"Found {len(pending)} pending employees")

        payroll_results: List[PayrollResult] = []
        entries: List[Dict[str, Any]] = []
        for employee in pending:
            try:
                result = self._calculator.for_employee(employee)
            except ValidationError as exc:
                logger.error(f"Failed to calculate payroll for {employee.name}: {exc}")
                continue
            payroll_results.append(result)

            if not employee.wallet_address:
                logger.warning(f"Employee {employee.name} has no wallet address")
                continue
            entries.append(
                {
                    "id": employee.id,
                    "employeeId": str(employee.id),
                    "name": employee.name,
                    "email": employee.email,
                    "walletAddress": employee.wallet_address,
                    "amount": result.net_pay,
                    "status": employee.status,
                    "payroll": result.breakdown(),
                }
            )

        if not entries:
            return PayrollRunResponse(
                success=False,
                message="No employees with wallet addresses to pay",
                payroll_results=payroll_results,
            )

        workflow_input = WorkflowInput(
            workflow_type="payroll-approval",
            data={
                "employees": entries,
                "totalAmount": _round(sum(e["amount"] for e in entries)),
                "payPeriod": self._calculator.config.pay_period,
            },
            metadata=WorkflowMetadata(priority="high", requested_by=requested_by),
        )
        execution = await self._orchestrator.run(workflow_input)
        return PayrollRunResponse.from_execution(execution, payroll_results)
