"""Fixed six-stage workflow pipeline."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .config import PolicyConfig
from .constants import ELIGIBLE_PAYEE_STATUSES
from .contracts import (
    BatchPaymentEmployee,
    BatchPaymentResult,
    ExecutionError,
    ReviewRequest,
    StepType,
    WorkflowExecution,
    WorkflowInput,
    WorkflowStep,
    utcnow,
)
from .decision import as_number, evaluate
from .exceptions import (
    IneligiblePayeesError,
    PaystreamError,
    ValidationError,
    WorkflowExecutionError,
)
from .notifications import Notifier, PayStub
from .persistence.repository import EmployeeRepository, ExecutionRepository
from .provenance import ProvenanceRecorder
from .scoring import ConfidenceScorer, HeuristicScorer
from .settlement.executor import SettlementExecutor

logger = logging.getLogger(__name__)

STEP_NAMES: Dict[str, str] = {
    "intake": "Data Intake",
    "understand": "Data Understanding",
    "decide": "Decision Logic",
    "review": "Human Review",
    "execute": "Execution",
    "deliver": "Delivery & Notifications",
}

DEGRADED_CONFIDENCE = 0.5

# top-level field -> expected type per workflow type
_REQUIRED_FIELDS: Dict[str, Dict[str, type]] = {
    "payroll-approval": {"employees": list},
    "employee-onboarding": {"employeeData": dict},
    "compliance-audit": {"period": dict},
    "expense-approval": {"amount": object},
}


def _validate_intake(workflow_type: str, data: Dict[str, Any]) -> None:
    for field, expected in _REQUIRED_FIELDS.get(workflow_type, {}).items():
        value = data.get(field)
        if value is None:
            raise ValidationError(f"Missing required field: {field}")
        if not isinstance(value, expected):
            raise ValidationError(f"Field {field} must be a {expected.__name__}")

    if workflow_type != "payroll-approval":
        return
    employees = data["employees"]
    if not employees:
        raise ValidationError("Payroll batch has no employees")
    for index, employee in enumerate(employees):
        if not isinstance(employee, dict):
            raise ValidationError(f"Employee entry {index} must be an object")
        try:
            int(employee.get("id"))
        except (TypeError, ValueError):
            raise ValidationError(f"Employee entry {index} has no numeric id") from None


class WorkflowOrchestrator:
    """Runs ``intake -> understand -> decide -> review? -> execute? -> deliver``.

    The orchestrator is the only writer of a ``WorkflowExecution`` while a
    run is in progress. The execution is persisted when it starts, when it is
    parked for review and when it reaches a terminal status; provenance is
    recorded exactly once at the terminal transition.

    Settlement failures are expected outcomes and produce a ``failed``
    execution carrying an ``error``. Anything else is unexpected: the
    execution is marked failed and persisted, then a
    ``WorkflowExecutionError`` is raised.
    """

    def __init__(
        self,
        repository: ExecutionRepository,
        executor: SettlementExecutor,
        recorder: ProvenanceRecorder,
        policy: Optional[PolicyConfig] = None,
        scorer: Optional[ConfidenceScorer] = None,
        notifier: Optional[Notifier] = None,
        employees: Optional[EmployeeRepository] = None,
    ) -> None:
        self._repository = repository
        self._employees = employees
        self._executor = executor
        self._recorder = recorder
        self._policy = policy or PolicyConfig()
        self._scorer = scorer or HeuristicScorer()
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Entry points
    async def run(self, workflow_input: WorkflowInput) -> WorkflowExecution:
        """Start a new execution and drive it as far as it can go."""
        execution = WorkflowExecution(
            workflow_type=workflow_input.workflow_type,
            inputs=dict(workflow_input.data),
            metadata=workflow_input.metadata,
        )
        await self._repository.create_execution(execution)
        logger.info(f"Starting workflow {execution.workflow_type} ({execution.id})")

        try:
            await self._run_pipeline(execution)
        except Exception as exc:
            await self._fail_unexpectedly(execution, exc)
        return execution

    async def resume(self, execution: WorkflowExecution) -> WorkflowExecution:
        """Continue an approved execution at ``execute``.

        Payees are re-read from the employee store first. If any of them is
        no longer eligible for payment the execution is finalized as
        ``rejected`` and nothing is submitted.
        """
        review = execution.review_request
        if execution.status != "pending" or review is None or review.decision != "approved":
            raise ValueError(f"Execution {execution.id} is not awaiting settlement")

        logger.info(f"Resuming workflow {execution.id} after approval by {review.reviewer}")
        try:
            ineligible = await self._ineligible_payees(execution)
            if ineligible:
                await self._reject_ineligible(
                    execution, IneligiblePayeesError(ineligible)
                )
            else:
                await self._execute_and_deliver(execution)
        except Exception as exc:
            await self._fail_unexpectedly(execution, exc)
        return execution

    async def finalize_rejected(self, execution: WorkflowExecution) -> WorkflowExecution:
        """Terminate a reviewed execution without settlement."""
        review = execution.review_request
        reviewer = review.reviewer if review else None
        logger.info(f"Workflow {execution.id} rejected by {reviewer}")
        try:
            execution.status = "rejected"
            self._set_outputs(execution)
            await self._finalize(execution)
        except Exception as exc:
            await self._fail_unexpectedly(execution, exc)
        return execution

    # ------------------------------------------------------------------
    # Stages
    async def _run_pipeline(self, execution: WorkflowExecution) -> None:
        data = execution.inputs

        step = self._open_step(execution, "intake")
        try:
            _validate_intake(execution.workflow_type, data)
        except ValidationError as exc:
            step.close("failed", error=exc.reason)
            await self._fail(execution, exc)
            return
        step.close("completed", result="Data received and validated")

        step = self._open_step(execution, "understand")
        adjustments = self._normalize(execution.workflow_type, data)
        confidence = await self._score(execution, data)
        step.close(
            "completed",
            result={"normalized": True, "adjustments": adjustments},
            confidence=confidence,
        )

        step = self._open_step(execution, "decide")
        decision = evaluate(execution.workflow_type, data, self._policy)
        execution.decision = decision
        step.close(
            "completed",
            result={"decision": decision.decision, "reason": decision.reason},
            confidence=decision.confidence,
        )
        logger.info(
            f"Workflow {execution.id} decision {decision.decision}: {decision.reason}"
        )

        if decision.decision == "reject":
            execution.status = "rejected"
            self._set_outputs(execution)
            await self._finalize(execution)
        elif decision.decision == "flag_for_review":
            await self._park_for_review(execution)
        else:
            await self._execute_and_deliver(execution)

    def _normalize(self, workflow_type: str, data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if workflow_type != "payroll-approval":
            return []
        computed = round(
            sum(as_number(e.get("amount")) or 0.0 for e in data["employees"]), 2
        )
        supplied = as_number(data.get("totalAmount"))
        adjustments: List[Dict[str, Any]] = []
        if supplied is not None and abs(supplied - computed) >= 0.005:
            adjustments.append(
                {"field": "totalAmount", "supplied": supplied, "computed": computed}
            )
            logger.warning(
                f"Supplied total {supplied} does not match payee amounts {computed}"
            )
        data["totalAmount"] = computed
        return adjustments

    async def _score(self, execution: WorkflowExecution, data: Dict[str, Any]) -> float:
        try:
            return await self._scorer.score(execution.workflow_type, data)
        except Exception as exc:
            logger.warning(f"Confidence scoring failed for {execution.id}: {exc}")
            return DEGRADED_CONFIDENCE

    async def _park_for_review(self, execution: WorkflowExecution) -> None:
        decision = execution.decision
        step = self._open_step(execution, "review")
        step.status = "pending"
        step.result = "Awaiting human approval"
        execution.review_request = ReviewRequest(
            workflow_execution_id=execution.id,
            workflow_type=execution.workflow_type,
            priority=execution.metadata.priority,
            data=dict(execution.inputs),
            flags=list(decision.flags),
            reason=decision.reason,
        )
        execution.status = "pending"
        self._set_outputs(execution)
        await self._repository.update_execution(execution)
        logger.info(
            f"Workflow {execution.id} awaiting review {execution.review_request.id}"
        )

    async def _execute_and_deliver(self, execution: WorkflowExecution) -> None:
        step = self._open_step(execution, "execute")
        if execution.workflow_type != "payroll-approval":
            step.close("completed", result="No settlement required")
            self._deliver(execution)
            execution.status = "completed"
            self._set_outputs(execution)
            await self._finalize(execution)
            return

        payees = self._payees(execution.inputs)
        try:
            result = await self._executor.execute_batch(payees)
        except PaystreamError as exc:
            logger.error(f"Settlement failed for workflow {execution.id}: {exc}")
            step.close("failed", error=str(exc))
            await self._fail(execution, exc)
            return
        step.close(
            "completed",
            result={
                "transactionHash": result.tx_hash,
                "blockNumber": result.block_number,
                "employeeCount": result.employee_count,
            },
        )

        execution.status = "completed"
        self._set_outputs(execution, result)
        execution.outputs["emailsSent"] = await self._deliver_pay_stubs(
            execution, payees, result
        )
        await self._finalize(execution)
        logger.info(
            f"Workflow {execution.id} completed with transaction {result.tx_hash}"
        )

    async def _ineligible_payees(self, execution: WorkflowExecution) -> List[int]:
        if self._employees is None or execution.workflow_type != "payroll-approval":
            return []
        ineligible: List[int] = []
        for entry in execution.inputs["employees"]:
            employee_id = int(entry["id"])
            employee = await self._employees.get_employee(employee_id)
            # Payees unknown to the store are judged on the reviewed batch alone.
            if employee is not None and employee.status not in ELIGIBLE_PAYEE_STATUSES:
                ineligible.append(employee_id)
        return ineligible

    async def _reject_ineligible(
        self, execution: WorkflowExecution, exc: IneligiblePayeesError
    ) -> None:
        logger.warning(f"Workflow {execution.id} not settled: {exc}")
        self._open_step(execution, "execute").close("failed", error=str(exc))
        execution.status = "rejected"
        execution.error = ExecutionError(
            kind=exc.kind, message=str(exc), details=exc.details()
        )
        self._set_outputs(execution)
        await self._finalize(execution)

    def _deliver(self, execution: WorkflowExecution) -> None:
        self._open_step(execution, "deliver").close(
            "completed", result="No notifications required"
        )

    async def _deliver_pay_stubs(
        self,
        execution: WorkflowExecution,
        payees: List[BatchPaymentEmployee],
        result: BatchPaymentResult,
    ) -> int:
        step = self._open_step(execution, "deliver")
        if self._notifier is None:
            step.close("completed", result={"emailsSent": 0, "failed": 0})
            return 0

        breakdowns = {
            int(e["id"]): e.get("payroll") or {} for e in execution.inputs["employees"]
        }
        sent = failed = 0
        for payee in payees:
            if not payee.email:
                continue
            try:
                stub = PayStub(
                    name=payee.name,
                    email=payee.email,
                    wallet_address=payee.wallet_address,
                    net_pay=payee.net_pay,
                    tx_hash=result.tx_hash,
                    explorer_url=result.explorer_url,
                    breakdown=breakdowns.get(payee.id, {}),
                )
                await self._notifier.send_pay_stub(stub)
                sent += 1
            except Exception as exc:
                failed += 1
                logger.error(f"Failed to send pay stub to {payee.email}: {exc}")
        logger.info(f"Sent {sent} pay stubs for workflow {execution.id}")
        step.close("completed", result={"emailsSent": sent, "failed": failed})
        return sent

    # ------------------------------------------------------------------
    # Helpers
    @staticmethod
    def _open_step(execution: WorkflowExecution, step: StepType) -> WorkflowStep:
        record = WorkflowStep(step=step, name=STEP_NAMES[step])
        execution.steps.append(record)
        return record

    @staticmethod
    def _payees(data: Dict[str, Any]) -> List[BatchPaymentEmployee]:
        return [
            BatchPaymentEmployee(
                id=int(e["id"]),
                employee_id=str(e.get("employeeId") or e["id"]),
                wallet_address=e.get("walletAddress") or "",
                net_pay=as_number(e.get("amount")) or 0.0,
                name=e.get("name"),
                email=e.get("email"),
            )
            for e in data["employees"]
        ]

    @staticmethod
    def _set_outputs(
        execution: WorkflowExecution,
        result: Optional[BatchPaymentResult] = None,
    ) -> None:
        outputs: Dict[str, Any] = {"status": execution.status}
        if execution.workflow_type == "payroll-approval":
            employees = execution.inputs.get("employees") or []
            outputs.update(
                employeesProcessed=len(employees),
                totalAmount=execution.inputs.get("totalAmount"),
                transactionHash=result.tx_hash if result else None,
                emailsSent=0,
            )
            if result is not None:
                outputs.update(
                    totalPaid=result.total_paid,
                    blockNumber=result.block_number,
                    explorerUrl=result.explorer_url,
                    gasUsed=result.gas_used,
                )
        execution.outputs = outputs

    async def _fail(self, execution: WorkflowExecution, exc: PaystreamError) -> None:
        execution.status = "failed"
        execution.error = ExecutionError(
            kind=exc.kind, message=str(exc), details=exc.details()
        )
        self._set_outputs(execution)
        await self._finalize(execution)

    async def _finalize(self, execution: WorkflowExecution) -> None:
        execution.end_time = utcnow()
        execution.duration = (execution.end_time - execution.start_time).total_seconds()
        if execution.provenance is None:
            execution.provenance = await self._recorder.record(execution)
        await self._repository.update_execution(execution)
        logger.info(
            f"Workflow {execution.id} finished with status {execution.status} "
            f"in {execution.duration:.2f}s"
        )

    async def _fail_unexpectedly(
        self, execution: WorkflowExecution, exc: Exception
    ) -> None:
        stage = execution.steps[-1].step if execution.steps else "intake"
        logger.exception(f"Workflow {execution.id} failed in stage {stage}")
        if execution.steps and not execution.steps[-1].is_closed:
            execution.steps[-1].close("failed", error=str(exc))
        # A confirmed settlement stays completed even if bookkeeping failed.
        if not execution.outputs.get("transactionHash"):
            execution.status = "failed"
            execution.error = ExecutionError(
                kind=WorkflowExecutionError.kind, message=str(exc), details={"step": stage}
            )
        try:
            await self._finalize(execution)
        except Exception as persist_exc:
            logger.error(f"Could not persist failed workflow {execution.id}: {persist_exc}")
        raise WorkflowExecutionError(
            f"Workflow execution failed: {exc}",
            execution.workflow_type,
            stage,
            execution.id,
        ) from exc
