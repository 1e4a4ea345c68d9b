"""Core data contracts for the paystream payroll pipeline."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

WorkflowType = Literal[
    "payroll-approval", "employee-onboarding", "compliance-audit", "expense-approval"
]
WorkflowStatus = Literal["in_progress", "pending", "completed", "rejected", "failed"]
StepType = Literal["intake", "understand", "decide", "review", "execute", "deliver"]
StepStatus = Literal["in_progress", "pending", "completed", "failed"]
DecisionResult = Literal["auto_approve", "flag_for_review", "reject"]
ReviewDecision = Literal["approved", "rejected"]
Priority = Literal["low", "medium", "high", "critical"]
EmployeeStatus = Literal["pending", "active", "paid", "inactive"]

TERMINAL_STATUSES = frozenset({"completed", "rejected", "failed"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict using wire names."""
        return self.model_dump(by_alias=True, mode="json")


class WorkflowMetadata(CamelModel):
    model_config = ConfigDict(frozen=True)

    priority: Priority = "medium"
    requested_by: Optional[str] = None
    due_date: Optional[str] = None


class WorkflowInput(CamelModel):
    """Request to run one workflow. Consumed once by the orchestrator."""

    model_config = ConfigDict(frozen=True)

    workflow_type: WorkflowType
    data: Dict[str, Any] = Field(default_factory=dict)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)


class WorkflowStep(CamelModel):
    """Record of one pipeline stage."""

    step: StepType
    name: str
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    status: StepStatus = "in_progress"
    result: Any = None
    confidence: Optional[float] = None
    error: Optional[str] = None

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    def close(
        self,
        status: StepStatus,
        result: Any = None,
        confidence: Optional[float] = None,
        error: Optional[str] = None,
    ) -> None:
        """Stamp the end of the stage. A closed step is never touched again."""
        if self.is_closed:
            return
        self.end_time = utcnow()
        self.duration = (self.end_time - self.start_time).total_seconds()
        self.status = status
        self.result = result
        if confidence is not None:
            self.confidence = confidence
        self.error = error


class ThresholdCheck(CamelModel):
    model_config = ConfigDict(frozen=True)

    name: str
    passed: bool
    value: Any = None
    threshold: Any = None


class DecisionLogic(CamelModel):
    """Verdict of the decision engine."""

    model_config = ConfigDict(frozen=True)

    decision: DecisionResult
    reason: str
    rules_fired: List[str] = Field(default_factory=list)
    confidence: float
    flags: List[str] = Field(default_factory=list)
    auto_approval_eligible: bool = False
    threshold_checks: List[ThresholdCheck] = Field(default_factory=list)


class ReviewRequest(CamelModel):
    """A workflow execution parked until a human decides."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_execution_id: str
    workflow_type: WorkflowType
    requested_at: datetime = Field(default_factory=utcnow)
    priority: Priority = "medium"
    data: Dict[str, Any] = Field(default_factory=dict)
    flags: List[str] = Field(default_factory=list)
    reason: str = ""
    reviewer: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    decision: Optional[ReviewDecision] = None
    notes: Optional[str] = None

    @property
    def is_decided(self) -> bool:
        return self.decision is not None


class Artifact(CamelModel):
    model_config = ConfigDict(frozen=True)

    type: str
    location: str
    hash: Optional[str] = None


class ProvenanceRecord(CamelModel):
    """Immutable audit record written once per execution."""

    model_config = ConfigDict(frozen=True)

    execution_id: str
    workflow_type: WorkflowType
    version: str
    timestamp: datetime = Field(default_factory=utcnow)
    data_sources: List[str] = Field(default_factory=list)
    models: List[str] = Field(default_factory=list)
    approvers: List[str] = Field(default_factory=list)
    reviewer: Optional[str] = None
    compliance_checks: List[str] = Field(default_factory=list)
    artifacts: List[Artifact] = Field(default_factory=list)


class ExecutionError(CamelModel):
    kind: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class WorkflowExecution(CamelModel):
    """Aggregate root of one pipeline run."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_type: WorkflowType
    status: WorkflowStatus = "in_progress"
    start_time: datetime = Field(default_factory=utcnow)
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    inputs: Dict[str, Any] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    metadata: WorkflowMetadata = Field(default_factory=WorkflowMetadata)
    steps: List[WorkflowStep] = Field(default_factory=list)
    decision: Optional[DecisionLogic] = None
    review_request: Optional[ReviewRequest] = None
    provenance: Optional[ProvenanceRecord] = None
    error: Optional[ExecutionError] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def find_step(self, step: StepType) -> Optional[WorkflowStep]:
        """Return the most recent record for ``step``."""
        for record in reversed(self.steps):
            if record.step == step:
                return record
        return None


class BatchPaymentEmployee(CamelModel):
    """Settlement view of one payee."""

    id: int
    employee_id: str
    wallet_address: str
    net_pay: float
    name: Optional[str] = None
    email: Optional[str] = None


class BatchPaymentResult(CamelModel):
    """Outcome of a confirmed batch settlement."""

    tx_hash: str
    total_paid: float
    employee_count: int
    block_number: int
    explorer_url: Optional[str] = None
    gas_used: Optional[int] = None


class Employee(CamelModel):
    """Long-lived payee record."""

    id: Optional[int] = None
    email: str
    name: str
    wallet_address: Optional[str] = None
    salary_annual: Optional[float] = None
    status: EmployeeStatus = "pending"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
