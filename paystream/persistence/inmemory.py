"""In-memory implementation of the paystream repositories."""

from __future__ import annotations

from typing import Dict, Optional

from ..contracts import (
    Employee,
    EmployeeStatus,
    ProvenanceRecord,
    WorkflowExecution,
    WorkflowStatus,
    WorkflowType,
    utcnow,
)
from ..exceptions import (
    EmployeeNotFoundError,
    ExecutionNotFoundError,
    ProvenanceConflictError,
)
from .repository import PaystreamRepository


class InMemoryRepository(PaystreamRepository):
    """Store executions, employees and provenance in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Copies go in and out so callers never
    share mutable state with the store.
    """

    def __init__(self) -> None:
        self._executions: Dict[str, WorkflowExecution] = {}
        self._employees: Dict[int, Employee] = {}
        self._provenance: Dict[str, ProvenanceRecord] = {}
        self._employee_id = 0

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: WorkflowExecution) -> None:
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def update_execution(self, execution: WorkflowExecution) -> None:
        if execution.id not in self._executions:
            raise ExecutionNotFoundError(execution.id)
        self._executions[execution.id] = execution.model_copy(deep=True)

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        execution = self._executions.get(execution_id)
        return execution.model_copy(deep=True) if execution else None

    async def find_by_review_id(self, review_id: str) -> WorkflowExecution | None:
        for execution in self._executions.values():
            if execution.review_request and execution.review_request.id == review_id:
                return execution.model_copy(deep=True)
        return None

    async def list_executions(
        self,
        status: Optional[WorkflowStatus] = None,
        workflow_type: Optional[WorkflowType] = None,
    ) -> list[WorkflowExecution]:
        return [
            wf.model_copy(deep=True)
            for wf in self._executions.values()
            if (status is None or wf.status == status)
            and (workflow_type is None or wf.workflow_type == workflow_type)
        ]

    # ------------------------------------------------------------------
    # Employees
    async def add_employee(self, employee: Employee) -> Employee:
        self._employee_id += 1
        now = utcnow()
        stored = employee.model_copy(
            update={"id": self._employee_id, "created_at": now, "updated_at": now}
        )
        self._employees[stored.id] = stored
        return stored.model_copy()

    async def get_employee(self, employee_id: int) -> Employee | None:
        employee = self._employees.get(employee_id)
        return employee.model_copy() if employee else None

    async def list_employees(
        self, status: Optional[EmployeeStatus] = None
    ) -> list[Employee]:
        return [
            e.model_copy()
            for e in sorted(self._employees.values(), key=lambda e: e.id or 0)
            if status is None or e.status == status
        ]

    async def update_employee_status(
        self, employee_id: int, status: EmployeeStatus
    ) -> None:
        employee = self._employees.get(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(employee_id)
        self._employees[employee_id] = employee.model_copy(
            update={"status": status, "updated_at": utcnow()}
        )

    # ------------------------------------------------------------------
    # Provenance
    async def append_provenance(self, record: ProvenanceRecord) -> None:
        if record.execution_id in self._provenance:
            raise ProvenanceConflictError(record.execution_id)
        self._provenance[record.execution_id] = record

    async def get_provenance(self, execution_id: str) -> ProvenanceRecord | None:
        return self._provenance.get(execution_id)
