"""Repository abstractions for workflow, employee and provenance persistence."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import (
    Employee,
    EmployeeStatus,
    ProvenanceRecord,
    WorkflowExecution,
    WorkflowStatus,
    WorkflowType,
)


class ExecutionRepository(Protocol):
    """Protocol for workflow execution persistence backends."""

    async def create_execution(self, execution: WorkflowExecution) -> None:
        """Persist a new execution row."""

    async def update_execution(self, execution: WorkflowExecution) -> None:
        """Overwrite the stored execution row."""

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        """Retrieve the execution by id."""

    async def find_by_review_id(self, review_id: str) -> WorkflowExecution | None:
        """Locate the execution whose embedded review has ``review_id``."""

    async def list_executions(
        self,
        status: Optional[WorkflowStatus] = None,
        workflow_type: Optional[WorkflowType] = None,
    ) -> list[WorkflowExecution]:
        """Return executions, optionally filtered."""


class EmployeeRepository(Protocol):
    """Protocol for long-lived employee records."""

    async def add_employee(self, employee: Employee) -> Employee:
        """Insert an employee and return it with its assigned id."""

    async def get_employee(self, employee_id: int) -> Employee | None:
        """Retrieve an employee by id."""

    async def list_employees(
        self, status: Optional[EmployeeStatus] = None
    ) -> list[Employee]:
        """Return employees ordered by creation, optionally by status."""

    async def update_employee_status(
        self, employee_id: int, status: EmployeeStatus
    ) -> None:
        """Change the payment status. Raises ``EmployeeNotFoundError``."""


class ProvenanceStore(Protocol):
    """Append-only store of provenance records."""

    async def append_provenance(self, record: ProvenanceRecord) -> None:
        """Write ``record``. Raises ``ProvenanceConflictError`` if one exists."""

    async def get_provenance(self, execution_id: str) -> ProvenanceRecord | None:
        """Retrieve the provenance record for an execution."""


class PaystreamRepository(ExecutionRepository, EmployeeRepository, ProvenanceStore, Protocol):
    """A backend implementing every persistence protocol."""
