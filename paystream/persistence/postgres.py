"""PostgreSQL implementation of the paystream repositories."""

from __future__ import annotations

from typing import Any, Optional

import asyncpg

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
from .models import (
    EXECUTION_COLUMNS,
    employee_from_row,
    execution_from_row,
    execution_to_row,
    provenance_from_json,
    provenance_to_json,
)
from .repository import PaystreamRepository

_SELECT_EXECUTION = f"SELECT {', '.join(EXECUTION_COLUMNS)} FROM workflow_executions"


class PostgresRepository(PaystreamRepository):
    """Persist executions, employees and provenance using PostgreSQL."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._initialized = False

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                id TEXT PRIMARY KEY,
                workflow_type TEXT NOT NULL,
                status TEXT NOT NULL,
                start_time TIMESTAMPTZ,
                end_time TIMESTAMPTZ,
                duration DOUBLE PRECISION,
                inputs JSONB,
                outputs JSONB,
                metadata JSONB,
                steps JSONB,
                decision JSONB,
                review_request JSONB,
                provenance JSONB,
                error JSONB,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        await conn.execute(
            """
            CREATE INDEX IF NOT EXISTS workflow_executions_review_id
            ON workflow_executions ((review_request->>'id'))
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS employees (
                id SERIAL PRIMARY KEY,
                email TEXT NOT NULL,
                name TEXT NOT NULL,
                wallet_address TEXT,
                salary_annual DOUBLE PRECISION,
                pay_status TEXT NOT NULL DEFAULT 'pending',
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS provenance_records (
                execution_id TEXT PRIMARY KEY,
                record JSONB NOT NULL,
                created_at TIMESTAMPTZ NOT NULL DEFAULT now()
            )
            """
        )

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: WorkflowExecution) -> None:
        row = execution_to_row(execution)
        placeholders = ", ".join(f"${i}" for i in range(1, len(row) + 1))
        conn = await self._connect()
        try:
            await conn.execute(
                f"INSERT INTO workflow_executions ({', '.join(row)}) VALUES ({placeholders})",
                *row.values(),
            )
        finally:
            await conn.close()

    async def update_execution(self, execution: WorkflowExecution) -> None:
        row = execution_to_row(execution)
        row.pop("id")
        assignments = ", ".join(f"{column} = ${i}" for i, column in enumerate(row, start=1))
        conn = await self._connect()
        try:
            result = await conn.execute(
                f"UPDATE workflow_executions SET {assignments}, updated_at = ${len(row) + 1} "
                f"WHERE id = ${len(row) + 2}",
                *row.values(),
                utcnow(),
                execution.id,
            )
        finally:
            await conn.close()
        if result.endswith(" 0"):
            raise ExecutionNotFoundError(execution.id)

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(f"{_SELECT_EXECUTION} WHERE id = $1", execution_id)
        finally:
            await conn.close()
        return execution_from_row(row) if row else None

    async def find_by_review_id(self, review_id: str) -> WorkflowExecution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                f"{_SELECT_EXECUTION} WHERE review_request->>'id' = $1", review_id
            )
        finally:
            await conn.close()
        return execution_from_row(row) if row else None

    async def list_executions(
        self,
        status: Optional[WorkflowStatus] = None,
        workflow_type: Optional[WorkflowType] = None,
    ) -> list[WorkflowExecution]:
        conditions: list[str] = []
        params: list[Any] = []
        if status is not None:
            params.append(status)
            conditions.append(f"status = ${len(params)}")
        if workflow_type is not None:
            params.append(workflow_type)
            conditions.append(f"workflow_type = ${len(params)}")
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        conn = await self._connect()
        try:
            rows = await conn.fetch(f"{_SELECT_EXECUTION}{where} ORDER BY created_at", *params)
        finally:
            await conn.close()
        return [execution_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Employees
    async def add_employee(self, employee: Employee) -> Employee:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                """
                INSERT INTO employees (email, name, wallet_address, salary_annual, pay_status)
                VALUES ($1, $2, $3, $4, $5)
                RETURNING *
                """,
                employee.email,
                employee.name,
                employee.wallet_address,
                employee.salary_annual,
                employee.status,
            )
        finally:
            await conn.close()
        return employee_from_row(row)

    async def get_employee(self, employee_id: int) -> Employee | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow("SELECT * FROM employees WHERE id = $1", employee_id)
        finally:
            await conn.close()
        return employee_from_row(row) if row else None

    async def list_employees(
        self, status: Optional[EmployeeStatus] = None
    ) -> list[Employee]:
        conn = await self._connect()
        try:
            if status is None:
                rows = await conn.fetch("SELECT * FROM employees ORDER BY created_at, id")
            else:
                rows = await conn.fetch(
                    "SELECT * FROM employees WHERE pay_status = $1 ORDER BY created_at, id",
                    status,
                )
        finally:
            await conn.close()
        return [employee_from_row(r) for r in rows]

    async def update_employee_status(
        self, employee_id: int, status: EmployeeStatus
    ) -> None:
        conn = await self._connect()
        try:
            result = await conn.execute(
                "UPDATE employees SET pay_status = $1, updated_at = now() WHERE id = $2",
                status,
                employee_id,
            )
        finally:
            await conn.close()
        if result.endswith(" 0"):
            raise EmployeeNotFoundError(employee_id)

    # ------------------------------------------------------------------
    # Provenance
    async def append_provenance(self, record: ProvenanceRecord) -> None:
        conn = await self._connect()
        try:
            await conn.execute(
                "INSERT INTO provenance_records (execution_id, record) VALUES ($1, $2)",
                record.execution_id,
                provenance_to_json(record),
            )
        except asyncpg.UniqueViolationError as exc:
            raise ProvenanceConflictError(record.execution_id) from exc
        finally:
            await conn.close()

    async def get_provenance(self, execution_id: str) -> ProvenanceRecord | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT record FROM provenance_records WHERE execution_id = $1",
                execution_id,
            )
        finally:
            await conn.close()
        return provenance_from_json(row["record"]) if row else None
