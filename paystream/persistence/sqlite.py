"""SQLite implementation of the paystream repositories."""

from __future__ import annotations

import asyncio
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

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


def _adapt(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


class SQLiteRepository(PaystreamRepository):
    """Persist executions, employees and provenance using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        # Serializes use of the shared connection across worker threads.
        self._lock = threading.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS workflow_executions (
                id TEXT PRIMARY KEY,
                workflow_type TEXT NOT NULL,
                status TEXT NOT NULL,
                start_time TEXT,
                end_time TEXT,
                duration REAL,
                inputs TEXT,
                outputs TEXT,
                metadata TEXT,
                steps TEXT,
                decision TEXT,
                review_request TEXT,
                provenance TEXT,
                error TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS employees (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                email TEXT NOT NULL,
                name TEXT NOT NULL,
                wallet_address TEXT,
                salary_annual REAL,
                pay_status TEXT NOT NULL DEFAULT 'pending',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS provenance_records (
                execution_id TEXT PRIMARY KEY,
                record TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> sqlite3.Cursor:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, tuple(_adapt(p) for p in params))
            self._conn.commit()
            return cur

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.cursor()
            cur.execute(query, params)
            return cur.fetchall()

    # ------------------------------------------------------------------
    # Executions
    async def create_execution(self, execution: WorkflowExecution) -> None:
        row = execution_to_row(execution)
        now = utcnow()
        columns = [*row, "created_at", "updated_at"]
        await asyncio.to_thread(
            self._execute,
            f"INSERT INTO workflow_executions ({', '.join(columns)}) "
            f"VALUES ({', '.join('?' for _ in columns)})",
            *row.values(),
            now,
            now,
        )

    async def update_execution(self, execution: WorkflowExecution) -> None:
        row = execution_to_row(execution)
        row.pop("id")
        assignments = ", ".join(f"{column} = ?" for column in row)
        cur = await asyncio.to_thread(
            self._execute,
            f"UPDATE workflow_executions SET {assignments}, updated_at = ? WHERE id = ?",
            *row.values(),
            utcnow(),
            execution.id,
        )
        if cur.rowcount == 0:
            raise ExecutionNotFoundError(execution.id)

    async def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {', '.join(EXECUTION_COLUMNS)} FROM workflow_executions WHERE id = ?",
            execution_id,
        )
        return execution_from_row(row) if row else None

    async def find_by_review_id(self, review_id: str) -> WorkflowExecution | None:
        row = await asyncio.to_thread(
            self._fetchone,
            f"SELECT {', '.join(EXECUTION_COLUMNS)} FROM workflow_executions "
            "WHERE json_extract(review_request, '$.id') = ?",
            review_id,
        )
        return execution_from_row(row) if row else None

    async def list_executions(
        self,
        status: Optional[WorkflowStatus] = None,
        workflow_type: Optional[WorkflowType] = None,
    ) -> list[WorkflowExecution]:
        query = f"SELECT {', '.join(EXECUTION_COLUMNS)} FROM workflow_executions WHERE 1 = 1"
        params: list[Any] = []
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        if workflow_type is not None:
            query += " AND workflow_type = ?"
            params.append(workflow_type)
        rows = await asyncio.to_thread(self._fetchall, query + " ORDER BY created_at", *params)
        return [execution_from_row(r) for r in rows]

    # ------------------------------------------------------------------
    # Employees
    async def add_employee(self, employee: Employee) -> Employee:
        now = utcnow()
        cur = await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO employees
                (email, name, wallet_address, salary_annual, pay_status, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            employee.email,
            employee.name,
            employee.wallet_address,
            employee.salary_annual,
            employee.status,
            now,
            now,
        )
        return employee.model_copy(
            update={"id": cur.lastrowid, "created_at": now, "updated_at": now}
        )

    async def get_employee(self, employee_id: int) -> Employee | None:
        row = await asyncio.to_thread(
            self._fetchone, "SELECT * FROM employees WHERE id = ?", employee_id
        )
        return employee_from_row(row) if row else None

    async def list_employees(
        self, status: Optional[EmployeeStatus] = None
    ) -> list[Employee]:
        if status is None:
            rows = await asyncio.to_thread(
                self._fetchall, "SELECT * FROM employees ORDER BY created_at, id"
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT * FROM employees WHERE pay_status = ? ORDER BY created_at, id",
                status,
            )
        return [employee_from_row(r) for r in rows]

    async def update_employee_status(
        self, employee_id: int, status: EmployeeStatus
    ) -> None:
        cur = await asyncio.to_thread(
            self._execute,
            "UPDATE employees SET pay_status = ?, updated_at = ? WHERE id = ?",
            status,
            utcnow(),
            employee_id,
        )
        if cur.rowcount == 0:
            raise EmployeeNotFoundError(employee_id)

    # ------------------------------------------------------------------
    # Provenance
    async def append_provenance(self, record: ProvenanceRecord) -> None:
        try:
            await asyncio.to_thread(
                self._execute,
                "INSERT INTO provenance_records (execution_id, record, created_at) VALUES (?, ?, ?)",
                record.execution_id,
                provenance_to_json(record),
                utcnow(),
            )
        except sqlite3.IntegrityError as exc:
            raise ProvenanceConflictError(record.execution_id) from exc

    async def get_provenance(self, execution_id: str) -> ProvenanceRecord | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT record FROM provenance_records WHERE execution_id = ?",
            execution_id,
        )
        return provenance_from_json(row["record"]) if row else None
