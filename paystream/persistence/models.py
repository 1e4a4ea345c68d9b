"""Row mapping for persisted workflow state."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Mapping

from ..contracts import Employee, ProvenanceRecord, WorkflowExecution

# column name -> wire field name of the JSON-encoded execution columns
EXECUTION_JSON_COLUMNS = {
    "inputs": "inputs",
    "outputs": "outputs",
    "metadata": "metadata",
    "steps": "steps",
    "decision": "decision",
    "review_request": "reviewRequest",
    "provenance": "provenance",
    "error": "error",
}

EXECUTION_COLUMNS = (
    "id",
    "workflow_type",
    "status",
    "start_time",
    "end_time",
    "duration",
    *EXECUTION_JSON_COLUMNS,
)

EMPLOYEE_COLUMNS = (
    "id",
    "email",
    "name",
    "wallet_address",
    "salary_annual",
    "pay_status",
    "created_at",
    "updated_at",
)


def _load_json(value: Any) -> Any:
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def execution_to_row(execution: WorkflowExecution) -> dict[str, Any]:
    """Flatten an execution into column values; JSON columns are encoded."""
    data = execution.to_dict()
    row: dict[str, Any] = {
        "id": execution.id,
        "workflow_type": execution.workflow_type,
        "status": execution.status,
        "start_time": execution.start_time,
        "end_time": execution.end_time,
        "duration": execution.duration,
    }
    for column, field in EXECUTION_JSON_COLUMNS.items():
        value = data[field]
        row[column] = json.dumps(value) if value is not None else None
    return row


def execution_from_row(row: Mapping[str, Any]) -> WorkflowExecution:
    start_time = row["start_time"]
    end_time = row["end_time"]
    data: dict[str, Any] = {
        "id": row["id"],
        "workflowType": row["workflow_type"],
        "status": row["status"],
        "startTime": start_time.isoformat() if isinstance(start_time, datetime) else start_time,
        "endTime": end_time.isoformat() if isinstance(end_time, datetime) else end_time,
        "duration": row["duration"],
    }
    for column, field in EXECUTION_JSON_COLUMNS.items():
        value = _load_json(row[column])
        if value is not None:
            data[field] = value
    return WorkflowExecution.model_validate(data)


def employee_from_row(row: Mapping[str, Any]) -> Employee:
    return Employee(
        id=row["id"],
        email=row["email"],
        name=row["name"],
        wallet_address=row["wallet_address"],
        salary_annual=row["salary_annual"],
        status=row["pay_status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def provenance_to_json(record: ProvenanceRecord) -> str:
    return json.dumps(record.to_dict())


def provenance_from_json(value: Any) -> ProvenanceRecord:
    return ProvenanceRecord.model_validate(_load_json(value))
