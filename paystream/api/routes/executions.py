"""
Workflow Execution API Routes
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ...contracts import WorkflowStatus, WorkflowType
from ...exceptions import ExecutionNotFoundError
from ...services import Services
from ..dependencies import get_services

router = APIRouter()


@router.get("")
async def list_executions(
    status: Optional[WorkflowStatus] = None,
    workflow_type: Optional[WorkflowType] = Query(None, alias="workflowType"),
    services: Services = Depends(get_services),
) -> dict:
    executions = await services.repository.list_executions(
        status=status, workflow_type=workflow_type
    )
    return {
        "success": True,
        "executions": [e.to_dict() for e in executions],
        "count": len(executions),
    }


@router.get("/{execution_id}")
async def execution_detail(
    execution_id: str, services: Services = Depends(get_services)
) -> dict:
    execution = await services.repository.get_execution(execution_id)
    if execution is None:
        raise ExecutionNotFoundError(execution_id)
    return {"success": True, "execution": execution.to_dict()}


@router.get("/{execution_id}/provenance")
async def execution_provenance(
    execution_id: str, services: Services = Depends(get_services)
) -> dict:
    record = await services.recorder.get(execution_id)
    if record is None:
        raise ExecutionNotFoundError(execution_id)
    return {"success": True, "provenance": record.to_dict()}
