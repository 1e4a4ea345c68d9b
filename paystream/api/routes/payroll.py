"""
Payroll API Routes
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ...services import Services
from ..dependencies import get_services
from ..errors import error_body, status_for

router = APIRouter()


@router.post("/payroll")
async def run_payroll(services: Services = Depends(get_services)) -> JSONResponse:
    """Pay every pending employee through the approval pipeline."""
    outcome = await services.payroll.process_payroll()
    body = outcome.model_dump(by_alias=True, mode="json", exclude_none=True)

    if outcome.status == "failed":
        body.update(error_body(outcome.error_kind, outcome.error, outcome.details))
        return JSONResponse(status_code=status_for(outcome.error_kind), content=body)
    if outcome.status == "pending":
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=body)
    return JSONResponse(status_code=status.HTTP_200_OK, content=body)


@router.get("/payroll")
async def pending_payroll(services: Services = Depends(get_services)) -> dict:
    return await services.payroll.pending_summary()


@router.get("/balance")
async def funding_balance(services: Services = Depends(get_services)) -> dict:
    balance = await services.executor.get_balance()
    return {
        "success": True,
        "balance": float(balance),
        "fundingAddress": services.network.funding_address,
    }
