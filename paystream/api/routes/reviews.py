"""
Review Queue API Routes
"""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse

from ...contracts import WorkflowType
from ...services import Services
from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/reviews")
async def list_reviews(
    workflow_type: Optional[WorkflowType] = Query(None, alias="workflowType"),
    services: Services = Depends(get_services),
) -> dict:
    reviews = await services.reviews.list_pending(workflow_type)
    return {
        "success": True,
        "reviews": [r.to_dict() for r in reviews],
        "count": len(reviews),
    }


@router.post("/reviews/submit")
async def submit_review(
    request: Request, services: Services = Depends(get_services)
) -> JSONResponse:
    """Approve or reject a pending review; approval settles before returning."""
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Request body must be a JSON object"},
        )

    review_id = payload.get("reviewId")
    decision = payload.get("decision")
    reviewer = payload.get("reviewer")
    if not review_id or not decision or not reviewer:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "success": False,
                "error": "Missing required fields: reviewId, decision, reviewer",
            },
        )

    execution = await services.reviews.submit(
        review_id, decision, reviewer, payload.get("notes")
    )
    content = {
        "success": True,
        "message": f"Review {decision} successfully",
        "reviewId": review_id,
        "decision": decision,
        "reviewer": reviewer,
        "executionId": execution.id,
        "executionStatus": execution.status,
    }
    if execution.outputs.get("transactionHash"):
        content["tx"] = execution.outputs["transactionHash"]
    if execution.error is not None:
        content["executionError"] = execution.error.to_dict()
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)
