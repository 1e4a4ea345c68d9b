"""Mapping of pipeline errors to HTTP responses."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from ..exceptions import PaystreamError

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: Dict[str, int] = {
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "invalid_review_decision": status.HTTP_400_BAD_REQUEST,
    "insufficient_funds": status.HTTP_400_BAD_REQUEST,
    "submission_error": status.HTTP_502_BAD_GATEWAY,
    "network_error": status.HTTP_502_BAD_GATEWAY,
    "rate_limited": status.HTTP_502_BAD_GATEWAY,
    "nonce_conflict": status.HTTP_502_BAD_GATEWAY,
    "review_not_found": status.HTTP_404_NOT_FOUND,
    "execution_not_found": status.HTTP_404_NOT_FOUND,
    "employee_not_found": status.HTTP_404_NOT_FOUND,
    "review_already_decided": status.HTTP_409_CONFLICT,
    "provenance_conflict": status.HTTP_409_CONFLICT,
}


def status_for(kind: Optional[str]) -> int:
    return _STATUS_BY_KIND.get(kind or "", status.HTTP_500_INTERNAL_SERVER_ERROR)


def error_body(
    kind: Optional[str], message: Optional[str], details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Response body for a failure; ``success`` is always false."""
    body: Dict[str, Any] = {"success": False, "error": message, "errorKind": kind}
    if kind == "insufficient_funds":
        body["error"] = "INSUFFICIENT_BALANCE"
        body["message"] = message
    if details:
        body["details"] = details
    return body


async def paystream_error_handler(request: Request, exc: PaystreamError) -> JSONResponse:
    code = status_for(exc.kind)
    if code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=code, content=error_body(exc.kind, str(exc), exc.details())
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PaystreamError, paystream_error_handler)
