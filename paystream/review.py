"""Human review queue for parked workflow executions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from .contracts import ReviewRequest, WorkflowExecution, WorkflowType, utcnow
from .exceptions import (
    InvalidReviewDecisionError,
    ReviewAlreadyDecidedError,
    ReviewNotFoundError,
)
from .orchestrator import WorkflowOrchestrator
from .persistence.repository import ExecutionRepository

logger = logging.getLogger(__name__)

REVIEW_DECISIONS = ("approved", "rejected")


class ReviewQueue:
    """Lists pending reviews and applies human decisions exactly once.

    Reviews never expire: a pending execution only changes state through
    :meth:`submit`. An approval resumes the pipeline at ``execute`` before
    ``submit`` returns; a rejection finalizes the execution as ``rejected``.
    """

    def __init__(
        self, repository: ExecutionRepository, orchestrator: WorkflowOrchestrator
    ) -> None:
        self._repository = repository
        self._orchestrator = orchestrator
        self._lock = asyncio.Lock()

    async def list_pending(
        self, workflow_type: Optional[WorkflowType] = None
    ) -> List[ReviewRequest]:
        executions = await self._repository.list_executions(
            status="pending", workflow_type=workflow_type
        )
        return [e.review_request for e in executions if e.review_request is not None]

    async def submit(
        self,
        review_id: str,
        decision: Any,
        reviewer: str,
        notes: Optional[str] = None,
    ) -> WorkflowExecution:
        """Stamp ``decision`` on the review and continue its execution.

        Raises:
            InvalidReviewDecisionError: ``decision`` is not approved/rejected.
            ReviewNotFoundError: No execution embeds ``review_id``.
            ReviewAlreadyDecidedError: The review was decided before.
        """
        if decision not in REVIEW_DECISIONS:
            raise InvalidReviewDecisionError(decision)

        # Serializes duplicate submissions so only one can stamp the review.
        async with self._lock:
            execution = await self._repository.find_by_review_id(review_id)
            if execution is None or execution.review_request is None:
                raise ReviewNotFoundError(review_id)
            review = execution.review_request
            if review.is_decided:
                raise ReviewAlreadyDecidedError(review_id, review.decision)

            review.reviewer = reviewer
            review.reviewed_at = utcnow()
            review.decision = decision
            review.notes = notes
            step = execution.find_step("review")
            if step is not None:
                step.close(
                    "completed",
                    result={"decision": decision, "reviewer": reviewer, "notes": notes},
                )
            await self._repository.update_execution(execution)
            logger.info(f"Review {review_id} {decision} by {reviewer}")

        if decision == "approved":
            return await self._orchestrator.resume(execution)
        return await self._orchestrator.finalize_rejected(execution)
