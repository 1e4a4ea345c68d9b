"""Write-once audit records for workflow executions."""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from .constants import COMPLIANCE_CHECKS, DECISION_ENGINE_VERSION, SCHEMA_VERSION
from .contracts import Artifact, ProvenanceRecord, WorkflowExecution
from .persistence.repository import ProvenanceStore

logger = logging.getLogger(__name__)

DEFAULT_DATA_SOURCES = ("employee-store", "user-input")


def execution_log_hash(execution: WorkflowExecution) -> str:
    """SHA-256 of the canonical JSON of the execution inputs, steps and decision."""
    data = execution.to_dict()
    payload: Dict[str, Any] = {
        "inputs": data["inputs"],
        "steps": data["steps"],
        "decision": data["decision"],
    }
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ProvenanceRecorder:
    """Builds and appends the provenance record of a terminal execution."""

    def __init__(
        self,
        store: ProvenanceStore,
        models: Optional[Sequence[str]] = None,
        data_sources: Sequence[str] = DEFAULT_DATA_SOURCES,
    ) -> None:
        self._store = store
        self._models = list(models) if models else [DECISION_ENGINE_VERSION]
        self._data_sources = list(data_sources)

    def build(self, execution: WorkflowExecution) -> ProvenanceRecord:
        review = execution.review_request
        reviewer = review.reviewer if review else None

        approvers: List[str] = []
        if execution.metadata.requested_by:
            approvers.append(execution.metadata.requested_by)
        if reviewer and review.decision == "approved" and reviewer not in approvers:
            approvers.append(reviewer)

        return ProvenanceRecord(
            execution_id=execution.id,
            workflow_type=execution.workflow_type,
            version=SCHEMA_VERSION,
            data_sources=self._data_sources,
            models=self._models,
            approvers=approvers,
            reviewer=reviewer,
            compliance_checks=list(COMPLIANCE_CHECKS),
            artifacts=[
                Artifact(
                    type="execution_log",
                    location=f"/workflows/executions/{execution.id}.json",
                    hash=execution_log_hash(execution),
                )
            ],
        )

    async def record(self, execution: WorkflowExecution) -> ProvenanceRecord:
        """Append the record for ``execution``.

        Raises ``ProvenanceConflictError`` if a record was already written.
        """
        record = self.build(execution)
        await self._store.append_provenance(record)
        logger.info(f"Recorded provenance for execution {execution.id}")
        return record

    async def get(self, execution_id: str) -> ProvenanceRecord | None:
        return await self._store.get_provenance(execution_id)
