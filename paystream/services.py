"""Composition root wiring the pipeline components together."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import PaystreamConfig, load_config
from .constants import DECISION_ENGINE_VERSION
from .notifications import Notifier, get_notifier
from .orchestrator import WorkflowOrchestrator
from .payroll import PayrollCalculator, PayrollService
from .persistence import get_repository
from .persistence.repository import PaystreamRepository
from .provenance import ProvenanceRecorder
from .review import ReviewQueue
from .scoring import ConfidenceScorer, HeuristicScorer
from .settlement import get_settlement_network
from .settlement.base import SettlementNetwork
from .settlement.executor import AccountLocks, SettlementExecutor

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: PaystreamConfig
    repository: PaystreamRepository
    network: SettlementNetwork
    executor: SettlementExecutor
    orchestrator: WorkflowOrchestrator
    reviews: ReviewQueue
    payroll: PayrollService
    recorder: ProvenanceRecorder


def build_services(
    config: Optional[PaystreamConfig] = None,
    repository: Optional[PaystreamRepository] = None,
    network: Optional[SettlementNetwork] = None,
    notifier: Optional[Notifier] = None,
    scorer: Optional[ConfidenceScorer] = None,
) -> Services:
    """Construct every component once, passing collaborators explicitly.

    Any collaborator can be supplied to substitute a fake; the rest are
    created from ``config``.
    """

    config = config or load_config()
    repository = repository or get_repository(config=config)
    network = network or get_settlement_network(config=config)
    notifier = notifier or get_notifier(config.notifications)
    scorer = scorer or HeuristicScorer()

    executor = SettlementExecutor(
        network, repository, config.settlement, locks=AccountLocks()
    )
    recorder = ProvenanceRecorder(
        repository, models=[DECISION_ENGINE_VERSION, scorer.version]
    )
    orchestrator = WorkflowOrchestrator(
        repository,
        executor,
        recorder,
        policy=config.policy,
        scorer=scorer,
        notifier=notifier,
        employees=repository,
    )
    logger.info(
        f"Paystream services ready (settlement={config.settlement.mode}, "
        f"store={type(repository).__name__})"
    )
    return Services(
        config=config,
        repository=repository,
        network=network,
        executor=executor,
        orchestrator=orchestrator,
        reviews=ReviewQueue(repository, orchestrator),
        payroll=PayrollService(
            repository,
            orchestrator,
            PayrollCalculator(config.payroll),
            executions=repository,
        ),
        recorder=recorder,
    )
