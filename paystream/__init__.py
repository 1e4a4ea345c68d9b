"""Paystream: payroll decision and settlement pipeline."""

__version__ = "0.1.0"

from .contracts import (
    BatchPaymentEmployee,
    BatchPaymentResult,
    DecisionLogic,
    ReviewRequest,
    WorkflowExecution,
    WorkflowInput,
)
from .decision import evaluate
from .orchestrator import WorkflowOrchestrator
from .persistence import get_repository
from .review import ReviewQueue
from .services import Services, build_services
from .settlement import SettlementExecutor, get_settlement_network

__all__ = [
    "BatchPaymentEmployee",
    "BatchPaymentResult",
    "DecisionLogic",
    "ReviewQueue",
    "ReviewRequest",
    "Services",
    "SettlementExecutor",
    "WorkflowExecution",
    "WorkflowInput",
    "WorkflowOrchestrator",
    "build_services",
    "evaluate",
    "get_repository",
    "get_settlement_network",
]
