"""Persistence layer for paystream executions, employees and provenance."""

from __future__ import annotations

from typing import Optional

from ..config import PaystreamConfig, load_config
from .inmemory import InMemoryRepository
from .postgres import PostgresRepository
from .repository import (
    EmployeeRepository,
    ExecutionRepository,
    PaystreamRepository,
    ProvenanceStore,
)
from .sqlite import SQLiteRepository

_repository_instance: PaystreamRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[PaystreamConfig] = None
) -> PaystreamRepository:
    """Factory function to obtain the paystream repository.

    The backend is selected from ``database_url`` which can be provided
    explicitly or from the loaded configuration (which already honours
    ``PAYSTREAM_DATABASE_URL`` and ``DATABASE_URL``). When no database is
    configured, an in-memory repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = database_url or config.database_url

    if not database_url:
        _repository_instance = InMemoryRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteRepository(path)
    elif database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        _repository_instance = PostgresRepository(database_url)
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "EmployeeRepository",
    "ExecutionRepository",
    "InMemoryRepository",
    "PaystreamRepository",
    "PostgresRepository",
    "ProvenanceStore",
    "SQLiteRepository",
    "get_repository",
]
