"""History store for terminated bulk workflow executions."""

from __future__ import annotations

import os
from typing import Dict, Optional, Tuple

from ..config import BulkflowConfig, load_config
from .inmemory import InMemoryHistoryRepository
from .repository import HistoryRepository
from .sqlite import SQLiteHistoryRepository

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresHistoryRepository
except ImportError:  # pragma: no cover - optional dependency
    PostgresHistoryRepository = None  # type: ignore

_repository_instance: HistoryRepository | None = None
# One repository per (database url, retention limit), shared by every caller.
_repositories: Dict[Tuple[Optional[str], Optional[int]], HistoryRepository] = {}


def get_repository(
    database_url: Optional[str] = None, config: Optional[BulkflowConfig] = None
) -> HistoryRepository:
    """Factory function to obtain the history repository.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``BULKFLOW_DATABASE_URL`` or
    ``DATABASE_URL``, or from loaded configuration. When no database is
    configured, an in-memory repository is returned. Repeated calls that
    resolve to the same backend and retention limit return the same
    instance, so connections are opened once per backend.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    limit = config.history.limit
    database_url = (
        database_url
        or os.getenv("BULKFLOW_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or config.database_url
    )

    key = (database_url or None, limit)
    repository = _repositories.get(key)
    if repository is None:
        repository = _build_repository(database_url, limit)
        _repositories[key] = repository
    _repository_instance = repository
    return repository


def _build_repository(database_url: Optional[str], limit: Optional[int]) -> HistoryRepository:
    if not database_url:
        return InMemoryHistoryRepository(limit=limit)
    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteHistoryRepository(path, limit=limit)
    if database_url.startswith("postgres://") or database_url.startswith("postgresql://"):
        if PostgresHistoryRepository is None:
            raise RuntimeError("Postgres support not available")
        return PostgresHistoryRepository(database_url, limit=limit)
    raise ValueError(f"Unsupported database backend: {database_url}")


def reset_repository() -> None:
    """Close and forget cached repositories so the next call rebuilds them."""
    global _repository_instance
    for repository in _repositories.values():
        close = getattr(repository, "close", None)
        if callable(close):
            close()
    _repositories.clear()
    _repository_instance = None


__all__ = [
    "HistoryRepository",
    "InMemoryHistoryRepository",
    "SQLiteHistoryRepository",
    "PostgresHistoryRepository",
    "get_repository",
    "reset_repository",
]
