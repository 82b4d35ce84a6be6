"""Tests for configuration loading."""

import bulkflow.persistence as persistence
from bulkflow import WorkflowEngine
from bulkflow.config import BulkflowConfig, load_config
from bulkflow.persistence import (
    InMemoryHistoryRepository,
    SQLiteHistoryRepository,
    get_repository,
)


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
history:
  limit: 25
retry:
  base: 2
  jitter: 0
log_tail: 10
"""
    )
    monkeypatch.setenv("BULKFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("BULKFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config()
    assert config.history.limit == 25
    assert config.retry.base == 2
    assert config.retry.jitter == 0
    assert config.log_tail == 10
    assert config.database_url is None


def test_load_config_defaults_when_missing(tmp_path, monkeypatch):
    monkeypatch.delenv("BULKFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config(str(tmp_path / "absent.yaml"))
    assert config.history.limit is None
    assert config.log_tail == 5


def test_database_url_env_override(tmp_path, monkeypatch):
    monkeypatch.setenv("BULKFLOW_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.setenv("BULKFLOW_DATABASE_URL", f"sqlite://{tmp_path / 'h.db'}")

    config = load_config()
    assert config.database_url.startswith("sqlite://")


def test_get_repository_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(f"database_url: sqlite://{tmp_path / 'history.db'}\n")
    monkeypatch.setenv("BULKFLOW_CONFIG", str(config_path))
    monkeypatch.delenv("BULKFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    persistence.reset_repository()

    try:
        repo = get_repository()
        assert isinstance(repo, SQLiteHistoryRepository)
        assert get_repository() is repo
    finally:
        persistence.reset_repository()


def test_get_repository_defaults_to_memory(tmp_path, monkeypatch):
    monkeypatch.setenv("BULKFLOW_CONFIG", str(tmp_path / "absent.yaml"))
    monkeypatch.delenv("BULKFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    persistence.reset_repository()

    try:
        assert isinstance(get_repository(), InMemoryHistoryRepository)
    finally:
        persistence.reset_repository()


def test_get_repository_rejects_unknown_backend():
    import pytest

    with pytest.raises(ValueError):
        get_repository("mysql://localhost/db")
    persistence.reset_repository()


def test_get_repository_reuses_instance_for_same_backend(tmp_path, monkeypatch):
    monkeypatch.delenv("BULKFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    persistence.reset_repository()
    config = BulkflowConfig(database_url=f"sqlite://{tmp_path / 'history.db'}")

    try:
        repo = get_repository(config=config)
        assert get_repository(config=config) is repo
        assert WorkflowEngine(config=config).repository is repo
        assert WorkflowEngine(config=config).repository is repo

        other = get_repository(f"sqlite://{tmp_path / 'other.db'}", config=config)
        assert other is not repo
        assert get_repository(config=config) is repo
    finally:
        persistence.reset_repository()


def test_reset_repository_closes_sqlite_connections(tmp_path, monkeypatch):
    import sqlite3

    import pytest

    monkeypatch.delenv("BULKFLOW_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    persistence.reset_repository()
    repo = get_repository(f"sqlite://{tmp_path / 'history.db'}", config=BulkflowConfig())

    persistence.reset_repository()

    with pytest.raises(sqlite3.ProgrammingError):
        repo._conn.execute("SELECT 1")
