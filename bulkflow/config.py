from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel, Field


class HistoryConfig(BaseModel):
    """Retention settings for the execution history store."""

    limit: Optional[int] = Field(default=None, ge=1)


class RetryConfig(BaseModel):
    """Backoff used between automatic step re-invocations."""

    base: float = Field(default=1.5, gt=0)
    jitter: float = Field(default=0.5, ge=0)


class BulkflowConfig(BaseModel):
    """Top-level configuration model."""

    database_url: Optional[str] = None
    history: HistoryConfig = HistoryConfig()
    retry: RetryConfig = RetryConfig()
    log_tail: int = Field(default=5, ge=0)


def load_config(path: Optional[str] = None) -> BulkflowConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to BULKFLOW_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("BULKFLOW_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = BulkflowConfig(**data)
    else:
        config = BulkflowConfig()

    env_db_url = os.getenv("BULKFLOW_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
