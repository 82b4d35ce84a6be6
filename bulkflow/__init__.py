"""Bulkflow: sequential bulk workflows over sets of items."""

from .contracts import (
    Execution,
    ExecutionStatus,
    StepOptions,
    StepResult,
    WorkflowStep,
    WorkflowTemplate,
)
from .errors import BulkflowError, TemplateNotFound
from .events import SnapshotBus
from .execute import ExecutionController, WorkflowEngine
from .persistence import get_repository
from .registry import REGISTRY, TemplateRegistry

__version__ = "0.1.0"
__all__ = [
    "Execution",
    "ExecutionStatus",
    "StepOptions",
    "StepResult",
    "WorkflowStep",
    "WorkflowTemplate",
    "BulkflowError",
    "TemplateNotFound",
    "SnapshotBus",
    "ExecutionController",
    "WorkflowEngine",
    "get_repository",
    "REGISTRY",
    "TemplateRegistry",
]
