"""Core data contracts for bulk workflows and their executions."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

ItemId = str
Category = Literal["opportunities", "skills", "portfolio", "messages", "general"]
LogLevel = Literal["info", "warning", "error"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StepOptions(BaseModel):
    """Typed configuration passed to a step action.

    Steps declare a subclass with their own fields; caller overrides are
    merged over the step defaults and validated against that subclass.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "StepOptions":
        """Return a copy of these options with ``overrides`` applied."""
        if not overrides:
            return self
        return type(self).model_validate({**self.model_dump(), **overrides})


class StepResult(BaseModel):
    """Per-item outcome of a step action."""

    success: List[ItemId] = Field(default_factory=list)
    failed: List[ItemId] = Field(default_factory=list)
    errors: Dict[ItemId, str] = Field(default_factory=dict)

    def partition_problems(self, items: List[ItemId]) -> List[str]:
        """Describe how this result fails to partition ``items``, if at all."""
        problems: List[str] = []
        expected = set(items)
        success = set(self.success)
        failed = set(self.failed)
        if len(success) != len(self.success) or len(failed) != len(self.failed):
            problems.append("duplicate ids in result")
        overlap = success & failed
        if overlap:
            problems.append(f"ids both succeeded and failed: {sorted(overlap)}")
        missing = expected - success - failed
        if missing:
            problems.append(f"ids missing from result: {sorted(missing)}")
        unknown = (success | failed) - expected
        if unknown:
            problems.append(f"unknown ids in result: {sorted(unknown)}")
        return problems


class ValidationOutcome(BaseModel):
    """Result of a step pre-condition check."""

    valid: bool
    message: Optional[str] = None


StepAction = Callable[
    [List[ItemId], StepOptions], Awaitable[Union[StepResult, Dict[str, Any]]]
]
StepValidator = Callable[[List[ItemId]], Any]


class WorkflowStep(BaseModel):
    """Defines one step in a workflow template."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: str
    name: str
    description: str = ""
    action: StepAction
    options: StepOptions = Field(default_factory=StepOptions)
    validation: Optional[StepValidator] = None
    estimated_duration: Optional[float] = Field(default=None, ge=0)
    can_skip: bool = False
    retryable: bool = False
    max_attempts: int = Field(default=1, ge=1)

    def resolve_options(self, overrides: Optional[Dict[str, Any]] = None) -> StepOptions:
        """Merge caller overrides over this step's default options."""
        return self.options.merged(overrides)


class WorkflowTemplate(BaseModel):
    """Ordered sequence of steps plus identifying metadata."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str = ""
    category: Category = "general"
    steps: List[WorkflowStep]

    @field_validator("steps")
    @classmethod
    def _unique_step_ids(cls, steps: List[WorkflowStep]) -> List[WorkflowStep]:
        if not steps:
            raise ValueError("a workflow template needs at least one step")
        ids = [step.id for step in steps]
        if len(set(ids)) != len(ids):
            raise ValueError("step ids must be unique within a template")
        return steps

    @property
    def estimated_duration(self) -> float:
        """Sum of the known step duration estimates, in seconds."""
        return sum(step.estimated_duration or 0 for step in self.steps)

    def get_step(self, step_id: str) -> Optional[WorkflowStep]:
        return next((step for step in self.steps if step.id == step_id), None)


class ExecutionStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
)

ALLOWED_TRANSITIONS: Dict[ExecutionStatus, frozenset] = {
    ExecutionStatus.PENDING: frozenset(
        {ExecutionStatus.RUNNING, ExecutionStatus.FAILED, ExecutionStatus.CANCELLED}
    ),
    ExecutionStatus.RUNNING: frozenset(
        {ExecutionStatus.PAUSED} | TERMINAL_STATUSES
    ),
    ExecutionStatus.PAUSED: frozenset({ExecutionStatus.RUNNING} | TERMINAL_STATUSES),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
    ExecutionStatus.CANCELLED: frozenset(),
}


class ExecutionProgress(BaseModel):
    total_steps: int = Field(ge=0)
    completed_steps: int = Field(default=0, ge=0)
    current_step_progress: float = Field(default=0.0, ge=0, le=100)
    overall_progress: float = Field(default=0.0, ge=0, le=100)


class StepOutcome(StepResult):
    """Recorded result of a completed step."""

    duration: float = 0.0


class LogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=_utcnow)
    level: LogLevel = "info"
    message: str
    step_id: Optional[str] = None


class Execution(BaseModel):
    """A single run of a template against a fixed set of items."""

    id: str = Field(default_factory=lambda: f"exec-{uuid.uuid4().hex[:12]}")
    template_id: str
    items: List[ItemId]
    status: ExecutionStatus = ExecutionStatus.PENDING
    current_step: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    progress: ExecutionProgress
    results: Dict[str, StepOutcome] = Field(default_factory=dict)
    logs: List[LogEntry] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def duration(self) -> Optional[float]:
        """Elapsed seconds between start and end, if both are known."""
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def log_tail(self, count: int = 5) -> List[LogEntry]:
        """Return the most recent ``count`` log entries."""
        if count <= 0:
            return []
        return self.logs[-count:]

    def snapshot(self) -> "Execution":
        """Return a deep copy safe to hand to observers."""
        return self.model_copy(deep=True)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "Execution":
        return cls.model_validate_json(data)
