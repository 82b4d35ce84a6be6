"""Progress and log bookkeeping for a single execution."""

from __future__ import annotations

import logging
from typing import Optional

from .contracts import (
    ALLOWED_TRANSITIONS,
    Execution,
    ExecutionStatus,
    LogEntry,
    LogLevel,
    StepOutcome,
)
from .errors import InvalidTransition
from .events import SnapshotBus

logger = logging.getLogger(__name__)

_LEVELS = {
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class ExecutionRecorder:
    """Single writer for an execution's status, progress, results and logs.

    Every mutation goes through this class so the log stays append-only and
    published ``overall_progress`` values never decrease.
    """

    def __init__(self, execution: Execution, bus: Optional[SnapshotBus] = None) -> None:
        self.execution = execution
        self._bus = bus

    # ------------------------------------------------------------------
    # Status
    def transition(self, target: ExecutionStatus) -> None:
        current = self.execution.status
        if current == target:
            return
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)
        self.execution.status = target

    # ------------------------------------------------------------------
    # Logs
    def log(self, level: LogLevel, message: str, step_id: Optional[str] = None) -> LogEntry:
        entry = LogEntry(level=level, message=message, step_id=step_id)
        self.execution.logs.append(entry)
        logger.log(_LEVELS[level], f"[{self.execution.id}] {message}")
        return entry

    # ------------------------------------------------------------------
    # Progress
    def _recompute_overall(self) -> None:
        progress = self.execution.progress
        if progress.total_steps == 0:
            overall = 100.0
        else:
            overall = progress.completed_steps / progress.total_steps * 100
        progress.overall_progress = max(progress.overall_progress, overall)

    def start_step(self, index: int) -> None:
        self.execution.current_step = index
        self.execution.progress.current_step_progress = 0.0
        self._recompute_overall()

    def complete_step(self, step_id: str, outcome: Optional[StepOutcome]) -> None:
        """Count a step as completed, recording its outcome when it ran."""
        if outcome is not None:
            self.execution.results[step_id] = outcome
        progress = self.execution.progress
        progress.current_step_progress = 100.0
        progress.completed_steps = min(progress.completed_steps + 1, progress.total_steps)
        self._recompute_overall()

    # ------------------------------------------------------------------
    async def publish(self) -> Execution:
        snapshot = self.execution.snapshot()
        if self._bus is not None:
            await self._bus.publish(snapshot)
        return snapshot
