"""Repository abstraction for the execution history store."""

from __future__ import annotations

from typing import Optional, Protocol

from ..contracts import Execution


class HistoryRepository(Protocol):
    """Protocol for execution history backends.

    The controller driving an execution is the only writer and appends once,
    after the execution reaches a terminal status.
    """

    async def append(self, execution: Execution) -> None:
        """Persist a terminated execution."""

    async def get_execution(self, execution_id: str) -> Execution | None:
        """Retrieve an execution by id."""

    async def list_executions(self, limit: Optional[int] = None) -> list[Execution]:
        """Return executions, most recent first."""

    async def clear(self) -> None:
        """Remove every stored execution."""
