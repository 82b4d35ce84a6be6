"""In-memory implementation of the history repository."""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Deque, Optional

from ..contracts import Execution
from ..errors import InvalidExecutionRequest
from .repository import HistoryRepository


class InMemoryHistoryRepository(HistoryRepository):
    """Keep terminated executions in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. With ``limit`` set only the most
    recent ``limit`` executions are retained.
    """

    def __init__(self, limit: Optional[int] = None) -> None:
        self._executions: Deque[Execution] = deque(maxlen=limit)
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------------
    async def append(self, execution: Execution) -> None:
        if not execution.is_terminal:
            raise InvalidExecutionRequest(
                f"Execution {execution.id} is {execution.status.value}; only finished runs enter history"
            )
        async with self._lock:
            self._executions.appendleft(execution.snapshot())

    async def get_execution(self, execution_id: str) -> Execution | None:
        for execution in self._executions:
            if execution.id == execution_id:
                return execution.snapshot()
        return None

    async def list_executions(self, limit: Optional[int] = None) -> list[Execution]:
        executions = list(self._executions)
        if limit is not None:
            executions = executions[:limit]
        return [execution.snapshot() for execution in executions]

    async def clear(self) -> None:
        async with self._lock:
            self._executions.clear()
