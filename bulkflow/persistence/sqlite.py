"""SQLite implementation of the history repository."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any, Optional

from ..contracts import Execution
from ..errors import InvalidExecutionRequest
from .repository import HistoryRepository


class SQLiteHistoryRepository(HistoryRepository):
    """Persist terminated executions using SQLite."""

    def __init__(self, db_path: str | Path, limit: Optional[int] = None):
        self.db_path = str(db_path)
        self.limit = limit
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = asyncio.Lock()
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS execution_history (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                execution_id TEXT NOT NULL UNIQUE,
                template_id TEXT NOT NULL,
                status TEXT NOT NULL,
                started_at TEXT,
                ended_at TEXT,
                data TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def _insert(self, execution: Execution) -> None:
        cur = self._conn.cursor()
        cur.execute(
            "INSERT INTO execution_history (execution_id, template_id, status, started_at, ended_at, data) VALUES (?, ?, ?, ?, ?, ?)",
            (
                execution.id,
                execution.template_id,
                execution.status.value,
                execution.start_time.isoformat() if execution.start_time else None,
                execution.end_time.isoformat() if execution.end_time else None,
                execution.to_json(),
            ),
        )
        if self.limit is not None:
            cur.execute(
                """
                DELETE FROM execution_history WHERE seq NOT IN (
                    SELECT seq FROM execution_history ORDER BY seq DESC LIMIT ?
                )
                """,
                (self.limit,),
            )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Repository API
    async def append(self, execution: Execution) -> None:
        if not execution.is_terminal:
            raise InvalidExecutionRequest(
                f"Execution {execution.id} is {execution.status.value}; only finished runs enter history"
            )
        async with self._lock:
            await asyncio.to_thread(self._insert, execution)

    async def get_execution(self, execution_id: str) -> Execution | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT data FROM execution_history WHERE execution_id = ?",
            execution_id,
        )
        if not row:
            return None
        return Execution.from_json(row["data"])

    async def list_executions(self, limit: Optional[int] = None) -> list[Execution]:
        if limit is None:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT data FROM execution_history ORDER BY seq DESC",
            )
        else:
            rows = await asyncio.to_thread(
                self._fetchall,
                "SELECT data FROM execution_history ORDER BY seq DESC LIMIT ?",
                limit,
            )
        return [Execution.from_json(row["data"]) for row in rows]

    async def clear(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._execute, "DELETE FROM execution_history")

    def close(self) -> None:
        self._conn.close()
