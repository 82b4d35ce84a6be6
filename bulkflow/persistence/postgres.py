"""PostgreSQL implementation of the history repository."""

from __future__ import annotations

import asyncio
from typing import Optional

import asyncpg

from ..contracts import Execution
from ..errors import InvalidExecutionRequest
from .repository import HistoryRepository


class PostgresHistoryRepository(HistoryRepository):
    """Persist terminated executions using PostgreSQL."""

    def __init__(self, dsn: str, limit: Optional[int] = None):
        self._dsn = dsn
        self.limit = limit
        self._initialized = False
        self._lock = asyncio.Lock()

    async def _connect(self) -> asyncpg.Connection:
        conn = await asyncpg.connect(self._dsn)
        if not self._initialized:
            await self._ensure_schema(conn)
            self._initialized = True
        return conn

    async def _ensure_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS execution_history (
                seq BIGSERIAL PRIMARY KEY,
                execution_id TEXT NOT NULL UNIQUE,
                template_id TEXT NOT NULL,
                status TEXT NOT NULL,
                started_at TIMESTAMPTZ,
                ended_at TIMESTAMPTZ,
                data JSONB NOT NULL
            )
            """
        )

    # ------------------------------------------------------------------
    async def append(self, execution: Execution) -> None:
        if not execution.is_terminal:
            raise InvalidExecutionRequest(
                f"Execution {execution.id} is {execution.status.value}; only finished runs enter history"
            )
        async with self._lock:
            conn = await self._connect()
            try:
                async with conn.transaction():
                    await conn.execute(
                        """
                        INSERT INTO execution_history
                            (execution_id, template_id, status, started_at, ended_at, data)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        """,
                        execution.id,
                        execution.template_id,
                        execution.status.value,
                        execution.start_time,
                        execution.end_time,
                        execution.to_json(),
                    )
                    if self.limit is not None:
                        await conn.execute(
                            """
                            DELETE FROM execution_history WHERE seq NOT IN (
                                SELECT seq FROM execution_history ORDER BY seq DESC LIMIT $1
                            )
                            """,
                            self.limit,
                        )
            finally:
                await conn.close()

    async def get_execution(self, execution_id: str) -> Execution | None:
        conn = await self._connect()
        try:
            row = await conn.fetchrow(
                "SELECT data::text AS data FROM execution_history WHERE execution_id = $1",
                execution_id,
            )
        finally:
            await conn.close()
        if not row:
            return None
        return Execution.from_json(row["data"])

    async def list_executions(self, limit: Optional[int] = None) -> list[Execution]:
        conn = await self._connect()
        try:
            if limit is None:
                rows = await conn.fetch(
                    "SELECT data::text AS data FROM execution_history ORDER BY seq DESC"
                )
            else:
                rows = await conn.fetch(
                    "SELECT data::text AS data FROM execution_history ORDER BY seq DESC LIMIT $1",
                    limit,
                )
        finally:
            await conn.close()
        return [Execution.from_json(r["data"]) for r in rows]

    async def clear(self) -> None:
        async with self._lock:
            conn = await self._connect()
            try:
                await conn.execute("DELETE FROM execution_history")
            finally:
                await conn.close()
