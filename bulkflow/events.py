"""Snapshot channel connecting running executions to their observers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, List, Optional, Union

from .contracts import Execution

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Execution], Union[None, Awaitable[None]]]

DEFAULT_KEEP_LATEST = 256


class SnapshotBus:
    """Fan out execution snapshots to callbacks and async streams.

    The bus remembers the latest snapshot of the most recent
    ``keep_latest`` executions so a stream opened late still sees where an
    execution stands, including one that has already finished.
    """

    def __init__(self, keep_latest: int = DEFAULT_KEEP_LATEST) -> None:
        self._callbacks: List[SnapshotCallback] = []
        self._queues: List[asyncio.Queue] = []
        self._latest: "OrderedDict[str, Execution]" = OrderedDict()
        self._keep_latest = keep_latest

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register ``callback`` and return a function that removes it."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    async def publish(self, snapshot: Execution) -> None:
        """Deliver ``snapshot`` to every subscriber.

        A subscriber that raises is logged and skipped; it never affects the
        execution that published the snapshot.
        """
        self._remember(snapshot)
        for callback in list(self._callbacks):
            try:
                outcome = callback(snapshot)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(
                    f"Snapshot subscriber {callback!r} failed for execution {snapshot.id}: {e}"
                )
        for queue in list(self._queues):
            queue.put_nowait(snapshot)

    def stream(self, execution_id: Optional[str] = None) -> "SnapshotStream":
        """Return an async iterator over snapshots published from now on.

        The stream is registered before this returns, so nothing published
        afterwards is missed. With ``execution_id`` only that execution's
        snapshots are yielded, starting from the latest one already published,
        and the stream ends after its terminal snapshot.
        """
        return SnapshotStream(self, execution_id)

    def latest(self, execution_id: str) -> Optional[Execution]:
        """Return the most recent snapshot published for ``execution_id``."""
        return self._latest.get(execution_id)

    def _remember(self, snapshot: Execution) -> None:
        self._latest[snapshot.id] = snapshot
        self._latest.move_to_end(snapshot.id)
        while len(self._latest) > self._keep_latest:
            self._latest.popitem(last=False)

    def _attach(self, queue: asyncio.Queue) -> None:
        self._queues.append(queue)

    def _detach(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)


class SnapshotStream:
    """Queue-backed snapshot iterator, registered with its bus on creation.

    Streams without an execution id never end on their own; leave them with
    ``close()`` or use the stream as an async context manager.
    """

    def __init__(self, bus: SnapshotBus, execution_id: Optional[str] = None) -> None:
        self._bus = bus
        self.execution_id = execution_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        bus._attach(self._queue)
        if execution_id is not None:
            latest = bus.latest(execution_id)
            if latest is not None:
                self._queue.put_nowait(latest)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "SnapshotStream":
        return self

    async def __anext__(self) -> Execution:
        if self._closed:
            raise StopAsyncIteration
        while True:
            snapshot = await self._queue.get()
            if self.execution_id is None:
                return snapshot
            if snapshot.id != self.execution_id:
                continue
            if snapshot.is_terminal:
                self.close()
            return snapshot

    async def __aenter__(self) -> "SnapshotStream":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._bus._detach(self._queue)
