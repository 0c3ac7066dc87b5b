"""Event listener: the one bus subscription shared by every relay."""

from __future__ import annotations

import asyncio
import contextlib

from loguru import logger

from mirror.events import MessageIn
from mirror.gateway.pipeline import MessagePipeline
from mirror.gateway.router import RelayRecord, RoutingTable


class RelayListener:
    """Bus target. Accepts messages from routed channels and handles each in its own task."""

    def __init__(self, table: RoutingTable, pipeline: MessagePipeline) -> None:
        self._table = table
        self._pipeline = pipeline
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def accept_event(self, source: str, evt: object) -> bool:
        return isinstance(evt, MessageIn) and evt.channel_id in self._table

    def push_event(self, source: str, evt: object) -> None:
        if not isinstance(evt, MessageIn):
            return
        record = self._table.lookup(evt.channel_id)
        if record is None:
            # Removed between accept and push
            return
        task = asyncio.create_task(self._run(evt, record))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, evt: MessageIn, record: RelayRecord) -> None:
        try:
            await self._pipeline.handle(evt, record)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("Mirror: error processing message from {}: {}", record.source_id, exc)

    async def drain(self) -> None:
        """Wait for in-flight messages."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel(self) -> None:
        """Cancel in-flight messages."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
