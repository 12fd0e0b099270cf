from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class BackgroundTaskQueue:
    """Fire-and-forget coroutines with observable lifetimes.

    The caller never sees a dispatched task's outcome; failures are logged
    here and show up to the UI through unsynced_count(), not through the call
    that dispatched them.
    """

    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, factory: Callable[[], Awaitable[Any]], *, name: str) -> asyncio.Task:
        """Schedule factory() on the running loop and return immediately."""
        task = asyncio.get_running_loop().create_task(factory(), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background task %s failed: %s", task.get_name(), exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait until every dispatched task (including ones they dispatch) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.drain()
