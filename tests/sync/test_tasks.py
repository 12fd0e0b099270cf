from __future__ import annotations

import asyncio
import logging

from src.gym_attendance.gym_attendance.sync.tasks import BackgroundTaskQueue


def test_failed_task_is_logged_not_raised(caplog):
    queue = BackgroundTaskQueue()

    async def boom():
        raise RuntimeError("remote exploded")

    async def scenario():
        queue.dispatch(boom, name="push-pending")
        await queue.drain()

    with caplog.at_level(logging.WARNING):
        asyncio.run(scenario())

    assert queue.pending == 0
    assert "push-pending" in caplog.text


def test_close_cancels_pending_tasks():
    queue = BackgroundTaskQueue()
    finished: list[str] = []

    async def slow():
        await asyncio.sleep(10)
        finished.append("slow")

    async def scenario():
        queue.dispatch(slow, name="slow")
        await asyncio.sleep(0)
        await queue.close()

    asyncio.run(scenario())

    assert finished == []
    assert queue.pending == 0
