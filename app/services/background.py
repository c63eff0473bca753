"""Tracking for fire-and-forget asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

logger = logging.getLogger(__name__)


class TaskTracker:
    """Holds references to detached tasks until they finish.

    Tasks run concurrently with no ordering between them and are never
    cancelled by this class; ``wait_idle`` only waits for them.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:  # pragma: no cover - coroutines log their own failures
            logger.error("Background task %s failed: %s", task.get_name(), exc)

    async def wait_idle(self) -> None:
        """Wait until every task, including ones spawned while waiting, is done."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
