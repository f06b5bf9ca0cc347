"""Named, cancellable asyncio tasks used for every relay timer."""

from __future__ import annotations

from collections.abc import Coroutine
from typing import Any
import asyncio
import logging


LOGGER = logging.getLogger(__name__)


class TaskRegistry:
    """Holds at most one live task per name; arming a name cancels its predecessor."""

    def __init__(self) -> None:
        self._tasks: dict[str, asyncio.Task[Any]] = {}

    def arm(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        self.cancel(name)
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks[name] = task
        task.add_done_callback(lambda done, name=name: self._on_done(name, done))
        return task

    def cancel(self, name: str) -> None:
        task = self._tasks.pop(name, None)
        if task is None or task.done():
            return
        # Called from inside the task itself: it returns on its own.
        if task is asyncio.current_task():
            return
        task.cancel()

    def is_armed(self, name: str) -> bool:
        task = self._tasks.get(name)
        return task is not None and not task.done()

    def names(self) -> list[str]:
        return sorted(name for name in self._tasks if self.is_armed(name))

    async def cancel_all(self) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        self._tasks.clear()
        current = asyncio.current_task()
        for task in tasks:
            if task is not current:
                task.cancel()
        await asyncio.gather(*(task for task in tasks if task is not current), return_exceptions=True)

    def _on_done(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._tasks.get(name) is task:
            del self._tasks[name]
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("Timer task %s crashed", name, exc_info=exc)
