"""Track background asyncio work such as in-flight sends and animations."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)

SEND_TASK_PREFIX = "send:"


def send_task_name(chat_id: str) -> str:
    return f"{SEND_TASK_PREFIX}{chat_id}"


class TaskManager:
    """Own named and anonymous tasks so they can be interrupted or drained.

    A named task is dropped from tracking as soon as it finishes, so
    :meth:`get` only returns a send that is still in flight for its chat.
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def spawn(
        self, coro: Coroutine[Any, Any, Any], name: str | None = None
    ) -> asyncio.Task[Any]:
        """Schedule ``coro`` and track the resulting task."""
        task = asyncio.create_task(coro, name=name)
        self.add(task, name=name)
        return task

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        if name is None:
            self._anonymous.add(task)
            task.add_done_callback(self._anonymous.discard)
            return
        previous = self._named.get(name)
        if previous is not None and not previous.done():
            LOGGER.warning(
                "tasks.name.reused",
                extra={"event": "tasks.name.reused", "task_name": name},
            )
        self._named[name] = task
        task.add_done_callback(lambda done, key=name: self._forget(key, done))
        task.add_done_callback(self._log_failure)

    def _forget(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    @staticmethod
    def _log_failure(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "tasks.failed",
                extra={"event": "tasks.failed", "task_name": task.get_name()},
                exc_info=exc,
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        return self._named.get(name)

    async def cancel(self, name: str) -> bool:
        """Cancel a named task and wait for it to unwind.

        Returns True when a running task was actually interrupted.
        """
        task = self._named.pop(name, None)
        if task is None or task.done():
            return False
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        LOGGER.info(
            "tasks.cancelled",
            extra={"event": "tasks.cancelled", "task_name": name},
        )
        return True

    async def cancel_all(self) -> None:
        tasks = [
            task
            for task in [*self._named.values(), *self._anonymous]
            if not task.done()
        ]
        for task in tasks:
            task.cancel()
        # Cancellation is expected here; other failures are already logged.
        await asyncio.gather(*tasks, return_exceptions=True)
        self._named.clear()
        self._anonymous.clear()
