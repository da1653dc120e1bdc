"""
Push Channels
=============
Minimal subscribe-with-callback subject used for device push feeds.
"""

import asyncio
import inspect
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Subject:
    """Fan-out of pushed values to subscribers, in push order.

    Coroutine callbacks are scheduled on the running loop; the subject keeps
    a reference to each task until it finishes.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._subscribers: list[Callable[[Any], Any]] = []
        self._tasks: set[asyncio.Task] = set()

    def subscribe(self, callback: Callable[[Any], Any]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, value: Any):
        for callback in list(self._subscribers):
            try:
                result = callback(value)
            except Exception as e:
                logger.error(f"Subscriber of {self.name or 'subject'} failed: {e}")
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Subscriber of {self.name or 'subject'} failed: {task.exception()}")

    async def drain(self):
        """Wait for callbacks already scheduled by emit()."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
