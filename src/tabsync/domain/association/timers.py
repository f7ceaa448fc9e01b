"""Named one-shot timers on the running event loop.

Every piece of deferred work in the engine goes through a ``TimerRegistry``:
association run ticks (label = run id), the debounced reconciliation pipeline
(label ``"reconcile"``) and detail-request retries. Resetting a label replaces
its pending timer, which is what gives the reconciler its single-flight,
debounce-by-name behaviour.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

log = logging.getLogger(__name__)

type TimerCallback = Callable[[], Awaitable[object] | None]


class TimerNotFoundError(KeyError):
    """Raised when clearing a label that has no pending timer."""

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(label)

    def __str__(self) -> str:
        return f"A timer with the given label does not exist: {self.label}"


class TimerRegistry:
    def __init__(self) -> None:
        self._handles: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Future[object]] = set()

    @property
    def pending_labels(self) -> tuple[str, ...]:
        return tuple(self._handles)

    @property
    def busy(self) -> bool:
        """True while any timer is armed or any background task is running."""
        return bool(self._handles or self._tasks)

    def exists(self, label: str) -> bool:
        return label in self._handles

    def reset(self, label: str, delay_ms: int, callback: TimerCallback) -> None:
        """(Re)arm ``label`` to fire ``callback`` after ``delay_ms``."""

        existing = self._handles.pop(label, None)
        if existing is not None:
            existing.cancel()
        loop = asyncio.get_running_loop()
        self._handles[label] = loop.call_later(delay_ms / 1000, self._fire, label, callback)

    def clear(self, label: str) -> None:
        handle = self._handles.pop(label, None)
        if handle is None:
            raise TimerNotFoundError(label)
        handle.cancel()

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()
        for task in self._tasks:
            task.cancel()

    def spawn(self, awaitable: Awaitable[object]) -> None:
        """Run ``awaitable`` in the background, keeping a reference until done."""

        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    async def drain(self) -> None:
        """Wait for background tasks started so far (timers are not awaited)."""

        while self._tasks:
            await asyncio.gather(*tuple(self._tasks), return_exceptions=True)

    def _fire(self, label: str, callback: TimerCallback) -> None:
        self._handles.pop(label, None)
        result = callback()
        if inspect.isawaitable(result):
            self.spawn(result)

    def _task_done(self, task: asyncio.Future[object]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Background task failed", exc_info=exc)
