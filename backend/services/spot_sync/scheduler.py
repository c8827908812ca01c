"""Cancellable timers for the sync controllers.

``AsyncioScheduler`` wraps ``loop.call_at`` so one-shot and repeating timers
return handles that can be cancelled synchronously. ``TimerGroup`` collects
every handle a session arms so ``stop``/``start`` have a single place to
cancel them.

Repeating timers fire on a fixed period measured from when they were armed;
there is no backoff.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Coroutine, Optional, Protocol

from utils.logger import get_logger

logger = get_logger("spot_sync.scheduler")

TimerCallback = Callable[[], None]


class Cancellable(Protocol):
    @property
    def cancelled(self) -> bool:
        ...

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Timer/task API the controllers depend on."""

    def now(self) -> float:
        ...

    def call_later(self, delay: float, callback: TimerCallback) -> Cancellable:
        ...

    def call_every(self, interval: float, callback: TimerCallback) -> Cancellable:
        ...

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        ...


class TimerHandle:
    """Handle for a one-shot or repeating timer armed on the event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        callback: TimerCallback,
        interval: Optional[float] = None,
    ):
        self._loop = loop
        self._callback = callback
        self._interval = interval
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False
        self._next_at = 0.0

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def repeating(self) -> bool:
        return self._interval is not None

    def _arm(self, when: float) -> None:
        self._next_at = when
        self._handle = self._loop.call_at(when, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        if self._interval is None:
            self._cancelled = True
        else:
            # Re-arm before running so the callback may cancel its own timer.
            self._arm(self._next_at + self._interval)
        try:
            self._callback()
        except Exception:
            logger.exception("Timer callback failed")

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioScheduler:
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: set[asyncio.Task] = set()

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        loop = self._get_loop()
        handle = TimerHandle(loop, callback)
        handle._arm(loop.time() + max(0.0, float(delay)))
        return handle

    def call_every(self, interval: float, callback: TimerCallback) -> TimerHandle:
        if interval <= 0:
            raise ValueError("interval must be positive")
        loop = self._get_loop()
        handle = TimerHandle(loop, callback, interval=float(interval))
        handle._arm(loop.time() + float(interval))
        return handle

    def spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = self._get_loop().create_task(coro)
        # Keep a strong reference until done; the loop only holds weak ones.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def aclose(self) -> None:
        """Cancel and await outstanding spawned tasks."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


class TimerGroup:
    """Timers owned by one session; the single cancellation point."""

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._handles: list[Cancellable] = []

    def call_later(self, delay: float, callback: TimerCallback) -> Cancellable:
        handle = self._scheduler.call_later(delay, callback)
        self._track(handle)
        return handle

    def call_every(self, interval: float, callback: TimerCallback) -> Cancellable:
        handle = self._scheduler.call_every(interval, callback)
        self._track(handle)
        return handle

    def _track(self, handle: Cancellable) -> None:
        self._handles = [h for h in self._handles if not h.cancelled]
        self._handles.append(handle)

    def cancel(self, handle: Optional[Cancellable]) -> None:
        if handle is None:
            return
        handle.cancel()
        if handle in self._handles:
            self._handles.remove(handle)

    def cancel_all(self) -> None:
        handles, self._handles = self._handles, []
        for handle in handles:
            handle.cancel()

    @property
    def active_count(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)
