"""Timer-plus-pending-slot helpers scoped to one attached view.

* :class:`Debouncer`  : trailing edge: the last call in a quiet window runs.
* :class:`DropRepeats`: leading edge: the first call runs, repeats inside
  the window are dropped.
* :class:`BackgroundTasks`: deferred callbacks and spawned coroutines
  that can be cancelled (if not started yet) and awaited as a group.

Coroutine results are run as tasks; their failures are logged, never
re-raised into the event loop's default handler.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)


class BackgroundTasks:
    """Owns the deferred work of one component instance.

    ``cancel()`` drops callbacks that have not started yet and refuses
    new ones; tasks already running are left to finish.
    """

    def __init__(self) -> None:
        self._handles: set[asyncio.Handle] = set()
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def busy(self) -> bool:
        return bool(self._handles or self._tasks)

    def defer(self, func: Callable[[], Any]) -> None:
        """Run *func* on a later loop iteration."""
        if self._closed:
            return
        loop = asyncio.get_running_loop()
        handle: asyncio.Handle

        def run() -> None:
            self._handles.discard(handle)
            self.run(func)

        handle = loop.call_soon(run)
        self._handles.add(handle)

    def run(self, func: Callable[[], Any]) -> None:
        """Call *func* now; if it returns an awaitable, track it as a task."""
        result = func()
        if inspect.isawaitable(result):
            self.spawn(result)

    def spawn(self, awaitable: Awaitable[Any]) -> asyncio.Future:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def cancel(self) -> None:
        self._closed = True
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    async def wait(self) -> None:
        """Wait until no deferred callback or task is left."""
        while self._handles or self._tasks:
            if self._tasks:
                await asyncio.wait(set(self._tasks))
            else:
                await asyncio.sleep(0)

    def _on_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task failed: %s", exc, exc_info=exc)


class Debouncer:
    """Trailing debounce: each call replaces the pending one and restarts the timer."""

    def __init__(self, func: Callable[..., Any], wait: float) -> None:
        self._func = func
        self._wait = wait
        self._handle: asyncio.TimerHandle | None = None
        self._tasks = BackgroundTasks()
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def busy(self) -> bool:
        return self.pending or self._tasks.busy

    def __call__(self, *args: Any, **kwargs: Any) -> None:
        if self._closed:
            return
        if self._handle is not None:
            self._handle.cancel()
            logger.debug("Debounced call replaced a pending one")
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._wait, self._fire, args, kwargs)

    def _fire(self, args: tuple, kwargs: dict) -> None:
        self._handle = None
        self._tasks.run(lambda: self._func(*args, **kwargs))

    def cancel(self) -> None:
        """Drop the pending call and ignore future ones."""
        self._closed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    async def drain(self) -> None:
        """Wait for the pending call to fire and its work to finish."""
        loop = asyncio.get_running_loop()
        while self.busy:
            if self._handle is not None:
                await asyncio.sleep(max(0.0, self._handle.when() - loop.time()))
            else:
                await self._tasks.wait()


class DropRepeats:
    """Leading-edge debounce: run now, drop every call for ``wait`` seconds."""

    def __init__(self, func: Callable[..., Any], wait: float) -> None:
        self._func = func
        self._wait = wait
        self._handle: asyncio.TimerHandle | None = None
        self._tasks = BackgroundTasks()
        self._closed = False

    def __call__(self, *args: Any, **kwargs: Any) -> bool:
        """Return ``True`` if the call ran, ``False`` if it was dropped."""
        if self._closed or self._handle is not None:
            logger.debug("Dropped repeated call")
            return False
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self._wait, self._release)
        self._tasks.run(lambda: self._func(*args, **kwargs))
        return True

    def _release(self) -> None:
        self._handle = None

    def cancel(self) -> None:
        self._closed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
