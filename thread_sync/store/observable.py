"""Minimal publish/subscribe primitives for live store reads.

An :class:`Observable` recomputes its value from an async *source* each
time the owning store publishes a commit, and forwards it to listeners
only when the comparison *key* changed.  Subscribing returns a
:class:`Subscription` handle; releasing the last handle detaches the
observable from its :class:`ObservableHub`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from thread_sync.store.exceptions import NotFoundError

logger = logging.getLogger(__name__)

Listener = Callable[[Any], None]


class Subscription:
    """Cancellation handle returned by :meth:`Observable.subscribe`."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel: Callable[[], None] | None = cancel

    @property
    def closed(self) -> bool:
        return self._cancel is None

    def unsubscribe(self) -> None:
        """Stop receiving values.  Safe to call more than once."""
        if self._cancel is not None:
            cancel, self._cancel = self._cancel, None
            cancel()


class ObservableHub:
    """Tracks the observables that currently have listeners."""

    def __init__(self) -> None:
        self._active: list[Observable] = []

    def __len__(self) -> int:
        return len(self._active)

    def attach(self, observable: Observable) -> None:
        if observable not in self._active:
            self._active.append(observable)

    def detach(self, observable: Observable) -> None:
        if observable in self._active:
            self._active.remove(observable)

    async def publish(self) -> None:
        """Re-evaluate every active observable after a commit."""
        for observable in list(self._active):
            await observable.refresh()


class Observable:
    """A live value backed by a store read."""

    def __init__(
        self,
        source: Callable[[], Awaitable[Any]],
        hub: ObservableHub,
        *,
        key: Callable[[Any], Any] | None = None,
    ) -> None:
        self._source = source
        self._hub = hub
        self._key = key or (lambda value: value)
        self._listeners: list[Listener] = []
        self._last_key: Any = None

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    async def subscribe(self, on_next: Listener) -> Subscription:
        """Register *on_next* and deliver the current value to it at once.

        Raises whatever the source raises (e.g. ``NotFoundError``) without
        registering the listener.
        """
        value = await self._source()
        self._last_key = self._key(value)
        self._listeners.append(on_next)
        self._hub.attach(self)
        on_next(value)
        return Subscription(lambda: self._remove(on_next))

    async def refresh(self) -> None:
        if not self._listeners:
            return
        try:
            value = await self._source()
        except NotFoundError:
            logger.debug("Observed record disappeared; completing stream")
            self._listeners.clear()
            self._hub.detach(self)
            return

        key = self._key(value)
        if key == self._last_key:
            return
        self._last_key = key
        for listener in list(self._listeners):
            listener(value)

    def _remove(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)
        if not self._listeners:
            self._hub.detach(self)
