from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from thread_sync.remote import RemoteSource, TransportError
from thread_sync.sync.debounce import Debouncer
from thread_sync.sync.reconciler import RemoteThreadBatch

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
DEBOUNCE_SECONDS = 0.3


class LoadState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    EXHAUSTED = "exhausted"


@dataclass
class PageCursor:
    offset: int = 0
    exhausted: bool = False

    def advance(self, count: int, page_size: int) -> None:
        if self.exhausted:
            return
        self.offset += count
        if count < page_size:
            self.exhausted = True

    def reset(self) -> None:
        self.offset = 0
        self.exhausted = False


class PaginationLoader:
    """Offset pagination with debounced triggers.

    ``Idle → Loading → (Idle | Exhausted)``.  Each fetch asks for
    ``page_size`` threads at the accumulated offset and hands the page
    to *on_page* as an append-only batch.  A short page ends the loader, as
    does any failure to fetch or hand off a page; only :meth:`start`
    resets it.

    The watermark travels with the page that reaches the end of the
    list only, so a list that was never read to the end keeps no
    watermark and is paged again from the top by the next load.
    """

    def __init__(
        self,
        remote: RemoteSource,
        parent_id: str,
        on_page: Callable[[RemoteThreadBatch], Awaitable[object]],
        *,
        page_size: int = PAGE_SIZE,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        is_alive: Callable[[], bool] = lambda: True,
        on_state: Callable[[LoadState], None] | None = None,
    ) -> None:
        self._remote = remote
        self.parent_id = parent_id
        self._on_page = on_page
        self.page_size = page_size
        self._is_alive = is_alive
        self._on_state = on_state
        self._state = LoadState.IDLE
        self._debounced = Debouncer(self._load, debounce_seconds)
        self.cursor = PageCursor()
        self.watermark: datetime | None = None
        self.last_error: TransportError | None = None

    @property
    def state(self) -> LoadState:
        return self._state

    @property
    def exhausted(self) -> bool:
        return self._state is LoadState.EXHAUSTED

    @property
    def busy(self) -> bool:
        return self._debounced.busy

    def start(self, watermark: datetime | None = None) -> None:
        """Reset the cursor and request the first page.

        *watermark* is recorded with the last page of the list.
        """
        self.cursor.reset()
        self.watermark = watermark
        self.last_error = None
        self._set_state(LoadState.IDLE)
        self.request()

    def request(self) -> None:
        """The "load more" trigger.  Ignored while loading, exhausted or detached."""
        if not self._can_load():
            logger.debug(
                "Ignoring load request for %s (%s)", self.parent_id, self._state
            )
            return
        self._debounced()

    def cancel(self) -> None:
        self._debounced.cancel()

    async def drain(self) -> None:
        await self._debounced.drain()

    def _can_load(self) -> bool:
        return self._state is LoadState.IDLE and self._is_alive()

    async def _load(self) -> None:
        if not self._can_load():
            return

        self._set_state(LoadState.LOADING)
        try:
            page = await self._remote.fetch_page(
                self.parent_id, self.page_size, self.cursor.offset
            )
        except TransportError as exc:
            logger.error(
                "Loading threads of %s at offset %d failed: %s",
                self.parent_id,
                self.cursor.offset,
                exc,
            )
            self.last_error = exc
            self._set_state(LoadState.EXHAUSTED)
            return

        if not self._is_alive():
            logger.debug("Discarding page of %s: detached", self.parent_id)
            self._set_state(LoadState.IDLE)
            return

        self.cursor.advance(page.count, self.page_size)
        logger.info(
            "Loaded %d threads of %s (offset now %d%s)",
            page.count,
            self.parent_id,
            self.cursor.offset,
            ", end reached" if self.cursor.exhausted else "",
        )
        as_of = self.watermark if self.cursor.exhausted else None
        try:
            await self._on_page(RemoteThreadBatch(updated=page.items, as_of=as_of))
        except Exception:
            self._set_state(LoadState.EXHAUSTED)
            raise
        self._set_state(
            LoadState.EXHAUSTED if self.cursor.exhausted else LoadState.IDLE
        )

    def _set_state(self, state: LoadState) -> None:
        if state is self._state:
            return
        self._state = state
        if self._on_state is not None:
            self._on_state(state)
