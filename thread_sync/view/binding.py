"""View-model for the thread list of one parent conversation.

The binding owns everything scoped to a single attached view: the two
live store subscriptions, the loader, the sync driver, the press
debounce and any deferred work.  Presenters read :attr:`state` or
register a listener with :meth:`listen`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from thread_sync.badges import BadgeCategory, classify
from thread_sync.config import SyncSettings
from thread_sync.models import ParentSubscription, ThreadItem
from thread_sync.remote import RemoteSource
from thread_sync.store import Collection, NotFoundError, Query, Store, Subscription
from thread_sync.sync.debounce import BackgroundTasks, DropRepeats
from thread_sync.sync.driver import IncrementalSyncDriver, SyncMode, utcnow
from thread_sync.sync.loader import LoadState, PaginationLoader
from thread_sync.sync.reconciler import Reconciler, RemoteThreadBatch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThreadListState:
    """Read-only snapshot published to the presentation layer."""

    items: tuple[ThreadItem, ...] = ()
    loading: bool = False
    exhausted: bool = False
    subscription: ParentSubscription | None = None

    @property
    def is_empty(self) -> bool:
        return not self.loading and not self.items

    @property
    def avatar_etag(self) -> str | None:
        return self.subscription.avatar_etag if self.subscription else None

    def badge(self, item: ThreadItem) -> BadgeCategory:
        return classify(item.id, self.subscription)


@dataclass(frozen=True)
class ThreadSelection:
    """Where to navigate after a thread was pressed.

    ``replace`` asks the navigator to pop the current screen first
    (master-detail layouts).
    """

    parent_id: str
    thread_id: str
    title: str
    replace: bool = False


class ThreadListBinding:
    def __init__(
        self,
        store: Store,
        remote: RemoteSource,
        parent_id: str,
        *,
        settings: SyncSettings | None = None,
        on_select: Callable[[ThreadSelection], object] | None = None,
        master_detail: bool = False,
        clock: Callable[[], datetime] = utcnow,
        preserve_fields: frozenset[str] = frozenset(),
    ) -> None:
        settings = settings or SyncSettings()
        self._store = store
        self.parent_id = parent_id
        self.master_detail = master_detail
        self._on_select = on_select

        self._ready = False
        self._detached = False
        self._degraded = False
        self._subscription: ParentSubscription | None = None
        self._items: list[ThreadItem] = []
        self._handles: list[Subscription] = []
        self._listeners: list[Callable[[ThreadListState], None]] = []
        self._background = BackgroundTasks()

        self.reconciler = Reconciler(store, parent_id, preserve_fields=preserve_fields)
        self.loader = PaginationLoader(
            remote,
            parent_id,
            self._on_page,
            page_size=settings.page_size,
            debounce_seconds=settings.debounce_seconds,
            is_alive=self._is_ready,
            on_state=self._on_loader_state,
        )
        self.driver = IncrementalSyncDriver(
            remote,
            self.reconciler,
            self.loader,
            clock=clock,
            is_alive=self._is_ready,
            defer=self._background.defer,
            on_syncing=self._on_syncing,
        )
        self._press = DropRepeats(self._select, settings.press_debounce_seconds)

    # ── Read side ────────────────────────────────────────────────────

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def mode(self) -> SyncMode | None:
        return self.driver.mode

    @property
    def state(self) -> ThreadListState:
        items = self.reconciler.memory_items if self._degraded else self._items
        return ThreadListState(
            items=tuple(items),
            loading=self.loader.state is LoadState.LOADING or self.driver.syncing,
            exhausted=self.loader.exhausted,
            subscription=self._subscription,
        )

    @property
    def can_load_more(self) -> bool:
        return (
            self._ready
            and self.driver.mode in (SyncMode.LOAD, SyncMode.MEMORY)
            and self.loader.state is LoadState.IDLE
        )

    def badge(self, item: ThreadItem) -> BadgeCategory:
        return classify(item.id, self._subscription)

    def listen(self, listener: Callable[[ThreadListState], None]) -> Subscription:
        """Call *listener* with a fresh state after every change."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(remove)

    # ── Lifecycle ────────────────────────────────────────────────────

    async def attach(self) -> None:
        """Subscribe to the store, flush the buffered values once, then sync.

        A parent that is not stored switches this instance to in-memory
        results for its whole lifetime.  A detached binding cannot be
        attached again; open a new one instead.
        """
        if self._detached:
            raise RuntimeError(f"Thread list of {self.parent_id} was detached")
        if self._ready:
            return
        await self._subscribe_data()
        self._ready = True
        self._publish()
        self._background.defer(self._init)

    def detach(self) -> None:
        """Release subscriptions and cancel pending timers and deferred work.

        A fetch already in flight completes, but its result is dropped.
        """
        self._ready = False
        self._detached = True
        for handle in self._handles:
            handle.unsubscribe()
        self._handles.clear()
        self.loader.cancel()
        self._press.cancel()
        self._background.cancel()

    async def settle(self) -> None:
        """Wait until no deferred work, debounce or fetch is outstanding."""
        while self._background.busy or self.loader.busy:
            await self._background.wait()
            await self.loader.drain()

    # ── Triggers ─────────────────────────────────────────────────────

    def load_more(self) -> None:
        """Ask for the next page (e.g. the list was scrolled near its end)."""
        if self.driver.mode not in (SyncMode.LOAD, SyncMode.MEMORY):
            logger.debug("No paginated load for %s (%s)", self.parent_id, self.mode)
            return
        self.loader.request()

    def press(self, item: ThreadItem) -> bool:
        """Select *item*; repeats within the press window are dropped."""
        return self._press(item)

    # ── Internals ────────────────────────────────────────────────────

    def _is_ready(self) -> bool:
        return self._ready

    async def _subscribe_data(self) -> None:
        try:
            subscription = await self._store.find(
                Collection.SUBSCRIPTIONS, self.parent_id
            )
        except NotFoundError:
            self._degraded = True
            logger.warning(
                "Parent %s is not stored; threads are kept in memory", self.parent_id
            )
            return

        self._handles.append(
            await self._store.observe(subscription).subscribe(self._on_subscription)
        )
        self._handles.append(
            await self._store.observe_query(
                Query.threads_for(self.parent_id)
            ).subscribe(self._on_threads)
        )

    async def _init(self) -> None:
        await self.driver.start(None if self._degraded else self._subscription)

    async def _on_page(self, batch: RemoteThreadBatch) -> None:
        subscription = None if self._degraded else self._subscription
        await self.reconciler.apply(batch, subscription)
        if self._degraded:
            self._publish()

    def _on_subscription(self, subscription: ParentSubscription) -> None:
        self._subscription = subscription
        self._publish()

    def _on_threads(self, items: list[ThreadItem]) -> None:
        self._items = list(items)
        self._publish()

    def _on_loader_state(self, state: LoadState) -> None:
        self._publish()

    def _on_syncing(self, syncing: bool) -> None:
        self._publish()

    def _select(self, item: ThreadItem) -> None:
        selection = ThreadSelection(
            parent_id=item.parent_id,
            thread_id=item.id,
            title=item.title,
            replace=self.master_detail,
        )
        logger.debug("Selected thread %s of %s", item.id, item.parent_id)
        if self._on_select is not None:
            self._on_select(selection)

    def _publish(self) -> None:
        # Values delivered before attach completes are only stored.
        if not self._ready:
            return
        state = self.state
        for listener in list(self._listeners):
            listener(state)
