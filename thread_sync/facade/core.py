"""Main facade for the thread_sync library."""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any

from thread_sync.config import SyncSettings, parse_config
from thread_sync.facade.types import SyncResult
from thread_sync.models import ParentSubscription, ThreadItem
from thread_sync.remote import RemoteSource
from thread_sync.store import Collection, NotFoundError, Query, Store
from thread_sync.view import ThreadListBinding, ThreadSelection

logger = logging.getLogger(__name__)


def _assign_server_fields(
    target: ParentSubscription, source: ParentSubscription
) -> None:
    target.unread_all = source.unread_all
    target.unread_mentioning_me = source.unread_mentioning_me
    target.unread_mentioning_group = source.unread_mentioning_group
    target.avatar_etag = source.avatar_etag


class ThreadSync:
    """Main entry point for the thread_sync library.

    Usage::

        sync = ThreadSync.from_config({
            "store": {"provider": "sqlite", "config": {"path": "threads.db"}},
            "remote": {
                "provider": "http",
                "config": {"base_url": "https://chat.example.com"},
            },
        })
        async with sync:
            await sync.save_subscription(ParentSubscription(id="GENERAL"))
            result = await sync.sync_parent("GENERAL", all_pages=True)
    """

    def __init__(
        self,
        store: Store,
        remote: RemoteSource,
        settings: SyncSettings | None = None,
    ) -> None:
        self._store = store
        self._remote = remote
        self.settings = settings or SyncSettings()

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ThreadSync:
        """Construct a ThreadSync instance from a configuration dict."""
        store, remote, settings = parse_config(config)
        return cls(store=store, remote=remote, settings=settings)

    @property
    def store(self) -> Store:
        return self._store

    async def init(self) -> None:
        """Create missing tables / indices (non-destructive)."""
        await self._store.init()

    async def reset(self) -> None:
        """Drop all cached data and recreate from scratch."""
        await self._store.reset()

    async def close(self) -> None:
        await self._remote.close()
        await self._store.close()

    async def __aenter__(self) -> ThreadSync:
        await self.init()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Subscriptions ────────────────────────────────────────────────

    async def save_subscription(
        self, subscription: ParentSubscription
    ) -> ParentSubscription:
        """Store a parent subscription received from the server.

        An existing record keeps its sync watermark; only the unread
        sets and the avatar tag are refreshed.
        """
        try:
            existing = await self._store.find(
                Collection.SUBSCRIPTIONS, subscription.id
            )
        except NotFoundError:
            await self._store.run_batch(self._store.prepare_create(subscription))
            logger.info("Stored subscription %s", subscription.id)
        else:
            await self._store.run_batch(
                self._store.prepare_update(
                    existing,
                    lambda target: _assign_server_fields(target, subscription),
                )
            )
        stored = await self._store.find(Collection.SUBSCRIPTIONS, subscription.id)
        return stored  # type: ignore[return-value]

    async def get_subscription(self, parent_id: str) -> ParentSubscription | None:
        try:
            record = await self._store.find(Collection.SUBSCRIPTIONS, parent_id)
        except NotFoundError:
            return None
        return record  # type: ignore[return-value]

    async def list_threads(self, parent_id: str) -> list[ThreadItem]:
        """Cached threads of *parent_id*, most recent activity first."""
        threads = await self._store.query(Query.threads_for(parent_id))
        return threads  # type: ignore[return-value]

    # ── Thread lists ─────────────────────────────────────────────────

    async def open_thread_list(
        self,
        parent_id: str,
        *,
        on_select: Callable[[ThreadSelection], object] | None = None,
        master_detail: bool = False,
    ) -> ThreadListBinding:
        """Attach a live thread list for *parent_id* and start its sync.

        The caller owns the returned binding and must ``detach()`` it.
        """
        binding = ThreadListBinding(
            self._store,
            self._remote,
            parent_id,
            settings=self.settings,
            on_select=on_select,
            master_detail=master_detail,
        )
        await binding.attach()
        return binding

    async def sync_parent(
        self, parent_id: str, *, all_pages: bool = False
    ) -> SyncResult:
        """Run one sync of *parent_id* to completion and report on it.

        With *all_pages*, a paginated load keeps requesting pages until
        the server runs out.
        """
        binding = await self.open_thread_list(parent_id)
        try:
            await binding.settle()
            while all_pages and binding.can_load_more:
                binding.load_more()
                await binding.settle()
            state = binding.state
            error = binding.loader.last_error or binding.driver.last_error
            return SyncResult(
                parent_id=parent_id,
                mode=binding.mode,
                thread_count=len(state.items),
                exhausted=state.exhausted,
                error=str(error) if error is not None else None,
            )
        finally:
            binding.detach()
