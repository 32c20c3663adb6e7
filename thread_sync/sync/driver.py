from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from thread_sync.models import ParentSubscription
from thread_sync.remote import RemoteSource, TransportError
from thread_sync.sync.loader import PaginationLoader
from thread_sync.sync.reconciler import Reconciler, RemoteThreadBatch

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class SyncMode(StrEnum):
    MEMORY = "memory"
    LOAD = "load"
    DELTA = "delta"


class IncrementalSyncDriver:
    """Chooses between a paginated full load and a delta sync.

    * no stored parent     → paginated load, results kept in memory
    * parent, no watermark → paginated load; the last page records the start time
    * parent with watermark → one delta fetch since the watermark

    The chosen mode is the only write path for the instance.  Transport
    failures are logged and leave the watermark untouched.
    """

    def __init__(
        self,
        remote: RemoteSource,
        reconciler: Reconciler,
        loader: PaginationLoader,
        *,
        clock: Callable[[], datetime] = utcnow,
        is_alive: Callable[[], bool] = lambda: True,
        defer: Callable[[Callable[[], Any]], None] | None = None,
        on_syncing: Callable[[bool], None] | None = None,
    ) -> None:
        self._remote = remote
        self._reconciler = reconciler
        self._loader = loader
        self._clock = clock
        self._is_alive = is_alive
        self._defer = defer
        self._on_syncing = on_syncing
        self.mode: SyncMode | None = None
        self.syncing = False
        self.last_error: TransportError | None = None

    @property
    def parent_id(self) -> str:
        return self._reconciler.parent_id

    async def start(self, subscription: ParentSubscription | None) -> SyncMode:
        if subscription is None:
            self.mode = SyncMode.MEMORY
            logger.info("No stored parent %s: loading into memory", self.parent_id)
            self._loader.start()
            return self.mode

        started = self._clock()
        if subscription.last_sync_watermark is None:
            self.mode = SyncMode.LOAD
            logger.info("First sync of %s: paginated load", self.parent_id)
            self._loader.start(watermark=started)
        else:
            self.mode = SyncMode.DELTA
            logger.info(
                "Syncing %s since %s",
                self.parent_id,
                subscription.last_sync_watermark.isoformat(),
            )
            await self._sync(subscription, started)
        return self.mode

    async def _sync(self, subscription: ParentSubscription, started: datetime) -> None:
        since = subscription.last_sync_watermark
        assert since is not None

        self._set_syncing(True)
        try:
            delta = await self._remote.fetch_delta(self.parent_id, since)
        except TransportError as exc:
            logger.error("Delta sync of %s failed: %s", self.parent_id, exc)
            self.last_error = exc
            return
        finally:
            self._set_syncing(False)

        if not self._is_alive():
            logger.debug("Discarding delta of %s: detached", self.parent_id)
            return

        batch = RemoteThreadBatch(
            updated=delta.updated,
            removed=delta.removed,
            as_of=started,
        )
        if self._defer is None:
            await self._reconciler.apply(batch, subscription)
        else:
            self._defer(lambda: self._reconciler.apply(batch, subscription))

    def _set_syncing(self, syncing: bool) -> None:
        self.syncing = syncing
        if self._on_syncing is not None:
            self._on_syncing(syncing)
