"""Public return types for the thread_sync API."""

from __future__ import annotations

from dataclasses import dataclass

from thread_sync.sync.driver import SyncMode


@dataclass
class SyncResult:
    """Result from :meth:`ThreadSync.sync_parent`."""

    parent_id: str
    mode: SyncMode | None
    thread_count: int = 0
    exhausted: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
