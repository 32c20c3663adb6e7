from thread_sync.sync.debounce import BackgroundTasks, Debouncer, DropRepeats
from thread_sync.sync.driver import IncrementalSyncDriver, SyncMode
from thread_sync.sync.loader import LoadState, PageCursor, PaginationLoader
from thread_sync.sync.reconciler import (
    ReconcilePlan,
    Reconciler,
    RemoteThreadBatch,
    plan_reconciliation,
)

__all__ = [
    "BackgroundTasks",
    "Debouncer",
    "DropRepeats",
    "IncrementalSyncDriver",
    "LoadState",
    "PageCursor",
    "PaginationLoader",
    "ReconcilePlan",
    "Reconciler",
    "RemoteThreadBatch",
    "SyncMode",
    "plan_reconciliation",
]
