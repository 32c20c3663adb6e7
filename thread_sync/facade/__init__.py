from thread_sync.facade.core import ThreadSync
from thread_sync.facade.types import SyncResult

__all__ = [
    "SyncResult",
    "ThreadSync",
]
