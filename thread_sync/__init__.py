from thread_sync.badges import BadgeCategory, classify
from thread_sync.config import SyncSettings, parse_config
from thread_sync.facade import SyncResult, ThreadSync
from thread_sync.models import ParentSubscription, ThreadItem
from thread_sync.view import ThreadListBinding, ThreadListState, ThreadSelection

__all__ = [
    "BadgeCategory",
    "ParentSubscription",
    "SyncResult",
    "SyncSettings",
    "ThreadItem",
    "ThreadListBinding",
    "ThreadListState",
    "ThreadSelection",
    "ThreadSync",
    "classify",
    "parse_config",
]
