from thread_sync.store.base import (
    Collection,
    OpKind,
    PendingOp,
    Query,
    Record,
    Store,
    collection_for,
)
from thread_sync.store.exceptions import BatchCommitError, NotFoundError, StoreError
from thread_sync.store.memory import InMemoryStore
from thread_sync.store.observable import Observable, Subscription

__all__ = [
    "BatchCommitError",
    "Collection",
    "InMemoryStore",
    "NotFoundError",
    "Observable",
    "OpKind",
    "PendingOp",
    "Query",
    "Record",
    "Store",
    "StoreError",
    "Subscription",
    "collection_for",
]
