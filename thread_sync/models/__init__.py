"""Domain models: pure Python dataclasses with no infrastructure dependencies.

These are the canonical record types handed to and returned by every
``Store`` implementation.  The SQLAlchemy rows used by ``SqlStore`` live
separately in ``store/orm.py`` and are converted at the boundary.
"""

from thread_sync.models.subscription import ParentSubscription
from thread_sync.models.thread import ThreadItem, assign_remote_fields

__all__ = [
    "ParentSubscription",
    "ThreadItem",
    "assign_remote_fields",
]
