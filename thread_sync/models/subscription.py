from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ParentSubscription:
    """The user's subscription to the conversation that owns the threads.

    ``last_sync_watermark`` is only advanced by the reconciler, inside the
    same batch that writes the threads.  The unread sets are refreshed by
    the server-driven subscription stream and hold thread ids.
    """

    id: str
    last_sync_watermark: datetime | None = None
    unread_all: frozenset[str] = frozenset()
    unread_mentioning_me: frozenset[str] = frozenset()
    unread_mentioning_group: frozenset[str] = frozenset()
    avatar_etag: str | None = None
    updated_at: datetime = field(default_factory=_utcnow)
