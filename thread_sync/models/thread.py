from __future__ import annotations

import copy
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class ThreadItem:
    """A cached copy of one remote thread.

    ``id`` is the remote thread id and the only merge key.  ``payload``
    keeps every wire field without a typed attribute, verbatim.
    ``updated_at`` is stamped by the store on every write and drives
    change detection for live queries.
    """

    id: str
    parent_id: str
    last_message_at: datetime
    msg: str = ""
    author: str | None = None
    started_at: datetime | None = None
    reply_count: int = 0
    replies: tuple[str, ...] = ()
    remote_updated_at: datetime | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def title(self) -> str:
        return self.msg


def assign_remote_fields(
    target: ThreadItem,
    source: ThreadItem,
    preserve: Iterable[str] = (),
) -> None:
    """Overwrite *target* with every remote-owned field of *source*.

    Fields named in *preserve* keep their local value.  ``id``,
    ``parent_id`` and ``updated_at`` are never touched.
    """
    values: dict[str, Any] = {
        "last_message_at": source.last_message_at,
        "msg": source.msg,
        "author": source.author,
        "started_at": source.started_at,
        "reply_count": source.reply_count,
        "replies": source.replies,
        "remote_updated_at": source.remote_updated_at,
        "payload": copy.deepcopy(source.payload),
    }
    keep = set(preserve)
    for name, value in values.items():
        if name not in keep:
            setattr(target, name, value)
