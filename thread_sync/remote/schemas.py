"""Wire models for the chat server's thread endpoints."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from thread_sync.models import ThreadItem

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def _parse_timestamp(value: Any) -> datetime | None:
    """Accept ISO strings, epoch millis, ``{"$date": millis}`` or datetimes.

    Always returns an aware UTC datetime.
    """
    if value is None or value == "":
        return None
    if isinstance(value, dict) and "$date" in value:
        value = value["$date"]
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value / 1000, tz=UTC)
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
    raise ValueError(f"Unsupported timestamp: {value!r}")


Timestamp = Annotated[datetime | None, BeforeValidator(_parse_timestamp)]


class RemoteUser(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    username: str | None = None
    name: str | None = None


class RemoteThread(BaseModel):
    """One thread as returned by the server.

    Unknown fields are kept (``extra="allow"``) and end up verbatim in
    ``ThreadItem.payload``, next to ``rid`` and the whole ``u`` object.
    Entries of a delta's ``remove`` list usually carry little more
    than ``_id``.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id")
    rid: str | None = None
    msg: str = ""
    ts: Timestamp = None
    tlm: Timestamp = None
    updated_at: Timestamp = Field(default=None, alias="_updatedAt")
    u: RemoteUser | None = None
    tcount: int = 0
    replies: list[str] = Field(default_factory=list)

    @property
    def last_message_at(self) -> datetime:
        return self.tlm or self.ts or self.updated_at or EPOCH

    def to_item(self, parent_id: str) -> ThreadItem:
        payload = dict(self.model_extra or {})
        if self.rid is not None:
            payload["rid"] = self.rid
        if self.u is not None:
            payload["u"] = self.u.model_dump(by_alias=True, exclude_none=True)
        return ThreadItem(
            id=self.id,
            parent_id=parent_id,
            last_message_at=self.last_message_at,
            msg=self.msg,
            author=self.u.username if self.u else None,
            started_at=self.ts,
            reply_count=self.tcount,
            replies=tuple(self.replies),
            remote_updated_at=self.updated_at,
            payload=payload,
        )


class ThreadsListResponse(BaseModel):
    """``GET /api/v1/chat.getThreadsList``."""

    success: bool = True
    threads: list[RemoteThread] = Field(default_factory=list)
    count: int | None = None
    offset: int = 0
    total: int | None = None
    error: str | None = None


class ThreadsDelta(BaseModel):
    update: list[RemoteThread] = Field(default_factory=list)
    remove: list[RemoteThread] = Field(default_factory=list)


class SyncThreadsResponse(BaseModel):
    """``GET /api/v1/chat.syncThreadsList``."""

    success: bool = True
    threads: ThreadsDelta = Field(default_factory=ThreadsDelta)
    error: str | None = None
