from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from thread_sync.models import ParentSubscription, ThreadItem
from thread_sync.store.base import Collection, OpKind, PendingOp, Query, Record, Store
from thread_sync.store.exceptions import NotFoundError, StoreError
from thread_sync.store.orm import Base, SubscriptionRow, ThreadRow

logger = logging.getLogger(__name__)

_ROW_TYPES: dict[Collection, type[SubscriptionRow] | type[ThreadRow]] = {
    Collection.SUBSCRIPTIONS: SubscriptionRow,
    Collection.THREADS: ThreadRow,
}


class SqlStore(Store):
    """Store backed by SQLAlchemy's asyncio engine.

    Wraps the ORM rows in ``store/orm.py`` and translates to/from domain
    dataclasses at the boundary.  Each batch runs in a single session
    that is committed or rolled back as a whole.
    """

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        super().__init__()
        self._engine = create_async_engine(url, echo=False, **engine_kwargs)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)

    @asynccontextmanager
    async def _session_scope(self) -> AsyncIterator[AsyncSession]:
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug(
            "Schema ready on %s", self._engine.url.render_as_string(hide_password=True)
        )

    async def reset(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await self.init()

    async def close(self) -> None:
        await self._engine.dispose()

    # ── Reads ────────────────────────────────────────────────────────

    async def find(self, collection: Collection, record_id: str) -> Record:
        async with self._session_scope() as s:
            row = await s.get(_ROW_TYPES[collection], record_id)
        if row is None:
            raise NotFoundError(collection, record_id)
        return _from_row(row)

    async def query(self, query: Query) -> list[Record]:
        row_type = _ROW_TYPES[query.collection]
        stmt = select(row_type)
        for name, value in query.where:
            stmt = stmt.where(getattr(row_type, name) == value)
        for name, descending in query.order_by:
            column = getattr(row_type, name)
            stmt = stmt.order_by(column.desc() if descending else column.asc())

        async with self._session_scope() as s:
            rows = list((await s.execute(stmt)).scalars().all())
        return [_from_row(r) for r in rows]

    # ── Writes ───────────────────────────────────────────────────────

    async def _commit(self, ops: list[PendingOp]) -> None:
        now = self._stamp()
        async with self._session_scope() as s:
            for op in ops:
                row_type = _ROW_TYPES[op.collection]
                row = await s.get(row_type, op.record.id)

                if op.kind is OpKind.CREATE:
                    if row is not None:
                        raise StoreError(
                            f"{op.collection} record {op.record.id!r} already exists"
                        )
                    s.add(_to_row(replace(op.record, updated_at=now)))
                    await s.flush()
                    continue

                if row is None:
                    raise NotFoundError(op.collection, op.record.id)

                if op.kind is OpKind.UPDATE:
                    record = _from_row(row)
                    if op.mutator is not None:
                        op.mutator(record)
                    record.updated_at = now
                    _copy_onto(row, record)
                else:
                    await s.delete(row)
            await s.flush()


class SqliteStore(SqlStore):
    """SQLite file (or ``:memory:``) via ``aiosqlite``."""

    def __init__(self, path: str = ":memory:") -> None:
        if path == ":memory:":
            # One shared connection, otherwise every session sees an empty database.
            super().__init__(
                "sqlite+aiosqlite:///:memory:",
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            super().__init__(f"sqlite+aiosqlite:///{path}")


class PostgresStore(SqlStore):
    """PostgreSQL via ``asyncpg``."""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        *,
        pool_size: int = 10,
        max_overflow: int = 20,
    ) -> None:
        url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{database}"
        super().__init__(url, pool_size=pool_size, max_overflow=max_overflow)


# ── ORM ↔ domain converters ─────────────────────────────────────────


def _aware(value: datetime | None) -> datetime | None:
    """SQLite drops tzinfo; every stored timestamp is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _from_row(row: SubscriptionRow | ThreadRow) -> Record:
    if isinstance(row, SubscriptionRow):
        return ParentSubscription(
            id=row.id,
            last_sync_watermark=_aware(row.last_sync_watermark),
            unread_all=frozenset(row.unread_all or ()),
            unread_mentioning_me=frozenset(row.unread_mentioning_me or ()),
            unread_mentioning_group=frozenset(row.unread_mentioning_group or ()),
            avatar_etag=row.avatar_etag,
            updated_at=_aware(row.updated_at),  # type: ignore[arg-type]
        )
    return ThreadItem(
        id=row.id,
        parent_id=row.parent_id,
        last_message_at=_aware(row.last_message_at),  # type: ignore[arg-type]
        msg=row.msg,
        author=row.author,
        started_at=_aware(row.started_at),
        reply_count=row.reply_count,
        replies=tuple(row.replies or ()),
        remote_updated_at=_aware(row.remote_updated_at),
        payload=dict(row.payload or {}),
        updated_at=_aware(row.updated_at),  # type: ignore[arg-type]
    )


def _to_row(record: Record) -> SubscriptionRow | ThreadRow:
    row: SubscriptionRow | ThreadRow
    if isinstance(record, ParentSubscription):
        row = SubscriptionRow(id=record.id)
    else:
        row = ThreadRow(id=record.id, parent_id=record.parent_id)
    _copy_onto(row, record)
    return row


def _copy_onto(row: SubscriptionRow | ThreadRow, record: Record) -> None:
    if isinstance(row, SubscriptionRow) and isinstance(record, ParentSubscription):
        row.last_sync_watermark = record.last_sync_watermark
        row.unread_all = sorted(record.unread_all)
        row.unread_mentioning_me = sorted(record.unread_mentioning_me)
        row.unread_mentioning_group = sorted(record.unread_mentioning_group)
        row.avatar_etag = record.avatar_etag
        row.updated_at = record.updated_at
    elif isinstance(row, ThreadRow) and isinstance(record, ThreadItem):
        row.last_message_at = record.last_message_at
        row.msg = record.msg
        row.author = record.author
        row.started_at = record.started_at
        row.reply_count = record.reply_count
        row.replies = list(record.replies)
        row.remote_updated_at = record.remote_updated_at
        row.payload = dict(record.payload)
        row.updated_at = record.updated_at
    else:
        raise TypeError(
            f"Cannot copy {type(record).__name__} onto {type(row).__name__}"
        )
