from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from tests.conftest import PARENT_ID, T0, save_subscription
from thread_sync.models import ParentSubscription, ThreadItem
from thread_sync.store import Collection, Query
from thread_sync.store.sql import SqliteStore


@pytest.fixture()
async def sqlite_store() -> AsyncGenerator[SqliteStore]:
    backend = SqliteStore()
    await backend.init()
    yield backend
    await backend.close()


async def test_timestamps_come_back_utc_aware(sqlite_store: SqliteStore) -> None:
    await save_subscription(sqlite_store, last_sync_watermark=T0)

    stored = await sqlite_store.find(Collection.SUBSCRIPTIONS, PARENT_ID)

    assert stored.last_sync_watermark == T0
    assert stored.last_sync_watermark.tzinfo is not None
    assert stored.updated_at.tzinfo is not None


async def test_thread_fields_round_trip(sqlite_store: SqliteStore) -> None:
    await save_subscription(sqlite_store)
    item = ThreadItem(
        id="a",
        parent_id=PARENT_ID,
        last_message_at=T0,
        msg="hello",
        author="alice",
        started_at=datetime(2024, 4, 30, tzinfo=UTC),
        reply_count=3,
        replies=("u1", "u2"),
        remote_updated_at=T0,
        payload={"t": "discussion", "mentions": [{"_id": "u3"}]},
    )
    await sqlite_store.run_batch(sqlite_store.prepare_create(item))

    stored = await sqlite_store.find(Collection.THREADS, "a")

    assert stored.msg == "hello"
    assert stored.author == "alice"
    assert stored.replies == ("u1", "u2")
    assert stored.payload == {"t": "discussion", "mentions": [{"_id": "u3"}]}
    assert stored.started_at == datetime(2024, 4, 30, tzinfo=UTC)


async def test_unread_sets_round_trip(sqlite_store: SqliteStore) -> None:
    await save_subscription(
        sqlite_store,
        unread_all=frozenset({"a", "b"}),
        unread_mentioning_me=frozenset({"b"}),
        avatar_etag="etag-1",
    )

    stored = await sqlite_store.find(Collection.SUBSCRIPTIONS, PARENT_ID)

    assert stored.unread_all == frozenset({"a", "b"})
    assert stored.unread_mentioning_me == frozenset({"b"})
    assert stored.unread_mentioning_group == frozenset()
    assert stored.avatar_etag == "etag-1"


async def test_file_store_persists_across_instances(tmp_path: Path) -> None:
    path = str(tmp_path / "threads.db")

    first = SqliteStore(path)
    await first.init()
    await first.run_batch(
        first.prepare_create(ParentSubscription(id=PARENT_ID, last_sync_watermark=T0))
    )
    await first.close()

    second = SqliteStore(path)
    await second.init()
    try:
        stored = await second.find(Collection.SUBSCRIPTIONS, PARENT_ID)
        assert stored.last_sync_watermark == T0
        assert await second.query(Query.threads_for(PARENT_ID)) == []
    finally:
        await second.close()
