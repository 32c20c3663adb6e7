from __future__ import annotations

import pytest

from tests.conftest import (
    FAST_SETTINGS,
    PARENT_ID,
    T0,
    FakeRemote,
    make_remote_thread,
    make_threads,
    save_subscription,
)
from thread_sync.models import ParentSubscription
from thread_sync.remote import ThreadDelta
from thread_sync.store import BatchCommitError, Collection, NotFoundError, Query
from thread_sync.store.sql import SqlStore
from thread_sync.sync import Reconciler, RemoteThreadBatch
from thread_sync.view import ThreadListBinding


async def test_reconcile_round_trip(store: SqlStore) -> None:
    subscription = await save_subscription(store)
    reconciler = Reconciler(store, PARENT_ID)

    await reconciler.apply(
        RemoteThreadBatch(updated=make_threads(5), as_of=T0), subscription
    )
    await reconciler.apply(
        RemoteThreadBatch(
            updated=[make_remote_thread("t001", minutes=90, tcount=2)],
            removed=[make_remote_thread("t004")],
        ),
        subscription,
    )

    threads = await store.query(Query.threads_for(PARENT_ID))
    assert [t.id for t in threads] == ["t001", "t000", "t002", "t003"]
    assert threads[0].reply_count == 2
    stored = await store.find(Collection.SUBSCRIPTIONS, PARENT_ID)
    assert stored.last_sync_watermark == T0


async def test_thread_requires_stored_parent(store: SqlStore) -> None:
    orphan = make_remote_thread("a").to_item("NOPE")

    with pytest.raises(BatchCommitError):
        await store.run_batch(store.prepare_create(orphan))

    with pytest.raises(NotFoundError):
        await store.find(Collection.THREADS, "a")


async def test_binding_delta_sync(store: SqlStore) -> None:
    await store.run_batch(
        store.prepare_create(ParentSubscription(id=PARENT_ID, last_sync_watermark=T0))
    )
    remote = FakeRemote()
    remote.delta = ThreadDelta(updated=[make_remote_thread("a")])
    binding = ThreadListBinding(store, remote, PARENT_ID, settings=FAST_SETTINGS)

    await binding.attach()
    await binding.settle()
    binding.detach()

    assert [item.id for item in binding.state.items] == ["a"]
    assert remote.delta_calls == [(PARENT_ID, T0)]
