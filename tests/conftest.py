from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from thread_sync.config import SyncSettings
from thread_sync.models import ParentSubscription
from thread_sync.remote import (
    RemoteSource,
    RemoteThread,
    ThreadDelta,
    ThreadPage,
    TransportError,
)
from thread_sync.store import Collection, InMemoryStore, Store

PARENT_ID = "GENERAL"

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

# Short windows so debounce tests don't take seconds.
FAST_SETTINGS = SyncSettings(
    page_size=50, debounce_seconds=0.01, press_debounce_seconds=0.05
)


def make_remote_thread(
    thread_id: str,
    *,
    minutes: int = 0,
    msg: str | None = None,
    tcount: int = 0,
    **extra: Any,
) -> RemoteThread:
    """A server-shaped thread whose activity is *minutes* after ``T0``."""
    stamp = (T0 + timedelta(minutes=minutes)).isoformat()
    data: dict[str, Any] = {
        "_id": thread_id,
        "rid": PARENT_ID,
        "msg": msg if msg is not None else f"thread {thread_id}",
        "ts": stamp,
        "tlm": stamp,
        "_updatedAt": stamp,
        "u": {"_id": "u1", "username": "alice"},
        "tcount": tcount,
    }
    data.update(extra)
    return RemoteThread.model_validate(data)


def make_threads(count: int, *, prefix: str = "t") -> list[RemoteThread]:
    """*count* threads, newest first, ids ``t000``, ``t001``, ..."""
    return [
        make_remote_thread(f"{prefix}{i:03d}", minutes=count - i) for i in range(count)
    ]


class FakeRemote(RemoteSource):
    """In-process thread source that records every call.

    ``threads`` is the server-side list served by offset pages;
    ``delta`` is returned by every delta fetch.  Set ``error`` to make
    the next fetches fail, or ``gate`` to hold fetches in flight.
    """

    def __init__(self, threads: list[RemoteThread] | None = None) -> None:
        self.threads = list(threads or [])
        self.delta = ThreadDelta()
        self.error: TransportError | None = None
        self.gate: asyncio.Event | None = None
        self.page_calls: list[tuple[str, int, int]] = []
        self.delta_calls: list[tuple[str, datetime]] = []
        self.closed = False

    async def fetch_page(
        self, parent_id: str, page_size: int, offset: int
    ) -> ThreadPage:
        self.page_calls.append((parent_id, page_size, offset))
        await self._wait()
        items = self.threads[offset : offset + page_size]
        return ThreadPage(items=items, count=len(items))

    async def fetch_delta(self, parent_id: str, since: datetime) -> ThreadDelta:
        self.delta_calls.append((parent_id, since))
        await self._wait()
        return self.delta

    async def close(self) -> None:
        self.closed = True

    async def _wait(self) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(T0 + timedelta(days=1))


async def save_subscription(store: Store, **fields: Any) -> ParentSubscription:
    """Persist the parent subscription of ``PARENT_ID`` and return it as stored."""
    await store.run_batch(
        store.prepare_create(ParentSubscription(id=PARENT_ID, **fields))
    )
    stored = await store.find(Collection.SUBSCRIPTIONS, PARENT_ID)
    return stored  # type: ignore[return-value]
