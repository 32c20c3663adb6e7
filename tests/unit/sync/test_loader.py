from __future__ import annotations

import asyncio

import pytest

from tests.conftest import PARENT_ID, T0, FakeRemote, make_threads
from thread_sync.remote import TransportError
from thread_sync.sync.loader import LoadState, PageCursor, PaginationLoader
from thread_sync.sync.reconciler import RemoteThreadBatch


class _Pages:
    def __init__(self) -> None:
        self.batches: list[RemoteThreadBatch] = []

    async def __call__(self, batch: RemoteThreadBatch) -> None:
        self.batches.append(batch)


@pytest.fixture()
def pages() -> _Pages:
    return _Pages()


def _loader(remote: FakeRemote, pages: _Pages, **kwargs) -> PaginationLoader:
    kwargs.setdefault("page_size", 50)
    kwargs.setdefault("debounce_seconds", 0.01)
    return PaginationLoader(remote, PARENT_ID, pages, **kwargs)


class TestPageCursor:
    def test_full_page_keeps_going(self) -> None:
        cursor = PageCursor()
        cursor.advance(50, 50)
        assert cursor.offset == 50
        assert not cursor.exhausted

    def test_short_page_exhausts(self) -> None:
        cursor = PageCursor(offset=100)
        cursor.advance(30, 50)
        assert cursor.offset == 130
        assert cursor.exhausted

    def test_exhausted_cursor_does_not_move(self) -> None:
        cursor = PageCursor(offset=130, exhausted=True)
        cursor.advance(50, 50)
        assert cursor.offset == 130

    def test_reset(self) -> None:
        cursor = PageCursor(offset=130, exhausted=True)
        cursor.reset()
        assert cursor == PageCursor()


async def test_pages_advance_offset_until_short_page(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(130))
    loader = _loader(remote, pages)

    loader.start()
    await loader.drain()
    for _ in range(2):
        loader.request()
        await loader.drain()

    assert [offset for _, _, offset in remote.page_calls] == [0, 50, 100]
    assert [len(b.updated) for b in pages.batches] == [50, 50, 30]
    assert loader.cursor.offset == 130
    assert loader.exhausted

    loader.request()
    await loader.drain()
    assert len(remote.page_calls) == 3


async def test_burst_of_triggers_fetches_once(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(130))
    loader = _loader(remote, pages)

    loader.start()
    for _ in range(9):
        loader.request()
    await loader.drain()

    assert remote.page_calls == [(PARENT_ID, 50, 0)]
    assert loader.state is LoadState.IDLE


async def test_requests_while_loading_are_ignored(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(130))
    remote.gate = asyncio.Event()
    loader = _loader(remote, pages)

    loader.start()
    await asyncio.sleep(0.03)
    assert loader.state is LoadState.LOADING
    loader.request()
    loader.request()

    remote.gate.set()
    await loader.drain()

    assert len(remote.page_calls) == 1


async def test_only_the_last_page_carries_the_start_watermark(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(60))
    loader = _loader(remote, pages)

    loader.start(watermark=T0)
    await loader.drain()
    loader.request()
    await loader.drain()

    assert [b.as_of for b in pages.batches] == [None, T0]
    assert all(b.removed == [] for b in pages.batches)


async def test_transport_error_ends_loading(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(130))
    remote.error = TransportError("down", status_code=503)
    states: list[LoadState] = []
    loader = _loader(remote, pages, on_state=states.append)

    loader.start()
    await loader.drain()

    assert loader.exhausted
    assert loader.last_error is remote.error
    assert pages.batches == []
    assert states == [LoadState.LOADING, LoadState.EXHAUSTED]

    # Only an explicit restart tries again.
    remote.error = None
    loader.start()
    await loader.drain()
    assert len(pages.batches) == 1
    assert loader.last_error is None


async def test_result_after_detach_is_discarded(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(130))
    remote.gate = asyncio.Event()
    alive = [True]
    loader = _loader(remote, pages, is_alive=lambda: alive[0])

    loader.start()
    await asyncio.sleep(0.03)
    alive[0] = False
    loader.cancel()
    remote.gate.set()
    await loader.drain()

    assert pages.batches == []
    assert loader.cursor.offset == 0


async def test_cancel_drops_pending_request(pages: _Pages) -> None:
    remote = FakeRemote(make_threads(130))
    loader = _loader(remote, pages)

    loader.start()
    loader.cancel()
    await asyncio.sleep(0.03)

    assert remote.page_calls == []


async def test_empty_first_page_exhausts(pages: _Pages) -> None:
    loader = _loader(FakeRemote(), pages)

    loader.start()
    await loader.drain()

    assert loader.exhausted
    assert [b.updated for b in pages.batches] == [[]]


async def test_failing_page_handler_ends_loading() -> None:
    remote = FakeRemote(make_threads(130))
    states: list[LoadState] = []

    async def broken(batch: RemoteThreadBatch) -> None:
        raise RuntimeError("database is locked")

    loader = PaginationLoader(
        remote, PARENT_ID, broken, debounce_seconds=0.01, on_state=states.append
    )

    loader.start()
    await loader.drain()

    assert loader.exhausted
    assert states == [LoadState.LOADING, LoadState.EXHAUSTED]
    loader.request()
    await loader.drain()
    assert len(remote.page_calls) == 1
