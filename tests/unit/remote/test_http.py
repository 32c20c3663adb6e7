from __future__ import annotations

from datetime import UTC, datetime

import httpx
import pytest

from thread_sync.remote import AuthenticationError, TransportError
from thread_sync.remote.http import (
    THREADS_LIST_ENDPOINT,
    THREADS_SYNC_ENDPOINT,
    HttpRemoteSource,
)


def _thread(thread_id: str) -> dict:
    return {
        "_id": thread_id,
        "rid": "GENERAL",
        "msg": f"thread {thread_id}",
        "ts": "2024-05-01T10:00:00.000Z",
        "tlm": "2024-05-01T10:00:00.000Z",
        "u": {"_id": "u1", "username": "alice"},
    }


class _Recorder:
    """Mock transport handler that records requests and replays a response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def _source(recorder: _Recorder, **kwargs) -> HttpRemoteSource:
    return HttpRemoteSource(
        "https://chat.example.com/",
        transport=httpx.MockTransport(recorder),
        **kwargs,
    )


async def test_fetch_page_sends_offset_params() -> None:
    recorder = _Recorder(
        httpx.Response(
            200,
            json={"threads": [_thread("a"), _thread("b")], "count": 2, "success": True},
        )
    )
    async with _source(recorder) as source:
        page = await source.fetch_page("GENERAL", 50, 100)

    assert page.count == 2
    assert [t.id for t in page.items] == ["a", "b"]
    request = recorder.requests[0]
    assert request.url.path == THREADS_LIST_ENDPOINT
    assert request.url.params["rid"] == "GENERAL"
    assert request.url.params["count"] == "50"
    assert request.url.params["offset"] == "100"


async def test_fetch_page_count_defaults_to_returned_threads() -> None:
    recorder = _Recorder(httpx.Response(200, json={"threads": [_thread("a")]}))
    async with _source(recorder) as source:
        page = await source.fetch_page("GENERAL", 50, 0)

    assert page.count == 1


async def test_fetch_delta_formats_watermark() -> None:
    recorder = _Recorder(
        httpx.Response(
            200,
            json={
                "threads": {"update": [_thread("a")], "remove": [{"_id": "b"}]},
                "success": True,
            },
        )
    )
    since = datetime(2024, 5, 1, 12, 0, 0, 123000, tzinfo=UTC)
    async with _source(recorder) as source:
        delta = await source.fetch_delta("GENERAL", since)

    assert [t.id for t in delta.updated] == ["a"]
    assert [t.id for t in delta.removed] == ["b"]
    request = recorder.requests[0]
    assert request.url.path == THREADS_SYNC_ENDPOINT
    assert request.url.params["updatedSince"] == "2024-05-01T12:00:00.123Z"


async def test_auth_headers_are_sent() -> None:
    recorder = _Recorder(httpx.Response(200, json={"threads": []}))
    async with _source(recorder, user_id="u1", auth_token="secret") as source:
        await source.fetch_page("GENERAL", 50, 0)

    headers = recorder.requests[0].headers
    assert headers["X-User-Id"] == "u1"
    assert headers["X-Auth-Token"] == "secret"


@pytest.mark.parametrize("status", [401, 403])
async def test_auth_failure_raises_authentication_error(status: int) -> None:
    recorder = _Recorder(httpx.Response(status, json={"success": False}))
    async with _source(recorder) as source:
        with pytest.raises(AuthenticationError) as exc_info:
            await source.fetch_page("GENERAL", 50, 0)

    assert exc_info.value.status_code == status


async def test_server_error_raises_transport_error() -> None:
    recorder = _Recorder(httpx.Response(502, text="Bad Gateway"))
    async with _source(recorder) as source:
        with pytest.raises(TransportError) as exc_info:
            await source.fetch_delta("GENERAL", datetime(2024, 5, 1, tzinfo=UTC))

    assert exc_info.value.status_code == 502


async def test_unsuccessful_reply_raises_transport_error() -> None:
    recorder = _Recorder(
        httpx.Response(200, json={"success": False, "error": "error-room-not-found"})
    )
    async with _source(recorder) as source:
        with pytest.raises(TransportError, match="error-room-not-found"):
            await source.fetch_page("GENERAL", 50, 0)


async def test_malformed_body_raises_transport_error() -> None:
    recorder = _Recorder(httpx.Response(200, text="<html>not json</html>"))
    async with _source(recorder) as source:
        with pytest.raises(TransportError):
            await source.fetch_page("GENERAL", 50, 0)


async def test_connection_error_raises_transport_error() -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    source = HttpRemoteSource(
        "https://chat.example.com", transport=httpx.MockTransport(refuse)
    )
    try:
        with pytest.raises(TransportError) as exc_info:
            await source.fetch_page("GENERAL", 50, 0)
        assert exc_info.value.status_code is None
    finally:
        await source.close()
