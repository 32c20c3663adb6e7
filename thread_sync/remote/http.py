from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from thread_sync.remote.base import RemoteSource, ThreadDelta, ThreadPage
from thread_sync.remote.exceptions import AuthenticationError, TransportError
from thread_sync.remote.schemas import SyncThreadsResponse, ThreadsListResponse

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

THREADS_LIST_ENDPOINT = "/api/v1/chat.getThreadsList"
THREADS_SYNC_ENDPOINT = "/api/v1/chat.syncThreadsList"


class HttpRemoteSource(RemoteSource):
    """Thread source backed by the chat server's REST API.

    Authenticates with the ``X-User-Id`` / ``X-Auth-Token`` header pair.
    The underlying ``httpx.AsyncClient`` is created lazily and reused.
    """

    def __init__(
        self,
        base_url: str,
        user_id: str | None = None,
        auth_token: str | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers = {}
            if self.user_id and self.auth_token:
                headers["X-User-Id"] = self.user_id
                headers["X-Auth-Token"] = self.auth_token
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _get(self, endpoint: str, params: dict[str, Any], model: type[T]) -> T:
        client = self._get_client()
        try:
            response = await client.get(endpoint, params=params)
            response.raise_for_status()
            return model.model_validate(response.json())
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                raise AuthenticationError(
                    f"Authentication failed for {endpoint}", status_code=status
                ) from e
            raise TransportError(
                f"{endpoint} answered {status}", status_code=status
            ) from e
        except httpx.RequestError as e:
            raise TransportError(f"Connection error on {endpoint}: {e}") from e
        except (ValueError, ValidationError) as e:
            raise TransportError(f"Malformed response from {endpoint}: {e}") from e

    async def fetch_page(
        self, parent_id: str, page_size: int, offset: int
    ) -> ThreadPage:
        result = await self._get(
            THREADS_LIST_ENDPOINT,
            {"rid": parent_id, "count": page_size, "offset": offset},
            ThreadsListResponse,
        )
        if not result.success:
            raise TransportError(
                f"{THREADS_LIST_ENDPOINT} failed: {result.error or 'unknown error'}"
            )
        count = result.count if result.count is not None else len(result.threads)
        logger.debug(
            "Fetched %d threads of %s at offset %d", count, parent_id, offset
        )
        return ThreadPage(items=result.threads, count=count)

    async def fetch_delta(self, parent_id: str, since: datetime) -> ThreadDelta:
        updated_since = since.astimezone(UTC).isoformat(timespec="milliseconds")
        result = await self._get(
            THREADS_SYNC_ENDPOINT,
            {"rid": parent_id, "updatedSince": updated_since.replace("+00:00", "Z")},
            SyncThreadsResponse,
        )
        if not result.success:
            raise TransportError(
                f"{THREADS_SYNC_ENDPOINT} failed: {result.error or 'unknown error'}"
            )
        logger.debug(
            "Delta for %s since %s: %d updated, %d removed",
            parent_id,
            updated_since,
            len(result.threads.update),
            len(result.threads.remove),
        )
        return ThreadDelta(
            updated=result.threads.update, removed=result.threads.remove
        )
