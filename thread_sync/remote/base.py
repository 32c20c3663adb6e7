from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from types import TracebackType

from thread_sync.remote.schemas import RemoteThread


@dataclass
class ThreadPage:
    """One offset page.  ``count`` is how many threads the server returned."""

    items: list[RemoteThread]
    count: int


@dataclass
class ThreadDelta:
    """Threads changed or removed since a watermark."""

    updated: list[RemoteThread] = field(default_factory=list)
    removed: list[RemoteThread] = field(default_factory=list)


class RemoteSource(ABC):
    """The authoritative source of threads for a parent conversation.

    Implementations raise ``TransportError`` on network or server
    failures; they never retry on their own.
    """

    @abstractmethod
    async def fetch_page(
        self, parent_id: str, page_size: int, offset: int
    ) -> ThreadPage:
        """Fetch up to *page_size* threads starting at *offset*."""
        ...

    @abstractmethod
    async def fetch_delta(self, parent_id: str, since: datetime) -> ThreadDelta:
        """Fetch threads updated or removed after *since*."""
        ...

    async def close(self) -> None:
        """Release any held resources (HTTP connections)."""

    async def __aenter__(self) -> RemoteSource:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
