from thread_sync.remote.base import RemoteSource, ThreadDelta, ThreadPage
from thread_sync.remote.exceptions import (
    AuthenticationError,
    RemoteError,
    TransportError,
)
from thread_sync.remote.schemas import RemoteThread, RemoteUser

__all__ = [
    "AuthenticationError",
    "RemoteError",
    "RemoteSource",
    "RemoteThread",
    "RemoteUser",
    "ThreadDelta",
    "ThreadPage",
    "TransportError",
]
