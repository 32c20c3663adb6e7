"""Errors raised by remote thread sources."""


class RemoteError(Exception):
    """Base exception for remote source failures."""


class TransportError(RemoteError):
    """The remote could not be reached or answered with a failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(TransportError):
    """The server rejected the credentials (401/403)."""
