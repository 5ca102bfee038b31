"""Failures talking to the remote campus API."""

from __future__ import annotations


class ApiError(RuntimeError):
    """Base class for failures talking to the campus API."""


class NetworkError(ApiError):
    """Transient transport failure (timeout, connection refused, offline).

    These are retried by the client and are safe to retry again later.
    """


class ServerError(ApiError):
    """The server answered but reported a failure.

    Raised for non-2xx responses, undecodable bodies and JSON envelopes that
    carry ``"success": false``. Not retried automatically.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


__all__ = ["ApiError", "NetworkError", "ServerError"]
