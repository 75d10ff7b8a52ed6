"""Error taxonomy for node polling."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    AUTH = "auth"
    INVALID_SHAPE = "invalid_shape"
    TRANSPORT = "transport"


class PollError(Exception):
    """Base error raised while talking to a node.

    ``payload`` holds the raw upstream detail (response body, decoded JSON or
    exception text) so callers can log it without re-fetching.
    """

    kind: ErrorKind = ErrorKind.TRANSPORT

    def __init__(self, message: str, payload: Any = None) -> None:
        super().__init__(message)
        self.payload = payload

    def log_fields(self) -> dict[str, Any]:
        payload = self.payload
        if isinstance(payload, (bytes, bytearray)):
            payload = payload.decode("utf-8", errors="replace")
        if isinstance(payload, str):
            payload = payload[:2000]
        return {"kind": self.kind.value, "error": str(self), "payload": payload}


class AuthError(PollError):
    kind = ErrorKind.AUTH


class DataError(PollError):
    kind = ErrorKind.INVALID_SHAPE


class TransportError(PollError):
    kind = ErrorKind.TRANSPORT
