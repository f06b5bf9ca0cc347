"""Custom exceptions for the coop backend client."""

from __future__ import annotations


class BackendError(Exception):
    """Base exception for backend communication failures."""


class BackendTransportError(BackendError):
    """Raised when the backend cannot be reached."""


class BackendHTTPError(BackendError):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(self, status_code: int, body: str = "", path: str = "") -> None:
        self.status_code = status_code
        self.body = body
        self.path = path
        detail = body.strip() or "no body"
        super().__init__(f"{path or 'request'} returned HTTP {status_code}: {detail}")


class BackendProtocolError(BackendError):
    """Raised when a response is not the JSON shape the relay expects."""
