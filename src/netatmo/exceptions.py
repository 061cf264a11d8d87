"""Exception hierarchy for the Netatmo sync engine.

Every failure is fatal to the sync unit being processed and propagates to the
caller of the run.  Nothing here is retried.  Cancellation is surfaced as
``asyncio.CancelledError`` and is never wrapped.
"""

from __future__ import annotations


class NetatmoSyncError(Exception):
    """Base exception for all sync errors."""


class TransportError(NetatmoSyncError):
    """The request could not be sent or no response was received."""


class RateLimitError(TransportError):
    """Waiting for a rate-limit token would exceed the allowed wait."""

    def __init__(self, message: str, wait_seconds: float) -> None:
        super().__init__(message)
        self.wait_seconds = wait_seconds


class ProtocolError(NetatmoSyncError):
    """Non-200 status or a response envelope that is not valid JSON."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class UpstreamError(NetatmoSyncError):
    """The API answered with a populated ``error`` field."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"netatmo error {code}: {message}")
        self.code = code
        self.message = message


class DecodeError(NetatmoSyncError):
    """The payload does not match the expected shape."""


class SinkError(NetatmoSyncError):
    """The metrics sink failed to append or answer a query."""


class AuthenticationError(NetatmoSyncError):
    """No usable credentials, or the token refresh was rejected."""


class ResumeTokenError(ValueError):
    """A resume token is not of the form ``device/module/epochSeconds``."""
