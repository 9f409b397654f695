"""
Idea Archiver - Exception hierarchy.

Delivery failures are classified by type so callers can pick a retry policy
without inspecting message text.
"""

from __future__ import annotations


class ArchiverError(Exception):
    """Base class for all archiver errors."""


class ConfigurationError(ArchiverError):
    """Missing endpoint or unreadable input file; raised before any network call."""


class TransportError(ArchiverError):
    """The webhook rejected the request or could not be reached."""

    def __init__(
        self, message: str, status_code: int | None = None, body: str = ""
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitError(TransportError):
    """HTTP 429 from the webhook. ``retry_after`` is in seconds when known."""

    def __init__(
        self,
        message: str,
        status_code: int | None = 429,
        body: str = "",
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code, body=body)
        self.retry_after = retry_after


class CorruptStateError(ArchiverError):
    """The persisted delivery record could not be parsed."""


class CaptureError(ArchiverError):
    """The browser did not produce a screenshot."""
