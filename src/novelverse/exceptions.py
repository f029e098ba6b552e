"""Exception hierarchy for novelverse.

Errors raised by the progress stores, the API client and the heatmap
parser all derive from NovelVerseError.
"""

from typing import Any, Optional


class NovelVerseError(Exception):
    """Base exception for novelverse errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class TransientError(NovelVerseError):
    """Raised when persisting or fetching fails for a retryable reason.

    Covers timeouts, connection problems and 5xx responses. Callers treat
    every TransientError the same way: non-fatal and eligible for retry.
    """

    pass


class NotFoundError(NovelVerseError):
    """Raised when the requested resource does not exist."""

    pass


class AuthenticationError(NovelVerseError):
    """Raised when the API rejects the credentials (401/403)."""

    pass


class ApiError(NovelVerseError):
    """Raised for any other client-side API error (4xx)."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.status_code = status_code


class MalformedSampleError(NovelVerseError):
    """Raised when a heatmap sample cannot be parsed."""

    pass
