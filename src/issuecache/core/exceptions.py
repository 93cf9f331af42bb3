"""
Exceptions - Centralized exception hierarchy.

Every error raised by issuecache derives from IssueCacheError so callers
can catch the whole family at one seam. Local file I/O errors (OSError)
are not wrapped and propagate unmodified.
"""

from typing import Optional


class IssueCacheError(Exception):
    """Base exception for all issuecache errors."""

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.key = key
        self.cause = cause


class NotFoundError(IssueCacheError):
    """Document is absent locally or remotely. Never retried."""
    pass


class NotSyncedError(IssueCacheError):
    """Document has no remote id yet, so it cannot be written through."""
    pass


class VerificationError(IssueCacheError):
    """A remote write appeared to succeed but the re-read disagrees."""
    pass


class RetryExhaustedError(IssueCacheError):
    """A remote call kept failing after every retry."""

    def __init__(
        self,
        message: str,
        operation: str = "",
        attempts: int = 0,
        key: Optional[str] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, key=key, cause=cause)
        self.operation = operation
        self.attempts = attempts


class CorruptIndexError(IssueCacheError):
    """
    Cache metadata could not be parsed or failed schema validation.

    Raised by the index store and recovered inside CacheManager by
    reinitializing the index.
    """
    pass


class RemoteTrackerError(IssueCacheError):
    """Error reported by a remote tracker adapter."""
    pass


class AuthenticationError(RemoteTrackerError):
    """Remote tracker rejected the credentials."""
    pass


class PermissionError(RemoteTrackerError):
    """Remote tracker denied the operation."""
    pass


class TransientError(RemoteTrackerError):
    """Network or API hiccup that is expected to clear on retry."""
    pass


__all__ = [
    "IssueCacheError",
    "NotFoundError",
    "NotSyncedError",
    "VerificationError",
    "RetryExhaustedError",
    "CorruptIndexError",
    "RemoteTrackerError",
    "AuthenticationError",
    "PermissionError",
    "TransientError",
]
