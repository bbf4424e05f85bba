"""
Exceptions raised by snapshot backends and caught at the SyncClient boundary.
"""

from typing import Optional


class ValentineSyncError(Exception):
    """Base exception for snapshot sync operations."""


class ValidationError(ValentineSyncError):
    """Raised when content fails a pre-flight check (e.g. video size limits)."""


class TransportError(ValentineSyncError):
    """Raised when the backend is unreachable or does not offer an operation."""


class AuthError(ValentineSyncError):
    """Raised when the caller is not authenticated or the write token is invalid."""


class ConflictError(ValentineSyncError):
    """Raised when an update's expected version does not match the stored one."""

    def __init__(
        self,
        message: str,
        expected_version: Optional[int] = None,
        current_version: Optional[int] = None,
    ):
        super().__init__(message)
        self.expected_version = expected_version
        self.current_version = current_version


class NotFoundError(ValentineSyncError):
    """Raised when a save id does not exist or the global latest slot is empty."""
