"""
Exception hierarchy for the work tracker.

Store failures, bad input and client-side network failures each get their own
type so the service and the board client can decide how to surface them.
"""
from typing import Optional


class TrackerError(Exception):
    """Base error for everything raised by worktrack."""
    pass


class ConfigError(TrackerError):
    """Raised when configuration is invalid or incomplete."""
    pass


class RowStoreError(TrackerError):
    """Raised when the external row store cannot complete an operation."""
    pass


class InvalidItemError(TrackerError, ValueError):
    """Raised when an item id or field value cannot be written."""
    pass


class TrackerApiError(TrackerError):
    """Raised by the HTTP client when the tracker API call fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
