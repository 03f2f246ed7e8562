"""Sync-layer exceptions.

These are raised while reconciling backend responses with domain-object
state and are handed to the caller's ``error`` callback.
"""


class SyncError(Exception):
    """Base exception for sync-layer errors."""


class TransportError(SyncError):
    """Raised when an HTTP/HTTPS request cannot be completed."""


class DeserializationError(SyncError):
    """Raised when a response body is not the expected JSON structure."""


class NoDataError(SyncError):
    """Raised when a read yields no usable record."""
