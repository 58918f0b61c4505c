"""File tracking ledger."""

from .file_ledger import (
    DEFAULT_RETENTION,
    DEFAULT_STUCK_TIMEOUT,
    STUCK_TIMEOUT_MESSAGE,
    FileTrackingLedger,
)

__all__ = [
    "FileTrackingLedger",
    "DEFAULT_RETENTION",
    "DEFAULT_STUCK_TIMEOUT",
    "STUCK_TIMEOUT_MESSAGE",
]
