"""
Exception hierarchy for the review ingestion pipeline.

Per-line and per-record problems never surface as exceptions outside the
record pipeline. Everything raised here is either fatal for one file or a
typed answer for an admin caller.
"""

from typing import Any


class ReviewPipelineError(Exception):
    """Base class for all pipeline errors."""


# =======================
# OBJECT STORE ERRORS
# =======================

class ObjectStoreError(ReviewPipelineError):
    """Raised when the object store cannot serve a request."""

    def __init__(self, key: str, message: str):
        self.key = key
        self.message = message
        super().__init__(f"{message}: {key}")


class ObjectNotFoundError(ObjectStoreError):
    """The object does not exist. Never retried."""


class AccessDeniedError(ObjectStoreError):
    """The credentials in use may not read the object. Never retried."""


class TransientNetworkError(ObjectStoreError):
    """A network-class failure that is worth retrying."""


# =======================
# FILE PROCESSING ERRORS
# =======================

class FileProcessingError(ReviewPipelineError):
    """Fatal error for the file currently being processed."""


class ErrorBudgetExceededError(FileProcessingError):
    """Raised when a file accumulates more failed records than allowed."""

    def __init__(self, failed_count: int, budget: int, key: str | None = None):
        self.failed_count = failed_count
        self.budget = budget
        self.key = key
        target = f" in file: {key}" if key else ""
        super().__init__(
            f"Too many validation errors{target} ({failed_count} failed records, budget {budget})"
        )


class PersistenceError(FileProcessingError):
    """
    Raised when writing a sub-batch fails.

    Attributes:
        result: Partial BatchResult describing what was done before the failure
    """

    def __init__(self, message: str, result: Any = None):
        self.result = result
        super().__init__(message)


class TransformError(ValueError):
    """Raised when a validated record cannot be mapped to a review."""


# =======================
# LEDGER ERRORS
# =======================

class RecordNotFoundError(ReviewPipelineError):
    """Raised when a ledger record id does not resolve."""

    def __init__(self, record_id: int):
        self.record_id = record_id
        super().__init__(f"File record not found: {record_id}")


class IllegalTransitionError(ReviewPipelineError):
    """Raised when a ledger record is not in a state that allows the transition."""

    def __init__(self, record_id: int | None, current: Any, target: Any):
        self.record_id = record_id
        self.current = current
        self.target = target
        super().__init__(
            f"File record {record_id} cannot move from {_status_name(current)} to {_status_name(target)}"
        )


class AlreadyRunningError(ReviewPipelineError):
    """Raised when a manual trigger finds processing already in progress."""


def _status_name(status: Any) -> str:
    return getattr(status, "value", str(status))
