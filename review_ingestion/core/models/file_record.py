"""
FileRecord model - one attempt to process one versioned object (persistent).
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


class ProcessingStatus(str, Enum):
    """Lifecycle states of a ledger entry."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS)


TERMINAL_STATUSES = frozenset({
    ProcessingStatus.COMPLETED,
    ProcessingStatus.FAILED,
    ProcessingStatus.SKIPPED,
    ProcessingStatus.CANCELLED,
})

# A version whose latest attempt is in one of these states may get a new attempt
RETRIABLE_STATUSES = frozenset({ProcessingStatus.FAILED, ProcessingStatus.CANCELLED})

# Allowed source states for each target state
TRANSITIONS: dict[ProcessingStatus, frozenset[ProcessingStatus]] = {
    ProcessingStatus.IN_PROGRESS: frozenset({ProcessingStatus.PENDING}),
    ProcessingStatus.COMPLETED: frozenset({ProcessingStatus.IN_PROGRESS}),
    ProcessingStatus.FAILED: frozenset({ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS}),
    ProcessingStatus.SKIPPED: frozenset({ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS}),
    ProcessingStatus.CANCELLED: frozenset({ProcessingStatus.PENDING, ProcessingStatus.IN_PROGRESS}),
}


class FileRecord(BaseModel):
    """
    Idempotency ledger entry for a single (source_key, content_fingerprint) pair.

    Attributes:
        id: Stable row identity assigned at claim time
        source_key: Object key in the bucket
        content_fingerprint: Version marker of the object (ETag)
        file_size: Object size in bytes
        last_modified: Object last-modified timestamp
        status: Current processing status
        records_processed: Valid records absorbed (persisted or duplicate)
        records_failed: Malformed, invalid, or untransformable records
        error_message: Failure reason for FAILED/CANCELLED attempts
        provider: Provider name inferred from the key, if any
        created_at: When the file was first observed
        updated_at: Last state change
        processing_started_at: When the attempt moved to IN_PROGRESS
        processing_completed_at: When the attempt reached a terminal state
    """

    id: int | None = None
    source_key: str = Field(..., min_length=1, max_length=1000)
    content_fingerprint: str = Field(..., min_length=1, max_length=255)
    file_size: int | None = Field(None, ge=0)
    last_modified: datetime | None = None
    status: ProcessingStatus = ProcessingStatus.PENDING
    records_processed: int = Field(0, ge=0)
    records_failed: int = Field(0, ge=0)
    error_message: str | None = None
    provider: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    processing_started_at: datetime | None = None
    processing_completed_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def can_transition_to(self, target: ProcessingStatus) -> bool:
        """Check the state machine for a move from the current status to target."""
        return self.status in TRANSITIONS.get(target, frozenset())

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "id": 42,
            "source_key": "reviews/2025/04/10/agoda.jl",
            "content_fingerprint": "9b2cf535f27731c974343645a3985328",
            "file_size": 182734,
            "last_modified": "2025-04-10T06:00:00Z",
            "status": "COMPLETED",
            "records_processed": 998,
            "records_failed": 0,
            "error_message": None,
            "provider": "Agoda",
            "created_at": "2025-04-10T06:00:12Z",
            "updated_at": "2025-04-10T06:01:03Z",
            "processing_started_at": "2025-04-10T06:00:13Z",
            "processing_completed_at": "2025-04-10T06:01:03Z",
        }
    })
