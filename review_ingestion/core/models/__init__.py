"""
Core data models for the review ingestion pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .batch_result import BatchResult, FileOutcome, ProviderStatistics, RunSummary
from .file_record import (
    RETRIABLE_STATUSES,
    TERMINAL_STATUSES,
    FileRecord,
    ProcessingStatus,
    utcnow,
)
from .object_summary import ObjectSummary
from .provider import Provider, ProviderCode, infer_provider
from .raw_review import RawReview
from .review import Review
from .validation_outcome import ValidationOutcome

__all__ = [
    "FileRecord",
    "ProcessingStatus",
    "TERMINAL_STATUSES",
    "RETRIABLE_STATUSES",
    "ObjectSummary",
    "Provider",
    "ProviderCode",
    "infer_provider",
    "RawReview",
    "Review",
    "ValidationOutcome",
    "BatchResult",
    "FileOutcome",
    "RunSummary",
    "ProviderStatistics",
    "utcnow",
]
