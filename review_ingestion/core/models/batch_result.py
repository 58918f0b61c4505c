"""
BatchResult and run outcome models - aggregates reported by processing (ephemeral).
"""

from typing import Iterable

from pydantic import BaseModel, Field

from .file_record import ProcessingStatus


class BatchResult(BaseModel):
    """
    Aggregate outcome of processing one batch of raw reviews.

    Attributes:
        processed_count: Records examined
        valid_count: Records persisted
        invalid_count: Records rejected by validation or transformation
        duplicate_count: Valid records already present in the warehouse
        errors: "line N: <violation>" messages, capped
        processing_time_ms: Wall-clock time spent
        persistence_failed: Whether a sub-batch write failed
    """

    processed_count: int = Field(0, ge=0)
    valid_count: int = Field(0, ge=0)
    invalid_count: int = Field(0, ge=0)
    duplicate_count: int = Field(0, ge=0)
    errors: list[str] = Field(default_factory=list)
    processing_time_ms: int = Field(0, ge=0)
    persistence_failed: bool = False

    @property
    def status(self) -> ProcessingStatus:
        """COMPLETED only when nothing was invalid and every write succeeded."""
        if self.persistence_failed or self.invalid_count > 0:
            return ProcessingStatus.FAILED
        return ProcessingStatus.COMPLETED

    @property
    def absorbed_count(self) -> int:
        """Valid records accounted for, whether newly written or already present."""
        return self.valid_count + self.duplicate_count

    @classmethod
    def combine(cls, results: Iterable["BatchResult"], max_errors: int = 50) -> "BatchResult":
        """
        Sum a sequence of results into one.

        Args:
            results: Results to add up
            max_errors: Cap on the merged error list

        Returns:
            Combined BatchResult
        """
        total = cls()
        for result in results:
            total.processed_count += result.processed_count
            total.valid_count += result.valid_count
            total.invalid_count += result.invalid_count
            total.duplicate_count += result.duplicate_count
            total.processing_time_ms += result.processing_time_ms
            total.persistence_failed = total.persistence_failed or result.persistence_failed
            room = max_errors - len(total.errors)
            if room > 0:
                total.errors.extend(result.errors[:room])
        return total


class FileOutcome(BaseModel):
    """Result of one file-processing attempt."""

    key: str
    record_id: int | None = None
    status: ProcessingStatus
    records_processed: int = 0
    records_failed: int = 0
    error: str | None = None


class RunSummary(BaseModel):
    """Result of one processing run over newly listed files."""

    files_found: int = 0
    files_completed: int = 0
    files_failed: int = 0
    files_skipped: int = 0
    records_processed: int = 0
    outcomes: list[FileOutcome] = Field(default_factory=list)

    def add(self, outcome: FileOutcome) -> None:
        self.outcomes.append(outcome)
        self.records_processed += outcome.records_processed
        if outcome.status is ProcessingStatus.COMPLETED:
            self.files_completed += 1
        elif outcome.status is ProcessingStatus.FAILED:
            self.files_failed += 1
        else:
            self.files_skipped += 1


class ProviderStatistics(BaseModel):
    """Ledger counts for one provider (or all files when provider is None)."""

    provider: str | None = None
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: int = 0

    @property
    def success_rate(self) -> float:
        return round(self.completed * 100.0 / self.total, 2) if self.total else 0.0

    @property
    def failure_rate(self) -> float:
        return round(self.failed * 100.0 / self.total, 2) if self.total else 0.0

    @classmethod
    def from_counts(cls, counts: dict[ProcessingStatus, int], provider: str | None = None) -> "ProviderStatistics":
        stats = cls(provider=provider)
        for status, count in counts.items():
            status = ProcessingStatus(status)
            setattr(stats, status.value.lower(), count)
            stats.total += count
        return stats
