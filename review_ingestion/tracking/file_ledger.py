"""
File tracking ledger.

Idempotency state machine over FileRecords. A file version is identified by
(source_key, content_fingerprint); the storage-level unique claim is what
prevents two workers from processing the same version.

    PENDING -> IN_PROGRESS -> COMPLETED | FAILED | SKIPPED | CANCELLED
    PENDING -> FAILED | SKIPPED | CANCELLED

Every transition is keyed by the record id obtained at claim time.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable

from ..core.exceptions import IllegalTransitionError, RecordNotFoundError, ReviewPipelineError
from ..core.models import (
    RETRIABLE_STATUSES,
    FileRecord,
    ObjectSummary,
    ProcessingStatus,
    ProviderStatistics,
    infer_provider,
    utcnow,
)
from ..core.models.file_record import TRANSITIONS
from ..core.repositories import FileRecordRepository
from ..observability.logger import get_logger

logger = get_logger(__name__)

DEFAULT_STUCK_TIMEOUT = timedelta(hours=2)
DEFAULT_RETENTION = timedelta(days=30)
STUCK_TIMEOUT_MESSAGE = "Processing timeout - file was stuck in processing state"


class FileTrackingLedger:
    """
    Tracks processing attempts of remote files.

    Example:
        >>> ledger = FileTrackingLedger(PostgresFileRecordRepository(pool))
        >>> record = ledger.claim("reviews/2025/04/10/agoda.jl", "etag-1")
        >>> record = ledger.mark_started(record)
        >>> ledger.mark_completed(record, processed=998, failed=0)
    """

    def __init__(
        self,
        repository: FileRecordRepository,
        stuck_timeout: timedelta = DEFAULT_STUCK_TIMEOUT,
        retention: timedelta = DEFAULT_RETENTION,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Initialize ledger.

        Args:
            repository: Ledger storage
            stuck_timeout: How long a record may stay IN_PROGRESS before recovery
            retention: How long terminal records are kept
            clock: Source of "now"
        """
        self.repository = repository
        self.stuck_timeout = stuck_timeout
        self.retention = retention
        self.clock = clock

    # =======================
    # DUPLICATE DETECTION
    # =======================

    def is_duplicate(self, source_key: str, fingerprint: str) -> bool:
        """True iff any attempt exists for this exact file version, whatever its status."""
        return self.repository.exists_by_key_and_fingerprint(source_key, fingerprint)

    def filter_unprocessed(self, candidates: Iterable[ObjectSummary]) -> list[ObjectSummary]:
        """
        Keep the candidates that still need processing.

        A candidate is kept when its version has never been seen, or when its
        latest attempt is PENDING (claimed but never started, e.g. after a
        crash). Versions that are running, finished, failed or cancelled are
        dropped; failed ones need a manual retry or a new fingerprint.

        Args:
            candidates: Listed objects

        Returns:
            Candidates to process, in input order
        """
        candidates = list(candidates)
        if not candidates:
            return []

        latest = {
            (record.source_key, record.content_fingerprint): record
            for record in self.repository.find_latest_by_keys(
                sorted({candidate.key for candidate in candidates})
            )
        }

        unprocessed = []
        for candidate in candidates:
            record = latest.get((candidate.key, candidate.fingerprint))
            if record is None or record.status is ProcessingStatus.PENDING:
                unprocessed.append(candidate)

        logger.info(
            f"{len(unprocessed)} of {len(candidates)} candidate files need processing",
            extra={"candidates": len(candidates), "unprocessed": len(unprocessed)},
        )
        return unprocessed

    # =======================
    # CLAIM AND TRANSITIONS
    # =======================

    def claim(
        self,
        source_key: str,
        fingerprint: str,
        file_size: int | None = None,
        last_modified: datetime | None = None,
        provider: str | None = None,
    ) -> FileRecord:
        """
        Create-or-fetch the ledger entry for a file version.

        If an attempt already exists it is returned unchanged.

        Returns:
            The latest attempt for the version
        """
        existing = self.repository.find_by_key_and_fingerprint(source_key, fingerprint)
        if existing is not None:
            return existing

        now = self.clock()
        created = self.repository.insert_if_absent(FileRecord(
            source_key=source_key,
            content_fingerprint=fingerprint,
            file_size=file_size,
            last_modified=last_modified,
            provider=provider or infer_provider(source_key),
            created_at=now,
            updated_at=now,
        ))
        if created is not None:
            logger.info(
                f"Claimed new file {source_key}",
                extra={"record_id": created.id, "key": source_key, "fingerprint": fingerprint},
            )
            return created

        # Lost the insert race to another worker
        existing = self.repository.find_by_key_and_fingerprint(source_key, fingerprint)
        if existing is None:
            raise ReviewPipelineError(f"Claim conflict for {source_key} but no record found")
        return existing

    def claim_object(self, summary: ObjectSummary) -> FileRecord:
        """Claim using listing metadata."""
        return self.claim(
            summary.key,
            summary.fingerprint,
            file_size=summary.size,
            last_modified=summary.last_modified,
        )

    def _transition(
        self,
        record_id: int | None,
        target: ProcessingStatus,
        records_processed: int | None = None,
        records_failed: int | None = None,
        error_message: str | None = None,
    ) -> FileRecord:
        if record_id is None:
            raise RecordNotFoundError(record_id)

        updated = self.repository.transition(
            record_id,
            TRANSITIONS[target],
            target,
            now=self.clock(),
            records_processed=records_processed,
            records_failed=records_failed,
            error_message=error_message,
        )
        if updated is not None:
            return updated

        current = self.repository.find_by_id(record_id)
        if current is None:
            raise RecordNotFoundError(record_id)
        raise IllegalTransitionError(record_id, current.status, target)

    def mark_started(self, record: FileRecord) -> FileRecord:
        """
        Move a PENDING record to IN_PROGRESS.

        Raises:
            RecordNotFoundError: If the record no longer exists
            IllegalTransitionError: If the record is not PENDING (e.g. another worker started it)
        """
        return self._transition(record.id, ProcessingStatus.IN_PROGRESS)

    def mark_completed(self, record: FileRecord, processed: int, failed: int = 0) -> FileRecord:
        """Move an IN_PROGRESS record to COMPLETED with final counts."""
        return self._transition(
            record.id, ProcessingStatus.COMPLETED,
            records_processed=processed, records_failed=failed,
        )

    def mark_failed(
        self,
        record: FileRecord,
        message: str,
        processed: int | None = None,
        failed: int | None = None,
    ) -> FileRecord:
        """Move a PENDING or IN_PROGRESS record to FAILED with a reason."""
        return self._transition(
            record.id, ProcessingStatus.FAILED,
            records_processed=processed, records_failed=failed, error_message=message,
        )

    def mark_skipped(self, record: FileRecord, message: str) -> FileRecord:
        """Move a PENDING or IN_PROGRESS record to SKIPPED."""
        return self._transition(record.id, ProcessingStatus.SKIPPED, error_message=message)

    def cancel(self, record_id: int, message: str = "Cancelled by operator") -> FileRecord:
        """
        Cancel a PENDING or IN_PROGRESS record.

        A worker that is still running the file will fail to complete it and
        log the conflict; there is no mid-file stop signal.
        """
        return self._transition(record_id, ProcessingStatus.CANCELLED, error_message=message)

    def retry(self, record_id: int) -> FileRecord:
        """
        Create a new PENDING attempt for a FAILED or CANCELLED record.

        The old record is left untouched as history.

        Raises:
            RecordNotFoundError: If the id does not resolve
            IllegalTransitionError: If the record is not retriable or a newer
                live attempt already exists
        """
        record = self.get(record_id)
        if record.status not in RETRIABLE_STATUSES:
            raise IllegalTransitionError(record_id, record.status, ProcessingStatus.PENDING)

        now = self.clock()
        created = self.repository.insert_if_absent(FileRecord(
            source_key=record.source_key,
            content_fingerprint=record.content_fingerprint,
            file_size=record.file_size,
            last_modified=record.last_modified,
            provider=record.provider,
            created_at=now,
            updated_at=now,
        ))
        if created is None:
            live = self.repository.find_by_key_and_fingerprint(record.source_key, record.content_fingerprint)
            raise IllegalTransitionError(record_id, live.status if live else record.status, ProcessingStatus.PENDING)

        logger.info(
            f"Created retry attempt {created.id} for {record.source_key}",
            extra={"record_id": created.id, "previous_record_id": record_id},
        )
        return created

    # =======================
    # RECOVERY AND RETENTION
    # =======================

    def find_stuck(self, timeout: timedelta | None = None) -> list[FileRecord]:
        """Return IN_PROGRESS records started longer ago than the timeout."""
        threshold = self.clock() - (timeout or self.stuck_timeout)
        return self.repository.find_stuck(threshold)

    def recover_stuck(self, timeout: timedelta | None = None) -> list[FileRecord]:
        """
        Force stuck IN_PROGRESS records to FAILED.

        This does not stop a worker that is still running; it only frees the
        file version for a future manual retry.

        Returns:
            The recovered records, now FAILED
        """
        now = self.clock()
        threshold = now - (timeout or self.stuck_timeout)
        recovered = self.repository.fail_stuck(threshold, STUCK_TIMEOUT_MESSAGE, now)

        for record in recovered:
            logger.warning(
                f"Recovered stuck file {record.source_key}",
                extra={"record_id": record.id, "started_at": str(record.processing_started_at)},
            )
        return recovered

    def cleanup(self, retention: timedelta | None = None) -> int:
        """
        Delete terminal records older than the retention window.

        Non-terminal records are never deleted.

        Returns:
            Number of records deleted
        """
        cutoff = self.clock() - (retention or self.retention)
        deleted = self.repository.delete_terminal_older_than(cutoff)
        logger.info(f"Deleted {deleted} ledger records older than {cutoff.isoformat()}")
        return deleted

    # =======================
    # QUERIES
    # =======================

    def get(self, record_id: int) -> FileRecord:
        """
        Fetch a record by id.

        Raises:
            RecordNotFoundError: If the id does not resolve
        """
        record = self.repository.find_by_id(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def list_by_status(self, status: ProcessingStatus | None = None, limit: int = 100) -> list[FileRecord]:
        return self.repository.find_by_status(status, limit)

    def statistics(self, provider: str | None = None) -> ProviderStatistics:
        """Aggregate counts and success/failure rates, optionally for one provider."""
        return ProviderStatistics.from_counts(self.repository.count_by_status(provider), provider=provider)
