"""
Processing orchestrator.

Drives each file through discovered -> claimed (IN_PROGRESS) -> COMPLETED or
FAILED: existence check, streamed download, parse in batches, process each
batch, and a final ledger transition. A file-level failure marks the ledger
entry FAILED and is re-raised from process_file; process_new_files logs it
and moves on to the next file.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from datetime import datetime, timezone
from typing import Iterable

from ..core.exceptions import (
    ErrorBudgetExceededError,
    IllegalTransitionError,
    ObjectNotFoundError,
    PersistenceError,
)
from ..core.models import (
    FileOutcome,
    FileRecord,
    ObjectSummary,
    ProcessingStatus,
    RunSummary,
)
from ..ingestion.jsonl_parser import DEFAULT_BATCH_SIZE, JsonLinesParser, ParseStats
from ..observability.logger import get_logger, log_operation
from ..observability.metrics import MetricsSink
from ..storage.object_store import S3ObjectStore
from ..tracking.file_ledger import FileTrackingLedger
from .processor import BatchProcessor

logger = get_logger(__name__)

DEFAULT_ERROR_BUDGET = 50
DEFAULT_MAX_CONCURRENT_FILES = 5

_KEY_DATE = re.compile(r"(\d{4})[/-](\d{2})[/-](\d{2})")
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def embedded_date(key: str) -> datetime | None:
    """Extract a YYYY/MM/DD or YYYY-MM-DD date from an object key."""
    match = _KEY_DATE.search(key)
    if not match:
        return None
    try:
        return datetime(*(int(part) for part in match.groups()), tzinfo=timezone.utc)
    except ValueError:
        return None


def order_candidates(candidates: Iterable[ObjectSummary]) -> list[ObjectSummary]:
    """Oldest embedded date first, then last-modified, then key."""
    def sort_key(summary: ObjectSummary):
        return (
            embedded_date(summary.key) or _EPOCH,
            summary.last_modified or _EPOCH,
            summary.key,
        )
    return sorted(candidates, key=sort_key)


class ProcessingOrchestrator:
    """
    Ties the gateway, ledger, parser and batch processor together.

    Example:
        >>> orchestrator = ProcessingOrchestrator(store, ledger, processor)
        >>> summary = orchestrator.process_new_files()
        >>> summary.files_completed, summary.files_failed
    """

    def __init__(
        self,
        object_store: S3ObjectStore,
        ledger: FileTrackingLedger,
        batch_processor: BatchProcessor,
        parser: JsonLinesParser | None = None,
        metrics: MetricsSink | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        error_budget: int = DEFAULT_ERROR_BUDGET,
        concurrent: bool = False,
        max_concurrent_files: int = DEFAULT_MAX_CONCURRENT_FILES,
    ):
        """
        Initialize orchestrator.

        Args:
            object_store: Gateway to the bucket
            ledger: File tracking ledger
            batch_processor: Processor for parsed batches
            parser: JSON Lines parser
            metrics: Metrics sink
            batch_size: Records per parsed batch
            error_budget: Failed records tolerated per file before aborting
            concurrent: Process independent files on a worker pool
            max_concurrent_files: Worker pool size in concurrent mode
        """
        self.object_store = object_store
        self.ledger = ledger
        self.batch_processor = batch_processor
        self.parser = parser or JsonLinesParser()
        self.metrics = metrics or MetricsSink()
        self.batch_size = batch_size
        self.error_budget = error_budget
        self.concurrent = concurrent
        self.max_concurrent_files = max_concurrent_files

    # =======================
    # RUNS
    # =======================

    def process_new_files(self, prefix: str | None = None) -> RunSummary:
        """
        List the bucket, filter through the ledger and process what is new.

        Per-file failures are recorded in the ledger and the summary; they do
        not stop the run.

        Args:
            prefix: Listing prefix (gateway default if None)

        Returns:
            RunSummary for the run

        Raises:
            ObjectStoreError: If the listing itself fails
        """
        try:
            candidates = list(self.object_store.list_candidates(prefix))
        except Exception as e:
            self.metrics.listing_failed(e)
            logger.error(f"Failed to list candidate files: {e}")
            raise

        pending = order_candidates(self.ledger.filter_unprocessed(candidates))
        summary = RunSummary(files_found=len(pending))
        if not pending:
            logger.info("No new files to process")
            return summary

        if self.concurrent and len(pending) > 1:
            workers = min(self.max_concurrent_files, len(pending))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="review-file") as pool:
                for outcome in pool.map(self._process_safely, pending):
                    summary.add(outcome)
        else:
            for candidate in pending:
                summary.add(self._process_safely(candidate))

        logger.info(
            f"Run finished: {summary.files_completed} completed, {summary.files_failed} failed, "
            f"{summary.files_skipped} skipped, {summary.records_processed} records",
            extra=summary.model_dump(exclude={"outcomes"}),
        )
        return summary

    def _process_safely(self, summary: ObjectSummary) -> FileOutcome:
        try:
            return self.process_file(summary)
        except Exception as e:
            # Already recorded in the ledger by process_file
            logger.error(f"Error processing file {summary.key}: {e}")
            return FileOutcome(key=summary.key, status=ProcessingStatus.FAILED, error=str(e))

    def process_key(self, key: str) -> FileOutcome:
        """Process one object by key, using its current metadata."""
        return self.process_file(self.object_store.metadata(key))

    # =======================
    # SINGLE FILE
    # =======================

    def process_file(self, summary: ObjectSummary) -> FileOutcome:
        """
        Claim and process one file version.

        Returns:
            FileOutcome; SKIPPED when the version is already owned or finished,
            FAILED when some records failed validation

        Raises:
            ObjectStoreError, FileProcessingError: After the ledger entry was marked FAILED
        """
        record = self.ledger.claim_object(summary)
        if record.status is not ProcessingStatus.PENDING:
            logger.info(
                f"Skipping {summary.key}: already {record.status.value}",
                extra={"record_id": record.id, "key": summary.key},
            )
            return FileOutcome(key=summary.key, record_id=record.id, status=ProcessingStatus.SKIPPED)

        try:
            record = self.ledger.mark_started(record)
        except IllegalTransitionError:
            logger.info(f"Skipping {summary.key}: claimed by another worker", extra={"record_id": record.id})
            return FileOutcome(key=summary.key, record_id=record.id, status=ProcessingStatus.SKIPPED)

        self.metrics.file_processing_started(summary.key)
        counts = _FileCounts()
        try:
            with log_operation("Processing file", logger=logger, key=summary.key, record_id=record.id):
                self._ingest(record, counts)
        except Exception as e:
            self._fail(record, str(e) or type(e).__name__, counts)
            self.metrics.file_processing_failed(summary.key, e)
            raise

        if counts.failed > 0:
            message = f"{counts.failed} of {counts.total} records failed"
            record = self._fail(record, message, counts)
            self.metrics.file_processing_failed(summary.key, ValueError(message))
            return FileOutcome(
                key=summary.key, record_id=record.id, status=ProcessingStatus.FAILED,
                records_processed=counts.processed, records_failed=counts.failed, error=message,
            )

        try:
            record = self.ledger.mark_completed(record, counts.processed, counts.failed)
        except IllegalTransitionError as e:
            # Cancelled or recovered while running
            logger.warning(f"Could not complete {summary.key}: {e}", extra={"record_id": record.id})
            self.metrics.file_processing_failed(summary.key, e)
            return FileOutcome(
                key=summary.key, record_id=record.id, status=ProcessingStatus.SKIPPED,
                records_processed=counts.processed, records_failed=counts.failed, error=str(e),
            )

        self.metrics.file_processing_completed(summary.key, counts.processed, counts.failed)
        return FileOutcome(
            key=summary.key, record_id=record.id, status=ProcessingStatus.COMPLETED,
            records_processed=counts.processed, records_failed=counts.failed,
        )

    def _ingest(self, record: FileRecord, counts: "_FileCounts") -> None:
        key = record.source_key
        if not self.object_store.exists(key):
            raise ObjectNotFoundError(key, "File no longer exists")

        # Reading stops as soon as malformed lines alone push the file over budget
        stats = ParseStats(malformed_limit=self.error_budget)
        with closing(self.object_store.download(key)) as body:
            for batch in self.parser.iter_batches(body, self.batch_size, stats):
                # Malformed lines seen so far count against the budget too
                counts.malformed = stats.malformed_lines
                if counts.failed > self.error_budget:
                    raise ErrorBudgetExceededError(counts.failed, self.error_budget, key)

                try:
                    result = self.batch_processor.process_batch(
                        batch,
                        source_file_id=record.id,
                        error_budget=self.error_budget - counts.failed,
                    )
                except ErrorBudgetExceededError as e:
                    counts.invalid += e.failed_count
                    raise ErrorBudgetExceededError(counts.failed, self.error_budget, key) from e
                except PersistenceError as e:
                    if e.result is not None:
                        counts.add(e.result)
                    raise

                counts.add(result)
                stats.malformed_limit = self.error_budget - counts.invalid

        counts.malformed = stats.malformed_lines
        if counts.failed > self.error_budget:
            raise ErrorBudgetExceededError(counts.failed, self.error_budget, key)

    def _fail(self, record: FileRecord, message: str, counts: "_FileCounts") -> FileRecord:
        try:
            return self.ledger.mark_failed(record, message, processed=counts.processed, failed=counts.failed)
        except IllegalTransitionError as e:
            logger.warning(f"Could not mark {record.source_key} failed: {e}", extra={"record_id": record.id})
            return record

    # =======================
    # MAINTENANCE
    # =======================

    def recover_stuck_files(self) -> list[FileRecord]:
        """Force long-running IN_PROGRESS files to FAILED."""
        recovered = self.ledger.recover_stuck()
        if recovered:
            self.metrics.stuck_files_recovered(len(recovered))
        return recovered

    def cleanup_old_files(self) -> int:
        """Delete terminal ledger records past the retention window."""
        return self.ledger.cleanup()


class _FileCounts:
    """Running per-file totals."""

    def __init__(self):
        self.processed = 0
        self.invalid = 0
        self.malformed = 0

    @property
    def failed(self) -> int:
        return self.invalid + self.malformed

    @property
    def total(self) -> int:
        return self.processed + self.failed

    def add(self, result) -> None:
        self.processed += result.absorbed_count
        self.invalid += result.invalid_count
