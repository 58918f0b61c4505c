"""
Operator-facing operations over the ledger and scheduler.
"""

from .core.models import FileRecord, ProcessingStatus, ProviderStatistics, RunSummary
from .observability.logger import get_logger
from .scheduling.scheduler import ReviewProcessingScheduler
from .tracking.file_ledger import FileTrackingLedger

logger = get_logger(__name__)


class IngestionAdmin:
    """
    Manual controls: trigger a run, inspect, stop or retry files, statistics.

    Errors are the typed pipeline errors (RecordNotFoundError,
    IllegalTransitionError, AlreadyRunningError) so callers can map them.
    """

    def __init__(self, ledger: FileTrackingLedger, scheduler: ReviewProcessingScheduler):
        self.ledger = ledger
        self.scheduler = scheduler

    def trigger_processing_now(self) -> RunSummary:
        """Run processing immediately; raises AlreadyRunningError if a run holds the lock."""
        logger.info("Manual processing run requested")
        return self.scheduler.run_processing_now()

    def get_status(self, record_id: int) -> FileRecord:
        return self.ledger.get(record_id)

    def list_statuses(self, status: ProcessingStatus | None = None, limit: int = 100) -> list[FileRecord]:
        return self.ledger.list_by_status(status, limit)

    def stop(self, record_id: int) -> FileRecord:
        """Cancel a PENDING or IN_PROGRESS file."""
        logger.info(f"Stop requested for file record {record_id}")
        return self.ledger.cancel(record_id)

    def retry(self, record_id: int) -> FileRecord:
        """Create a fresh PENDING attempt for a FAILED or CANCELLED file."""
        logger.info(f"Retry requested for file record {record_id}")
        return self.ledger.retry(record_id)

    def statistics(self, provider: str | None = None) -> ProviderStatistics:
        return self.ledger.statistics(provider)
