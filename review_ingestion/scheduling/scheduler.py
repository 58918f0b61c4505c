"""
Lock-guarded periodic triggers for review processing and ledger cleanup.

Two APScheduler jobs run independently: processing on a fixed interval and
cleanup once a day. Each run first tries its lock without waiting; if
another run (in this or another instance) holds it, the run is skipped.
Skipping is a normal outcome, not an error.
"""

from typing import Any, Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from ..batch.orchestrator import ProcessingOrchestrator
from ..core.exceptions import AlreadyRunningError
from ..core.models import RunSummary
from ..observability.logger import get_logger
from ..observability.metrics import MetricsSink
from .locks import LockRegistry

logger = get_logger(__name__)

PROCESSING_LOCK_KEY = "review-processing-lock"
CLEANUP_LOCK_KEY = "cleanup-processing-lock"
HEALTH_CHECK_LOCK_KEY = "health-check-lock"

PROCESSING_JOB_ID = "review-processing"
CLEANUP_JOB_ID = "ledger-cleanup"

_SKIPPED = object()


class ReviewProcessingScheduler:
    """
    Periodic driver of the orchestrator.

    Example:
        >>> scheduler = ReviewProcessingScheduler(orchestrator, LocalLockRegistry())
        >>> scheduler.start()
        >>> ...
        >>> scheduler.shutdown()
    """

    def __init__(
        self,
        orchestrator: ProcessingOrchestrator,
        lock_registry: LockRegistry,
        metrics: MetricsSink | None = None,
        processing_interval_seconds: float = 10,
        cleanup_hour: int = 2,
        cleanup_minute: int = 0,
        timezone: str = "UTC",
    ):
        """
        Initialize scheduler.

        Args:
            orchestrator: Processing orchestrator
            lock_registry: Source of the job locks
            metrics: Metrics sink
            processing_interval_seconds: Interval between processing runs
            cleanup_hour: Hour of the daily cleanup run
            cleanup_minute: Minute of the daily cleanup run
            timezone: Timezone for the cleanup schedule
        """
        self.orchestrator = orchestrator
        self.lock_registry = lock_registry
        self.metrics = metrics or MetricsSink()
        self.processing_interval_seconds = processing_interval_seconds
        self.cleanup_hour = cleanup_hour
        self.cleanup_minute = cleanup_minute
        self.timezone = timezone
        self._scheduler: BackgroundScheduler | None = None

    # =======================
    # LOCKING
    # =======================

    def _with_lock(self, lock_key: str, action: Callable[[], Any]) -> Any:
        """
        Run action while holding lock_key.

        Returns:
            The action's result, or _SKIPPED if the lock was busy
        """
        lock = self.lock_registry.obtain(lock_key)
        if not lock.try_lock():
            return _SKIPPED
        try:
            return action()
        finally:
            lock.unlock()

    # =======================
    # JOBS
    # =======================

    def _run_processing(self) -> RunSummary:
        # Recovery sweep shares the processing lock
        self.orchestrator.recover_stuck_files()
        return self.orchestrator.process_new_files()

    def process_reviews(self) -> RunSummary | None:
        """
        Scheduled processing run.

        Never raises: failures are logged and counted so the trigger survives.

        Returns:
            RunSummary, or None if skipped or failed
        """
        try:
            result = self._with_lock(PROCESSING_LOCK_KEY, self._start_processing)
        except Exception as e:
            logger.exception(f"Scheduled review processing failed: {e}")
            self.metrics.scheduled_processing_failed(e)
            return None

        if result is _SKIPPED:
            logger.info("Review processing already running elsewhere, skipping this cycle")
            self.metrics.scheduled_processing_skipped()
            return None

        self.metrics.scheduled_processing_succeeded(result)
        return result

    def _start_processing(self) -> RunSummary:
        self.metrics.scheduled_processing_started()
        logger.info("Starting scheduled review processing")
        return self._run_processing()

    def cleanup_old_processed_files(self) -> int | None:
        """
        Scheduled ledger cleanup run.

        Returns:
            Number of deleted records, or None if skipped or failed
        """
        try:
            result = self._with_lock(CLEANUP_LOCK_KEY, self._start_cleanup)
        except Exception as e:
            logger.exception(f"Scheduled cleanup failed: {e}")
            self.metrics.cleanup_failed(e)
            return None

        if result is _SKIPPED:
            logger.info("Cleanup already running elsewhere, skipping this cycle")
            self.metrics.cleanup_skipped()
            return None

        self.metrics.cleanup_completed(result)
        return result

    def _start_cleanup(self) -> int:
        self.metrics.cleanup_started()
        logger.info("Starting scheduled ledger cleanup")
        return self.orchestrator.cleanup_old_files()

    def run_processing_now(self) -> RunSummary:
        """
        Manual processing run, outside the schedule.

        Raises:
            AlreadyRunningError: If a processing run holds the lock
        """
        result = self._with_lock(PROCESSING_LOCK_KEY, self._run_processing)
        if result is _SKIPPED:
            raise AlreadyRunningError("Review processing is already running")
        return result

    def is_healthy(self) -> bool:
        """Liveness probe: acquire and release the reserved health-check lock."""
        try:
            return self._with_lock(HEALTH_CHECK_LOCK_KEY, lambda: True) is True
        except Exception as e:
            logger.error(f"Scheduler health check failed: {e}")
            return False

    # =======================
    # LIFECYCLE
    # =======================

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self) -> None:
        """Register both jobs and start the background scheduler."""
        if self.running:
            return

        scheduler = BackgroundScheduler(timezone=self.timezone)
        scheduler.add_job(
            self.process_reviews,
            IntervalTrigger(seconds=self.processing_interval_seconds, timezone=self.timezone),
            id=PROCESSING_JOB_ID,
            name="Review processing",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_job(
            self.cleanup_old_processed_files,
            CronTrigger(hour=self.cleanup_hour, minute=self.cleanup_minute, timezone=self.timezone),
            id=CLEANUP_JOB_ID,
            name="Ledger cleanup",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        self._scheduler = scheduler

        logger.info(
            f"Scheduler started: processing every {self.processing_interval_seconds}s, "
            f"cleanup daily at {self.cleanup_hour:02d}:{self.cleanup_minute:02d} {self.timezone}"
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop the scheduler, optionally waiting for running jobs."""
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=wait)
            self._scheduler = None
            logger.info("Scheduler stopped")

    def jobs(self) -> list[dict[str, Any]]:
        """Registered jobs with their next run time."""
        if self._scheduler is None:
            return []
        return [
            {"id": job.id, "name": job.name, "next_run_time": job.next_run_time}
            for job in self._scheduler.get_jobs()
        ]
