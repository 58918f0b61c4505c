"""
Composition root.

Builds the full object graph (pool, repositories, gateway, ledger, parser,
batch processor, orchestrator, locks, scheduler and admin) from
PipelineSettings.
"""

from dataclasses import dataclass
from typing import Any

from .admin import IngestionAdmin
from .batch import BatchProcessor, ProcessingOrchestrator
from .config import PipelineSettings
from .core.validators import ReviewValidator
from .ingestion import JsonLinesParser, ReviewTransformer
from .observability.logger import get_logger
from .observability.metrics import MetricsSink, PrometheusMetricsSink
from .scheduling import (
    LocalLockRegistry,
    LockRegistry,
    PostgresAdvisoryLockRegistry,
    ReviewProcessingScheduler,
)
from .storage import S3ObjectStore
from .tracking import FileTrackingLedger
from .warehouse import (
    DatabaseConnectionPool,
    PostgresFileRecordRepository,
    PostgresProviderRepository,
    PostgresReviewRepository,
)

logger = get_logger(__name__)


@dataclass
class Application:
    """Wired pipeline components."""

    settings: PipelineSettings
    pool: DatabaseConnectionPool
    object_store: S3ObjectStore
    ledger: FileTrackingLedger
    batch_processor: BatchProcessor
    orchestrator: ProcessingOrchestrator
    lock_registry: LockRegistry
    scheduler: ReviewProcessingScheduler
    admin: IngestionAdmin
    metrics: MetricsSink

    def close(self) -> None:
        """Stop the scheduler and release database connections."""
        self.scheduler.shutdown(wait=True)
        self.pool.close()


def build_lock_registry(backend: str, pool: DatabaseConnectionPool) -> LockRegistry:
    if backend == "local":
        return LocalLockRegistry()
    if backend == "postgres":
        return PostgresAdvisoryLockRegistry(pool)
    raise ValueError(f"Unknown lock backend: {backend}")


def build_application(
    settings: PipelineSettings,
    pool: DatabaseConnectionPool | None = None,
    s3_client: Any = None,
    metrics: MetricsSink | None = None,
) -> Application:
    """
    Wire the pipeline.

    The pool is opened here when it was not provided.

    Args:
        settings: Pipeline configuration
        pool: Existing database pool (built from DB_* env vars if None)
        s3_client: Pre-built boto3 S3 client
        metrics: Metrics sink (Prometheus if None)

    Returns:
        Application holding every component
    """
    if pool is None:
        pool = DatabaseConnectionPool()
        pool.open()

    metrics = metrics or PrometheusMetricsSink()
    store_settings = settings.object_store
    processing = settings.processing

    object_store = S3ObjectStore(
        bucket=store_settings.bucket,
        prefix=store_settings.prefix,
        client=s3_client,
        region_name=store_settings.region,
        endpoint_url=store_settings.endpoint_url,
        max_retries=store_settings.max_retries,
        base_delay=store_settings.base_delay_seconds,
    )
    ledger = FileTrackingLedger(
        PostgresFileRecordRepository(pool),
        stuck_timeout=settings.ledger.stuck_timeout,
        retention=settings.ledger.retention,
    )
    batch_processor = BatchProcessor(
        review_repository=PostgresReviewRepository(pool),
        provider_repository=PostgresProviderRepository(pool),
        validator=ReviewValidator(),
        transformer=ReviewTransformer(),
        metrics=metrics,
        persist_batch_size=processing.persist_batch_size,
        max_errors=processing.max_errors,
        large_batch_threshold=processing.large_batch_threshold,
        large_batch_chunk_size=processing.large_batch_chunk_size,
    )
    orchestrator = ProcessingOrchestrator(
        object_store=object_store,
        ledger=ledger,
        batch_processor=batch_processor,
        parser=JsonLinesParser(),
        metrics=metrics,
        batch_size=processing.batch_size,
        error_budget=processing.error_budget,
        concurrent=processing.concurrent,
        max_concurrent_files=processing.max_concurrent_files,
    )
    lock_registry = build_lock_registry(settings.scheduler.lock_backend, pool)
    scheduler = ReviewProcessingScheduler(
        orchestrator=orchestrator,
        lock_registry=lock_registry,
        metrics=metrics,
        processing_interval_seconds=settings.scheduler.processing_interval_seconds,
        cleanup_hour=settings.scheduler.cleanup_hour,
        cleanup_minute=settings.scheduler.cleanup_minute,
        timezone=settings.scheduler.timezone,
    )

    logger.info(
        f"Pipeline wired for s3://{store_settings.bucket}/{store_settings.prefix}",
        extra={"lock_backend": settings.scheduler.lock_backend, "concurrent": processing.concurrent},
    )
    return Application(
        settings=settings,
        pool=pool,
        object_store=object_store,
        ledger=ledger,
        batch_processor=batch_processor,
        orchestrator=orchestrator,
        lock_registry=lock_registry,
        scheduler=scheduler,
        admin=IngestionAdmin(ledger, scheduler),
        metrics=metrics,
    )
