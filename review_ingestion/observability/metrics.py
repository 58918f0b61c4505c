"""
Prometheus metrics collection for the review ingestion pipeline

The core calls a MetricsSink on file, batch, cleanup and scheduling events.
MetricsSink itself is a no-op; PrometheusMetricsSink records the events on
the module-level REGISTRY.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from ..core.models import BatchResult, RunSummary

# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# FILE METRICS
# =======================

files_processed_total = Counter(
    name="review_files_processed_total",
    documentation="Files that reached a terminal state",
    labelnames=["status"],  # status: started, completed, failed
    registry=REGISTRY,
)

file_errors_total = Counter(
    name="review_file_errors_total",
    documentation="File processing failures by error type",
    labelnames=["error_type"],
    registry=REGISTRY,
)

files_in_progress = Gauge(
    name="review_files_in_progress",
    documentation="Files currently being processed by this instance",
    registry=REGISTRY,
)

stuck_files_recovered_total = Counter(
    name="review_stuck_files_recovered_total",
    documentation="IN_PROGRESS files force-failed by the recovery sweep",
    registry=REGISTRY,
)

object_store_errors_total = Counter(
    name="review_object_store_errors_total",
    documentation="Listing failures against the object store",
    labelnames=["operation"],
    registry=REGISTRY,
)

# =======================
# RECORD METRICS
# =======================

records_processed_total = Counter(
    name="review_records_processed_total",
    documentation="Records seen by the batch processor",
    labelnames=["status"],  # status: valid, invalid, duplicate
    registry=REGISTRY,
)

batch_size = Histogram(
    name="review_batch_size_records",
    documentation="Number of records in each processed batch",
    buckets=[1, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=REGISTRY,
)

batch_duration_seconds = Histogram(
    name="review_batch_duration_seconds",
    documentation="Time spent processing one batch",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

batches_processed_total = Counter(
    name="review_batches_processed_total",
    documentation="Batches processed",
    labelnames=["status"],  # status: completed, failed
    registry=REGISTRY,
)

# =======================
# SCHEDULER METRICS
# =======================

scheduled_runs_total = Counter(
    name="review_scheduled_runs_total",
    documentation="Scheduler job outcomes",
    labelnames=["job", "outcome"],  # outcome: started, succeeded, failed, skipped
    registry=REGISTRY,
)

cleanup_deleted_total = Counter(
    name="review_cleanup_deleted_records_total",
    documentation="Ledger rows removed by retention cleanup",
    registry=REGISTRY,
)

last_run_files_found = Gauge(
    name="review_last_run_files_found",
    documentation="Unprocessed files found by the last processing run",
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Lazy import: the HTTP server is only needed by long-running entry points
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value <= 0:
        return
    if labels:
        counter.labels(**labels).inc(value)
    else:
        counter.inc(value)


# =======================
# METRICS SINKS
# =======================

class MetricsSink:
    """
    Fire-and-forget observability calls made by the pipeline.

    Every method is a no-op here, which makes this class the sink to use in
    tests and in tools that do not export metrics.
    """

    def file_processing_started(self, key: str) -> None:
        pass

    def file_processing_completed(self, key: str, records_processed: int, records_failed: int) -> None:
        pass

    def file_processing_failed(self, key: str, error: BaseException) -> None:
        pass

    def batch_processed(self, result: BatchResult) -> None:
        pass

    def listing_failed(self, error: BaseException) -> None:
        pass

    def stuck_files_recovered(self, count: int) -> None:
        pass

    def scheduled_processing_started(self) -> None:
        pass

    def scheduled_processing_succeeded(self, summary: RunSummary) -> None:
        pass

    def scheduled_processing_failed(self, error: BaseException) -> None:
        pass

    def scheduled_processing_skipped(self) -> None:
        pass

    def cleanup_started(self) -> None:
        pass

    def cleanup_completed(self, deleted: int) -> None:
        pass

    def cleanup_failed(self, error: BaseException) -> None:
        pass

    def cleanup_skipped(self) -> None:
        pass


class PrometheusMetricsSink(MetricsSink):
    """MetricsSink backed by the Prometheus collectors in this module."""

    def file_processing_started(self, key: str) -> None:
        increment_counter(files_processed_total, status="started")
        files_in_progress.inc()

    def file_processing_completed(self, key: str, records_processed: int, records_failed: int) -> None:
        increment_counter(files_processed_total, status="completed")
        files_in_progress.dec()

    def file_processing_failed(self, key: str, error: BaseException) -> None:
        increment_counter(files_processed_total, status="failed")
        increment_counter(file_errors_total, error_type=type(error).__name__)
        files_in_progress.dec()

    def batch_processed(self, result: BatchResult) -> None:
        increment_counter(records_processed_total, result.valid_count, status="valid")
        increment_counter(records_processed_total, result.invalid_count, status="invalid")
        increment_counter(records_processed_total, result.duplicate_count, status="duplicate")
        increment_counter(batches_processed_total, status=result.status.value.lower())
        batch_size.observe(result.processed_count)
        batch_duration_seconds.observe(result.processing_time_ms / 1000.0)

    def listing_failed(self, error: BaseException) -> None:
        increment_counter(object_store_errors_total, operation="list")

    def stuck_files_recovered(self, count: int) -> None:
        increment_counter(stuck_files_recovered_total, count)

    def scheduled_processing_started(self) -> None:
        increment_counter(scheduled_runs_total, job="processing", outcome="started")

    def scheduled_processing_succeeded(self, summary: RunSummary) -> None:
        increment_counter(scheduled_runs_total, job="processing", outcome="succeeded")
        last_run_files_found.set(summary.files_found)

    def scheduled_processing_failed(self, error: BaseException) -> None:
        increment_counter(scheduled_runs_total, job="processing", outcome="failed")

    def scheduled_processing_skipped(self) -> None:
        increment_counter(scheduled_runs_total, job="processing", outcome="skipped")

    def cleanup_started(self) -> None:
        increment_counter(scheduled_runs_total, job="cleanup", outcome="started")

    def cleanup_completed(self, deleted: int) -> None:
        increment_counter(scheduled_runs_total, job="cleanup", outcome="succeeded")
        increment_counter(cleanup_deleted_total, deleted)

    def cleanup_failed(self, error: BaseException) -> None:
        increment_counter(scheduled_runs_total, job="cleanup", outcome="failed")

    def cleanup_skipped(self) -> None:
        increment_counter(scheduled_runs_total, job="cleanup", outcome="skipped")
