"""Logging and metrics for the review ingestion pipeline."""

from .logger import configure_logging, get_logger, log_operation, setup_logger
from .metrics import MetricsSink, PrometheusMetricsSink, start_metrics_server

__all__ = [
    "configure_logging",
    "get_logger",
    "log_operation",
    "setup_logger",
    "MetricsSink",
    "PrometheusMetricsSink",
    "start_metrics_server",
]
