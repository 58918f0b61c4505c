"""
Batch processing and per-file orchestration.
"""

from .orchestrator import ProcessingOrchestrator, embedded_date, order_candidates
from .processor import BatchProcessor

__all__ = [
    "BatchProcessor",
    "ProcessingOrchestrator",
    "embedded_date",
    "order_candidates",
]
