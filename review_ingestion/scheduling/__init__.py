"""Job locks and the periodic scheduler."""

from .locks import (
    DistributedLock,
    LocalLockRegistry,
    LockRegistry,
    PostgresAdvisoryLockRegistry,
    advisory_key,
)
from .scheduler import (
    CLEANUP_LOCK_KEY,
    HEALTH_CHECK_LOCK_KEY,
    PROCESSING_LOCK_KEY,
    ReviewProcessingScheduler,
)

__all__ = [
    "DistributedLock",
    "LockRegistry",
    "LocalLockRegistry",
    "PostgresAdvisoryLockRegistry",
    "advisory_key",
    "ReviewProcessingScheduler",
    "PROCESSING_LOCK_KEY",
    "CLEANUP_LOCK_KEY",
    "HEALTH_CHECK_LOCK_KEY",
]
