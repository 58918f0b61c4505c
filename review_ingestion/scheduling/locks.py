"""
Lock providers for scheduler jobs.

Only the non-blocking contract is used: try_lock() either succeeds at once
or returns False, and unlock() must run on every exit path.

LocalLockRegistry excludes concurrent runs inside one process only.
PostgresAdvisoryLockRegistry uses session-level advisory locks on a
dedicated pooled connection, so it excludes runs across every instance
sharing the database.
"""

import hashlib
import threading
from abc import ABC, abstractmethod

import psycopg

from ..observability.logger import get_logger
from ..warehouse.connection import DatabaseConnectionPool

logger = get_logger(__name__)


class DistributedLock(ABC):
    """A named mutual-exclusion lock."""

    def __init__(self, name: str):
        self.name = name

    @abstractmethod
    def try_lock(self) -> bool:
        """Acquire without waiting. Returns True if acquired."""

    @abstractmethod
    def unlock(self) -> None:
        """Release the lock if held by this object. Safe to call when not held."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


class LockRegistry(ABC):
    """Hands out locks by name."""

    @abstractmethod
    def obtain(self, name: str) -> DistributedLock:
        """Return a lock object for the given name."""


# =======================
# IN-PROCESS
# =======================

class LocalLock(DistributedLock):
    def __init__(self, name: str, lock: threading.Lock):
        super().__init__(name)
        self._lock = lock
        self._held = False

    def try_lock(self) -> bool:
        self._held = self._lock.acquire(blocking=False)
        return self._held

    def unlock(self) -> None:
        if self._held:
            self._held = False
            self._lock.release()


class LocalLockRegistry(LockRegistry):
    """Locks shared by all threads of this process."""

    def __init__(self):
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def obtain(self, name: str) -> DistributedLock:
        with self._guard:
            lock = self._locks.setdefault(name, threading.Lock())
        return LocalLock(name, lock)


# =======================
# POSTGRES ADVISORY LOCKS
# =======================

def advisory_key(name: str) -> int:
    """Stable signed 64-bit advisory lock key for a lock name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)


class PostgresAdvisoryLock(DistributedLock):
    """
    Session-level pg_try_advisory_lock held on a checked-out connection.

    The connection stays out of the pool while the lock is held; if the
    process dies, Postgres drops the session and with it the lock.
    """

    def __init__(self, name: str, pool: DatabaseConnectionPool):
        super().__init__(name)
        self.pool = pool
        self.key = advisory_key(name)
        self._conn = None

    def try_lock(self) -> bool:
        if self._conn is not None:
            return False

        conn = self.pool.acquire()
        try:
            row = conn.execute("SELECT pg_try_advisory_lock(%s) AS locked", (self.key,)).fetchone()
            conn.commit()
        except psycopg.Error:
            self.pool.release(conn)
            raise

        if not row["locked"]:
            self.pool.release(conn)
            return False

        self._conn = conn
        return True

    def unlock(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.execute("SELECT pg_advisory_unlock(%s)", (self.key,))
            conn.commit()
        except psycopg.Error as e:
            logger.warning(f"Failed to release advisory lock {self.name}: {e}")
            # Ending the session releases the lock; the pool discards closed connections
            conn.close()
        finally:
            self.pool.release(conn)


class PostgresAdvisoryLockRegistry(LockRegistry):
    """Locks shared by every instance connected to the same database."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def obtain(self, name: str) -> DistributedLock:
        return PostgresAdvisoryLock(name, self.pool)
