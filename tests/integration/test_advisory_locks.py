"""
Integration tests for PostgreSQL advisory locks shared between scheduler instances.
"""

import pytest

from review_ingestion.scheduling.locks import PostgresAdvisoryLockRegistry


@pytest.mark.integration
class TestPostgresAdvisoryLocks:
    """Two registries on one pool behave like two instances on one database"""

    def test_second_instance_cannot_take_held_lock(self, clean_db):
        first = PostgresAdvisoryLockRegistry(clean_db).obtain("review-processing-lock")
        second = PostgresAdvisoryLockRegistry(clean_db).obtain("review-processing-lock")

        assert first.try_lock()
        try:
            assert not second.try_lock()
        finally:
            first.unlock()

    def test_unlock_releases_for_other_instances(self, clean_db):
        first = PostgresAdvisoryLockRegistry(clean_db).obtain("review-processing-lock")
        second = PostgresAdvisoryLockRegistry(clean_db).obtain("review-processing-lock")

        assert first.try_lock()
        first.unlock()

        assert second.try_lock()
        second.unlock()

    def test_different_names_do_not_conflict(self, clean_db):
        registry = PostgresAdvisoryLockRegistry(clean_db)
        processing = registry.obtain("review-processing-lock")
        cleanup = registry.obtain("cleanup-processing-lock")

        assert processing.try_lock()
        try:
            assert cleanup.try_lock()
            cleanup.unlock()
        finally:
            processing.unlock()

    def test_lock_object_is_not_reentrant(self, clean_db):
        lock = PostgresAdvisoryLockRegistry(clean_db).obtain("health-check-lock")

        assert lock.try_lock()
        try:
            assert not lock.try_lock()
        finally:
            lock.unlock()

    def test_unlock_when_not_held_is_noop(self, clean_db):
        lock = PostgresAdvisoryLockRegistry(clean_db).obtain("health-check-lock")

        lock.unlock()

        assert lock.try_lock()
        lock.unlock()
