"""
Integration tests for the PostgreSQL repositories.

Runs against a throwaway PostgreSQL container with the pipeline schema applied.
"""

from datetime import datetime, timedelta, timezone

import pytest

from review_ingestion.core.exceptions import IllegalTransitionError
from review_ingestion.core.models import FileRecord, ProcessingStatus
from review_ingestion.ingestion.transformer import ReviewTransformer
from review_ingestion.tracking import FileTrackingLedger
from review_ingestion.warehouse.file_records import PostgresFileRecordRepository
from review_ingestion.warehouse.reviews import PostgresProviderRepository, PostgresReviewRepository

from ..fakes import MutableClock, make_raw

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def repository(clean_db) -> PostgresFileRecordRepository:
    return PostgresFileRecordRepository(clean_db)


@pytest.fixture
def pg_clock() -> MutableClock:
    return MutableClock(NOW)


@pytest.fixture
def ledger(repository, pg_clock) -> FileTrackingLedger:
    return FileTrackingLedger(repository, clock=pg_clock)


def new_record(key: str = "reviews/2025/04/10/agoda.jl", fingerprint: str = "etag-1") -> FileRecord:
    return FileRecord(
        source_key=key,
        content_fingerprint=fingerprint,
        file_size=2048,
        provider="Agoda",
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.mark.integration
class TestFileRecordClaims:
    """Tests for the live-version unique index"""

    def test_insert_if_absent_conflicts_on_live_version(self, repository):
        first = repository.insert_if_absent(new_record())
        second = repository.insert_if_absent(new_record())

        assert first is not None
        assert first.id is not None
        assert first.status == ProcessingStatus.PENDING
        assert second is None

    def test_new_fingerprint_is_a_new_version(self, repository):
        first = repository.insert_if_absent(new_record(fingerprint="etag-1"))
        second = repository.insert_if_absent(new_record(fingerprint="etag-2"))

        assert first is not None and second is not None
        assert first.id != second.id

    def test_claim_returns_existing_record(self, ledger):
        first = ledger.claim("reviews/a.jl", "etag-1")
        second = ledger.claim("reviews/a.jl", "etag-1")

        assert first.id == second.id

    def test_retry_after_failure_uses_freed_slot(self, ledger, repository):
        record = ledger.claim("reviews/a.jl", "etag-1")
        record = ledger.mark_started(record)
        ledger.mark_failed(record, "boom")

        retried = ledger.retry(record.id)

        assert retried.id != record.id
        assert retried.status == ProcessingStatus.PENDING
        assert repository.find_by_key_and_fingerprint("reviews/a.jl", "etag-1").id == retried.id
        assert repository.find_by_id(record.id).status == ProcessingStatus.FAILED

    def test_retry_rejected_while_live_attempt_exists(self, ledger):
        record = ledger.claim("reviews/a.jl", "etag-1")
        ledger.cancel(record.id)
        ledger.retry(record.id)

        with pytest.raises(IllegalTransitionError):
            ledger.retry(record.id)


@pytest.mark.integration
class TestFileRecordTransitions:
    """Tests for conditional status updates"""

    def test_transition_sets_timestamps_and_counts(self, ledger, pg_clock):
        record = ledger.claim("reviews/a.jl", "etag-1")
        started = ledger.mark_started(record)
        pg_clock.advance(timedelta(minutes=5))
        completed = ledger.mark_completed(started, processed=998, failed=0)

        assert started.processing_started_at == NOW
        assert completed.status == ProcessingStatus.COMPLETED
        assert completed.records_processed == 998
        assert completed.processing_completed_at == NOW + timedelta(minutes=5)

    def test_transition_from_wrong_status_returns_none(self, repository):
        record = repository.insert_if_absent(new_record())

        updated = repository.transition(
            record.id,
            [ProcessingStatus.IN_PROGRESS],
            ProcessingStatus.COMPLETED,
            now=NOW,
        )

        assert updated is None
        assert repository.find_by_id(record.id).status == ProcessingStatus.PENDING

    def test_second_start_is_illegal(self, ledger):
        record = ledger.claim("reviews/a.jl", "etag-1")
        ledger.mark_started(record)

        with pytest.raises(IllegalTransitionError):
            ledger.mark_started(record)

    def test_error_message_kept_when_not_given(self, ledger):
        record = ledger.mark_started(ledger.claim("reviews/a.jl", "etag-1"))
        failed = ledger.mark_failed(record, "3 of 10 records failed", processed=7, failed=3)

        assert failed.error_message == "3 of 10 records failed"
        assert failed.records_failed == 3


@pytest.mark.integration
class TestFileRecordQueries:
    """Tests for lookups, recovery and retention"""

    def test_find_latest_by_keys(self, ledger, repository):
        old = ledger.mark_started(ledger.claim("reviews/a.jl", "etag-1"))
        ledger.mark_failed(old, "boom")
        newer = ledger.retry(old.id)
        other = ledger.claim("reviews/b.jl", "etag-9")

        latest = repository.find_latest_by_keys(["reviews/a.jl", "reviews/b.jl", "reviews/c.jl"])

        assert {record.id for record in latest} == {newer.id, other.id}

    def test_filter_unprocessed(self, ledger, object_store):
        done = object_store.put("reviews/done.jl", "{}", fingerprint="e1")
        pending = object_store.put("reviews/pending.jl", "{}", fingerprint="e2")
        fresh = object_store.put("reviews/fresh.jl", "{}", fingerprint="e3")

        record = ledger.mark_started(ledger.claim_object(done))
        ledger.mark_completed(record, processed=1)
        ledger.claim_object(pending)

        unprocessed = ledger.filter_unprocessed([done, pending, fresh])

        assert [c.key for c in unprocessed] == ["reviews/pending.jl", "reviews/fresh.jl"]

    def test_recover_stuck(self, ledger, pg_clock):
        stuck = ledger.mark_started(ledger.claim("reviews/stuck.jl", "etag-1"))
        pg_clock.advance(timedelta(hours=1))
        recent = ledger.mark_started(ledger.claim("reviews/recent.jl", "etag-2"))
        pg_clock.advance(timedelta(hours=1, minutes=30))

        recovered = ledger.recover_stuck()

        assert [record.id for record in recovered] == [stuck.id]
        assert recovered[0].status == ProcessingStatus.FAILED
        assert "stuck" in recovered[0].error_message
        assert ledger.get(recent.id).status == ProcessingStatus.IN_PROGRESS

    def test_cleanup_removes_only_old_terminal_records(self, ledger, pg_clock):
        old = ledger.mark_started(ledger.claim("reviews/old.jl", "etag-1"))
        ledger.mark_completed(old, processed=1)
        running = ledger.mark_started(ledger.claim("reviews/running.jl", "etag-2"))
        pg_clock.advance(timedelta(days=31))
        recent = ledger.mark_started(ledger.claim("reviews/recent.jl", "etag-3"))
        ledger.mark_completed(recent, processed=1)

        deleted = ledger.cleanup()

        assert deleted == 1
        assert ledger.get(running.id).status == ProcessingStatus.IN_PROGRESS
        assert ledger.get(recent.id).status == ProcessingStatus.COMPLETED

    def test_statistics_by_provider(self, ledger):
        agoda = ledger.mark_started(ledger.claim("reviews/agoda_1.jl", "e1"))
        ledger.mark_completed(agoda, processed=10)
        booking = ledger.mark_started(ledger.claim("reviews/booking_1.jl", "e2"))
        ledger.mark_failed(booking, "boom")

        overall = ledger.statistics()
        agoda_only = ledger.statistics("Agoda")

        assert overall.total == 2
        assert overall.completed == 1
        assert overall.failed == 1
        assert agoda_only.total == 1
        assert agoda_only.success_rate == 100.0


@pytest.mark.integration
class TestProviderRepository:
    """Tests for provider resolution"""

    def test_get_or_create_is_idempotent(self, clean_db):
        providers = PostgresProviderRepository(clean_db)

        first = providers.get_or_create("AGODA", "Agoda")
        second = providers.get_or_create("AGODA", "Agoda")

        assert first.id == second.id
        assert providers.find_by_code("AGODA").name == "Agoda"
        assert providers.find_by_code("BOOKING") is None


@pytest.mark.integration
class TestReviewRepository:
    """Tests for review persistence"""

    def test_insert_many_skips_existing_reviews(self, clean_db, ledger):
        provider = PostgresProviderRepository(clean_db).get_or_create("AGODA", "Agoda")
        reviews = PostgresReviewRepository(clean_db)
        source = ledger.claim("reviews/agoda.jl", "etag-1")
        transformer = ReviewTransformer()

        batch = [
            transformer.transform(make_raw(line_number=n, review_id=n), provider, source_file_id=source.id)
            for n in (1, 2, 3)
        ]

        assert reviews.insert_many(batch) == 3
        assert reviews.insert_many(batch[1:]) == 0
        assert reviews.count() == 3
        assert reviews.exists_by_external_id(provider.id, "2")
        assert not reviews.exists_by_external_id(provider.id, "4")

    def test_insert_many_empty(self, clean_db):
        assert PostgresReviewRepository(clean_db).insert_many([]) == 0
