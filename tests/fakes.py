"""
In-memory stand-ins for the repositories and the object store, plus sample data builders.

The repositories honor the same contracts as the PostgreSQL ones: claims are
atomic check-and-insert and transitions are conditional on the current status.
"""

import hashlib
import io
import json
import threading
from datetime import datetime, timedelta, timezone
from typing import Iterable, Sequence

from review_ingestion.core.exceptions import ObjectNotFoundError, PersistenceError
from review_ingestion.core.models import (
    RETRIABLE_STATUSES,
    FileRecord,
    ObjectSummary,
    ProcessingStatus,
    Provider,
    RawReview,
    Review,
)
from review_ingestion.core.repositories import (
    FileRecordRepository,
    ProviderRepository,
    ReviewRepository,
)
from review_ingestion.storage.object_store import is_candidate


class MutableClock:
    """Callable clock that tests can move forward"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


# =======================
# REPOSITORIES
# =======================

class InMemoryFileRecordRepository(FileRecordRepository):
    def __init__(self):
        self.records: dict[int, FileRecord] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def _latest(self, source_key: str, fingerprint: str) -> FileRecord | None:
        matches = [
            r for r in self.records.values()
            if r.source_key == source_key and r.content_fingerprint == fingerprint
        ]
        return max(matches, key=lambda r: r.id) if matches else None

    def find_by_id(self, record_id: int) -> FileRecord | None:
        with self._lock:
            record = self.records.get(record_id)
            return record.model_copy() if record else None

    def find_by_key_and_fingerprint(self, source_key: str, fingerprint: str) -> FileRecord | None:
        with self._lock:
            record = self._latest(source_key, fingerprint)
            return record.model_copy() if record else None

    def exists_by_key_and_fingerprint(self, source_key: str, fingerprint: str) -> bool:
        return self.find_by_key_and_fingerprint(source_key, fingerprint) is not None

    def find_latest_by_keys(self, source_keys: Sequence[str]) -> list[FileRecord]:
        with self._lock:
            latest: dict[tuple[str, str], FileRecord] = {}
            for record in sorted(self.records.values(), key=lambda r: r.id):
                if record.source_key in source_keys:
                    latest[(record.source_key, record.content_fingerprint)] = record
            return [r.model_copy() for r in latest.values()]

    def insert_if_absent(self, record: FileRecord) -> FileRecord | None:
        with self._lock:
            for existing in self.records.values():
                if (
                    existing.source_key == record.source_key
                    and existing.content_fingerprint == record.content_fingerprint
                    and existing.status not in RETRIABLE_STATUSES
                ):
                    return None
            stored = record.model_copy(update={"id": self._next_id})
            self.records[stored.id] = stored
            self._next_id += 1
            return stored.model_copy()

    def transition(
        self,
        record_id: int,
        from_statuses: Iterable[ProcessingStatus],
        to_status: ProcessingStatus,
        now: datetime,
        records_processed: int | None = None,
        records_failed: int | None = None,
        error_message: str | None = None,
    ) -> FileRecord | None:
        with self._lock:
            record = self.records.get(record_id)
            if record is None or record.status not in set(from_statuses):
                return None
            update = {"status": to_status, "updated_at": now}
            if to_status is ProcessingStatus.IN_PROGRESS:
                update["processing_started_at"] = now
            if to_status.is_terminal:
                update["processing_completed_at"] = now
            if records_processed is not None:
                update["records_processed"] = records_processed
            if records_failed is not None:
                update["records_failed"] = records_failed
            if error_message is not None:
                update["error_message"] = error_message
            updated = record.model_copy(update=update)
            self.records[record_id] = updated
            return updated.model_copy()

    def find_by_status(self, status: ProcessingStatus | None, limit: int = 100) -> list[FileRecord]:
        with self._lock:
            records = sorted(self.records.values(), key=lambda r: r.id, reverse=True)
            if status is not None:
                records = [r for r in records if r.status is status]
            return [r.model_copy() for r in records[:limit]]

    def find_stuck(self, started_before: datetime) -> list[FileRecord]:
        with self._lock:
            return [
                r.model_copy() for r in self.records.values()
                if r.status is ProcessingStatus.IN_PROGRESS
                and r.processing_started_at is not None
                and r.processing_started_at < started_before
            ]

    def fail_stuck(self, started_before: datetime, message: str, now: datetime) -> list[FileRecord]:
        with self._lock:
            recovered = []
            for record_id, record in list(self.records.items()):
                if (
                    record.status is ProcessingStatus.IN_PROGRESS
                    and record.processing_started_at is not None
                    and record.processing_started_at < started_before
                ):
                    updated = record.model_copy(update={
                        "status": ProcessingStatus.FAILED,
                        "error_message": message,
                        "updated_at": now,
                        "processing_completed_at": now,
                    })
                    self.records[record_id] = updated
                    recovered.append(updated.model_copy())
            return recovered

    def delete_terminal_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            doomed = [
                record_id for record_id, r in self.records.items()
                if r.status.is_terminal and (r.processing_completed_at or r.updated_at) < cutoff
            ]
            for record_id in doomed:
                del self.records[record_id]
            return len(doomed)

    def count_by_status(self, provider: str | None = None) -> dict[ProcessingStatus, int]:
        with self._lock:
            counts: dict[ProcessingStatus, int] = {}
            for record in self.records.values():
                if provider is not None and record.provider != provider:
                    continue
                counts[record.status] = counts.get(record.status, 0) + 1
            return counts


class InMemoryProviderRepository(ProviderRepository):
    def __init__(self):
        self.providers: dict[str, Provider] = {}
        self.create_calls = 0
        self._lock = threading.Lock()

    def find_by_code(self, code: str) -> Provider | None:
        with self._lock:
            return self.providers.get(code)

    def get_or_create(self, code: str, name: str) -> Provider:
        with self._lock:
            self.create_calls += 1
            if code not in self.providers:
                self.providers[code] = Provider(id=len(self.providers) + 1, code=code, name=name)
            return self.providers[code]


class InMemoryReviewRepository(ReviewRepository):
    """
    Review storage keyed by (provider_id, provider_external_id).

    fail_on_call makes the n-th insert_many call (1-based) raise PersistenceError
    without storing anything from that call.
    """

    def __init__(self, fail_on_call: int | None = None):
        self.reviews: dict[tuple[int, str], Review] = {}
        self.insert_calls = 0
        self.fail_on_call = fail_on_call
        self._lock = threading.Lock()

    def exists_by_external_id(self, provider_id: int, external_id: str) -> bool:
        with self._lock:
            return (provider_id, external_id) in self.reviews

    def insert_many(self, reviews: Sequence[Review]) -> int:
        with self._lock:
            self.insert_calls += 1
            if self.fail_on_call is not None and self.insert_calls == self.fail_on_call:
                raise PersistenceError("connection reset by peer")
            inserted = 0
            for review in reviews:
                key = (review.provider_id, review.provider_external_id)
                if key not in self.reviews:
                    self.reviews[key] = review
                    inserted += 1
            return inserted

    def count(self) -> int:
        with self._lock:
            return len(self.reviews)


# =======================
# OBJECT STORE
# =======================

class FakeBody:
    """Minimal StreamingBody: line iteration and close tracking"""

    def __init__(self, content: bytes):
        self._buffer = io.BytesIO(content)
        self.closed = False

    @property
    def bytes_read(self) -> int:
        return self._buffer.tell()

    def iter_lines(self):
        for line in self._buffer:
            yield line.rstrip(b"\r\n")

    def close(self) -> None:
        self.closed = True


class FakeObjectStore:
    """Object store over a dict, with hooks for injecting failures"""

    def __init__(self, prefix: str = "reviews/"):
        self.prefix = prefix
        self.objects: dict[str, tuple[bytes, str, datetime]] = {}
        self.list_error: Exception | None = None
        self.download_errors: dict[str, Exception] = {}
        self.bodies: list[FakeBody] = []
        self.downloads: list[str] = []
        self._lock = threading.Lock()

    def put(
        self,
        key: str,
        content: str | bytes | list[str],
        fingerprint: str | None = None,
        last_modified: datetime | None = None,
    ) -> ObjectSummary:
        if isinstance(content, list):
            content = "\n".join(content) + "\n"
        if isinstance(content, str):
            content = content.encode("utf-8")
        fingerprint = fingerprint or hashlib.md5(content).hexdigest()
        last_modified = last_modified or datetime(2025, 5, 1, tzinfo=timezone.utc)
        self.objects[key] = (content, fingerprint, last_modified)
        return self._summary(key)

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    def _summary(self, key: str) -> ObjectSummary:
        content, fingerprint, last_modified = self.objects[key]
        return ObjectSummary(key=key, size=len(content), last_modified=last_modified, fingerprint=fingerprint)

    def list_candidates(self, prefix: str | None = None):
        if self.list_error is not None:
            raise self.list_error
        prefix = self.prefix if prefix is None else prefix
        for key in sorted(self.objects):
            if key.startswith(prefix) and is_candidate(key, len(self.objects[key][0])):
                yield self._summary(key)

    def metadata(self, key: str) -> ObjectSummary:
        if key not in self.objects:
            raise ObjectNotFoundError(key, "Object not found (NoSuchKey)")
        return self._summary(key)

    def exists(self, key: str) -> bool:
        return key in self.objects

    def download(self, key: str) -> FakeBody:
        if key in self.download_errors:
            raise self.download_errors[key]
        if key not in self.objects:
            raise ObjectNotFoundError(key, "Object not found (NoSuchKey)")
        body = FakeBody(self.objects[key][0])
        with self._lock:
            self.bodies.append(body)
            self.downloads.append(key)
        return body


# =======================
# SAMPLE DATA
# =======================

def make_review_dict(
    review_id: int = 948353737,
    hotel_id: int = 10984,
    provider: str = "Agoda",
    rating: float = 6.4,
    review_date: str = "2025-04-10T05:37:00+07:00",
    comments: str = "Hotel room is basic and very small.",
    **comment_overrides,
) -> dict:
    """Build one review line as delivered by the providers"""
    comment = {
        "isShowReviewResponse": False,
        "hotelReviewId": review_id,
        "providerId": 332,
        "rating": rating,
        "checkInDateMonthAndYear": "April 2025",
        "formattedRating": str(rating),
        "formattedReviewDate": "April 10, 2025",
        "ratingText": "Good",
        "reviewComments": comments,
        "reviewNegatives": "",
        "reviewPositives": "",
        "reviewProviderText": provider,
        "reviewTitle": "Perfect location and safe",
        "translateSource": "en",
        "reviewDate": review_date,
        "reviewerInfo": {
            "countryName": "India",
            "displayMemberName": "********",
            "reviewGroupName": "Solo traveler",
            "roomTypeName": "Premium Deluxe Double Room",
            "countryId": 35,
            "lengthOfStay": 2,
            "reviewGroupId": 3,
            "reviewerReviewedCount": 0,
            "isExpertReviewer": False,
        },
    }
    comment.update(comment_overrides)
    return {
        "hotelId": hotel_id,
        "platform": provider,
        "hotelName": "Oscar Saigon Hotel",
        "comment": comment,
        "overallByProviders": [
            {"providerId": 332, "provider": provider, "overallScore": 7.9, "reviewCount": 7070},
        ],
    }


def make_line(**kwargs) -> str:
    return json.dumps(make_review_dict(**kwargs))


def make_raw(line_number: int = 1, **kwargs) -> RawReview:
    """Build a RawReview the way the parser would"""
    data = make_review_dict(**kwargs)
    return RawReview(
        hotel_id=data["hotelId"],
        provider=data["platform"],
        hotel_name=data["hotelName"],
        comment=data["comment"],
        overall_by_providers=data["overallByProviders"],
        line_number=line_number,
        raw_json=json.dumps(data),
    )
