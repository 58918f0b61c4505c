"""
Persistence boundary for the ingestion core.

The ledger, batch processor and orchestrator only talk to these interfaces.
Implementations must enforce uniqueness and state-machine legality
atomically at the storage layer, not in application code.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Iterable, Sequence

from .models import FileRecord, ProcessingStatus, Provider, Review


class FileRecordRepository(ABC):
    """Storage for ledger entries."""

    @abstractmethod
    def find_by_id(self, record_id: int) -> FileRecord | None:
        """Return the record with this id, or None."""

    @abstractmethod
    def find_by_key_and_fingerprint(self, source_key: str, fingerprint: str) -> FileRecord | None:
        """Return the latest attempt for this file version, or None."""

    @abstractmethod
    def exists_by_key_and_fingerprint(self, source_key: str, fingerprint: str) -> bool:
        """Return True if any attempt exists for this file version."""

    @abstractmethod
    def find_latest_by_keys(self, source_keys: Sequence[str]) -> list[FileRecord]:
        """Return the latest attempt of every version of the given keys."""

    @abstractmethod
    def insert_if_absent(self, record: FileRecord) -> FileRecord | None:
        """
        Insert a new attempt unless a live attempt exists for the same version.

        A live attempt is one whose status is not FAILED or CANCELLED. This
        must be a single atomic check-and-insert.

        Returns:
            The stored record with its id, or None if a live attempt already exists
        """

    @abstractmethod
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
        """
        Atomically move a record to to_status if its status is in from_statuses.

        Sets processing_started_at when moving to IN_PROGRESS and
        processing_completed_at when moving to a terminal status.

        Returns:
            The updated record, or None if the id is unknown or the status did not match
        """

    @abstractmethod
    def find_by_status(self, status: ProcessingStatus | None, limit: int = 100) -> list[FileRecord]:
        """Return records with the given status (all when None), newest first."""

    @abstractmethod
    def find_stuck(self, started_before: datetime) -> list[FileRecord]:
        """Return IN_PROGRESS records whose processing started before the threshold."""

    @abstractmethod
    def fail_stuck(self, started_before: datetime, message: str, now: datetime) -> list[FileRecord]:
        """Atomically move stuck IN_PROGRESS records to FAILED and return them."""

    @abstractmethod
    def delete_terminal_older_than(self, cutoff: datetime) -> int:
        """Delete terminal records last changed before the cutoff; return the count."""

    @abstractmethod
    def count_by_status(self, provider: str | None = None) -> dict[ProcessingStatus, int]:
        """Return record counts per status, optionally for one provider."""


class ProviderRepository(ABC):
    """Storage for review providers."""

    @abstractmethod
    def find_by_code(self, code: str) -> Provider | None:
        """Return the provider with this code, or None."""

    @abstractmethod
    def get_or_create(self, code: str, name: str) -> Provider:
        """Resolve the provider by unique code, creating it if missing."""


class ReviewRepository(ABC):
    """Storage for canonical reviews."""

    @abstractmethod
    def exists_by_external_id(self, provider_id: int, external_id: str) -> bool:
        """Return True if the provider's review is already stored."""

    @abstractmethod
    def insert_many(self, reviews: Sequence[Review]) -> int:
        """
        Insert reviews in one transaction, skipping ones already stored.

        Returns:
            Number of rows actually inserted

        Raises:
            PersistenceError: If the write fails; nothing from this call is kept
        """
