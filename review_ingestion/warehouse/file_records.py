"""
PostgreSQL storage for the file tracking ledger.

Claims and state transitions are single statements, so the unique index
and the WHERE clause on status make them safe across concurrent workers
and instances.
"""

from datetime import datetime
from typing import Iterable, Sequence

import psycopg

from ..core.exceptions import PersistenceError
from ..core.models import TERMINAL_STATUSES, FileRecord, ProcessingStatus
from ..core.repositories import FileRecordRepository
from ..observability.logger import get_logger
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

COLUMNS = """
    id, source_key, content_fingerprint, file_size, last_modified, status,
    records_processed, records_failed, error_message, provider,
    created_at, updated_at, processing_started_at, processing_completed_at
"""

# Must match the predicate of uq_file_records_live_version
LIVE_PREDICATE = "status NOT IN ('FAILED', 'CANCELLED')"

TERMINAL_VALUES = [status.value for status in TERMINAL_STATUSES]


def _to_record(row: dict | None) -> FileRecord | None:
    return FileRecord(**row) if row else None


class PostgresFileRecordRepository(FileRecordRepository):
    """FileRecordRepository backed by the file_records table."""

    def __init__(self, pool: DatabaseConnectionPool):
        """
        Initialize repository.

        Args:
            pool: Database connection pool
        """
        self.pool = pool

    def find_by_id(self, record_id: int) -> FileRecord | None:
        rows = self.pool.execute_query(
            f"SELECT {COLUMNS} FROM file_records WHERE id = %s",
            (record_id,),
        )
        return _to_record(rows[0] if rows else None)

    def find_by_key_and_fingerprint(self, source_key: str, fingerprint: str) -> FileRecord | None:
        rows = self.pool.execute_query(
            f"""
            SELECT {COLUMNS} FROM file_records
            WHERE source_key = %s AND content_fingerprint = %s
            ORDER BY id DESC
            LIMIT 1
            """,
            (source_key, fingerprint),
        )
        return _to_record(rows[0] if rows else None)

    def exists_by_key_and_fingerprint(self, source_key: str, fingerprint: str) -> bool:
        rows = self.pool.execute_query(
            """
            SELECT EXISTS (
                SELECT 1 FROM file_records
                WHERE source_key = %s AND content_fingerprint = %s
            ) AS present
            """,
            (source_key, fingerprint),
        )
        return bool(rows[0]["present"])

    def find_latest_by_keys(self, source_keys: Sequence[str]) -> list[FileRecord]:
        if not source_keys:
            return []
        rows = self.pool.execute_query(
            f"""
            SELECT DISTINCT ON (source_key, content_fingerprint) {COLUMNS}
            FROM file_records
            WHERE source_key = ANY(%s)
            ORDER BY source_key, content_fingerprint, id DESC
            """,
            (list(source_keys),),
        )
        return [FileRecord(**row) for row in rows]

    def insert_if_absent(self, record: FileRecord) -> FileRecord | None:
        query = f"""
            INSERT INTO file_records (
                source_key, content_fingerprint, file_size, last_modified, status,
                records_processed, records_failed, error_message, provider,
                created_at, updated_at
            )
            VALUES (
                %(source_key)s, %(content_fingerprint)s, %(file_size)s, %(last_modified)s, %(status)s,
                %(records_processed)s, %(records_failed)s, %(error_message)s, %(provider)s,
                %(created_at)s, %(updated_at)s
            )
            ON CONFLICT (source_key, content_fingerprint) WHERE {LIVE_PREDICATE} DO NOTHING
            RETURNING {COLUMNS}
        """
        params = record.model_dump(exclude={"id", "processing_started_at", "processing_completed_at"})
        params["status"] = record.status.value

        try:
            rows = self.pool.execute_returning(query, params)
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert file record for {record.source_key}: {e}")
            raise PersistenceError(f"Failed to insert file record: {e}") from e

        return _to_record(rows[0] if rows else None)

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
        query = f"""
            UPDATE file_records SET
                status = %(to_status)s,
                updated_at = %(now)s,
                processing_started_at = COALESCE(%(started_at)s, processing_started_at),
                processing_completed_at = COALESCE(%(completed_at)s, processing_completed_at),
                records_processed = COALESCE(%(records_processed)s, records_processed),
                records_failed = COALESCE(%(records_failed)s, records_failed),
                error_message = COALESCE(%(error_message)s, error_message)
            WHERE id = %(id)s AND status = ANY(%(from_statuses)s)
            RETURNING {COLUMNS}
        """
        params = {
            "id": record_id,
            "to_status": to_status.value,
            "from_statuses": [status.value for status in from_statuses],
            "now": now,
            "started_at": now if to_status is ProcessingStatus.IN_PROGRESS else None,
            "completed_at": now if to_status.is_terminal else None,
            "records_processed": records_processed,
            "records_failed": records_failed,
            "error_message": error_message,
        }

        try:
            rows = self.pool.execute_returning(query, params)
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to move file record {record_id} to {to_status.value}: {e}")
            raise PersistenceError(f"Failed to update file record {record_id}: {e}") from e

        return _to_record(rows[0] if rows else None)

    def find_by_status(self, status: ProcessingStatus | None, limit: int = 100) -> list[FileRecord]:
        if status is None:
            rows = self.pool.execute_query(
                f"SELECT {COLUMNS} FROM file_records ORDER BY id DESC LIMIT %s",
                (limit,),
            )
        else:
            rows = self.pool.execute_query(
                f"SELECT {COLUMNS} FROM file_records WHERE status = %s ORDER BY id DESC LIMIT %s",
                (status.value, limit),
            )
        return [FileRecord(**row) for row in rows]

    def find_stuck(self, started_before: datetime) -> list[FileRecord]:
        rows = self.pool.execute_query(
            f"""
            SELECT {COLUMNS} FROM file_records
            WHERE status = 'IN_PROGRESS' AND processing_started_at < %s
            ORDER BY processing_started_at
            """,
            (started_before,),
        )
        return [FileRecord(**row) for row in rows]

    def fail_stuck(self, started_before: datetime, message: str, now: datetime) -> list[FileRecord]:
        query = f"""
            UPDATE file_records SET
                status = 'FAILED',
                error_message = %(message)s,
                updated_at = %(now)s,
                processing_completed_at = %(now)s
            WHERE status = 'IN_PROGRESS' AND processing_started_at < %(started_before)s
            RETURNING {COLUMNS}
        """
        try:
            rows = self.pool.execute_returning(
                query, {"message": message, "now": now, "started_before": started_before}
            )
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to recover stuck file records: {e}")
            raise PersistenceError(f"Failed to recover stuck file records: {e}") from e
        return [FileRecord(**row) for row in rows]

    def delete_terminal_older_than(self, cutoff: datetime) -> int:
        try:
            return self.pool.execute_command(
                """
                DELETE FROM file_records
                WHERE status = ANY(%s)
                  AND COALESCE(processing_completed_at, updated_at) < %s
                """,
                (TERMINAL_VALUES, cutoff),
            )
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to delete old file records: {e}")
            raise PersistenceError(f"Failed to delete old file records: {e}") from e

    def count_by_status(self, provider: str | None = None) -> dict[ProcessingStatus, int]:
        if provider is None:
            rows = self.pool.execute_query(
                "SELECT status, COUNT(*) AS count FROM file_records GROUP BY status"
            )
        else:
            rows = self.pool.execute_query(
                "SELECT status, COUNT(*) AS count FROM file_records WHERE provider = %s GROUP BY status",
                (provider,),
            )
        return {ProcessingStatus(row["status"]): int(row["count"]) for row in rows}
