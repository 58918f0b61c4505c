"""
PostgreSQL storage for providers and reviews.

Review inserts use INSERT ... ON CONFLICT DO NOTHING on the
(provider_id, provider_external_id) constraint, so rerunning a file never
stores the same review twice.
"""

import json
from typing import Sequence

import psycopg

from ..core.exceptions import PersistenceError
from ..core.models import Provider, Review
from ..core.repositories import ProviderRepository, ReviewRepository
from ..observability.logger import get_logger
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

REVIEW_COLUMNS = (
    "provider_id", "provider_external_id", "hotel_id", "hotel_name", "rating",
    "review_title", "review_comments", "review_positives", "review_negatives",
    "review_date", "raw_review_date", "reviewer_name", "reviewer_country",
    "reviewer_group", "room_type", "length_of_stay", "helpful_votes", "total_votes",
    "is_verified", "language", "content_hash", "source_file_id", "source_line_number",
    "raw_data", "created_at",
)


class PostgresProviderRepository(ProviderRepository):
    """ProviderRepository backed by the providers table."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def find_by_code(self, code: str) -> Provider | None:
        rows = self.pool.execute_query(
            "SELECT id, code, name, active, created_at FROM providers WHERE code = %s",
            (code,),
        )
        return Provider(**rows[0]) if rows else None

    def get_or_create(self, code: str, name: str) -> Provider:
        # The no-op update makes RETURNING yield the row on conflict too
        query = """
            INSERT INTO providers (code, name)
            VALUES (%s, %s)
            ON CONFLICT (code) DO UPDATE SET code = EXCLUDED.code
            RETURNING id, code, name, active, created_at
        """
        try:
            rows = self.pool.execute_returning(query, (code, name))
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to resolve provider {code}: {e}")
            raise PersistenceError(f"Failed to resolve provider {code}: {e}") from e
        return Provider(**rows[0])


class PostgresReviewRepository(ReviewRepository):
    """ReviewRepository backed by the reviews table."""

    def __init__(self, pool: DatabaseConnectionPool):
        self.pool = pool

    def exists_by_external_id(self, provider_id: int, external_id: str) -> bool:
        rows = self.pool.execute_query(
            """
            SELECT EXISTS (
                SELECT 1 FROM reviews WHERE provider_id = %s AND provider_external_id = %s
            ) AS present
            """,
            (provider_id, external_id),
        )
        return bool(rows[0]["present"])

    def insert_many(self, reviews: Sequence[Review]) -> int:
        if not reviews:
            return 0

        placeholders = ", ".join(
            "%s::jsonb" if column == "raw_data" else "%s" for column in REVIEW_COLUMNS
        )
        query = f"""
            INSERT INTO reviews ({", ".join(REVIEW_COLUMNS)})
            VALUES ({placeholders})
            ON CONFLICT (provider_id, provider_external_id) DO NOTHING
        """

        data_tuples = []
        for review in reviews:
            values = review.model_dump(include=set(REVIEW_COLUMNS))
            values["raw_data"] = json.dumps(review.raw_data) if review.raw_data is not None else None
            data_tuples.append(tuple(values[column] for column in REVIEW_COLUMNS))

        try:
            with self.pool.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.executemany(query, data_tuples)
                    inserted = cur.rowcount
                conn.commit()
        except psycopg.DatabaseError as e:
            logger.error(f"Failed to insert {len(reviews)} reviews: {e}")
            raise PersistenceError(f"Failed to insert reviews: {e}") from e

        return max(inserted, 0)

    def count(self) -> int:
        rows = self.pool.execute_query("SELECT COUNT(*) AS count FROM reviews")
        return int(rows[0]["count"])
