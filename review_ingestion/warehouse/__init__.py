"""
PostgreSQL warehouse: connection pool, schema and repositories.
"""

from .connection import DatabaseConnectionPool
from .file_records import PostgresFileRecordRepository
from .reviews import PostgresProviderRepository, PostgresReviewRepository
from .schema_mgmt import ensure_schema, load_schema_sql

__all__ = [
    "DatabaseConnectionPool",
    "PostgresFileRecordRepository",
    "PostgresProviderRepository",
    "PostgresReviewRepository",
    "ensure_schema",
    "load_schema_sql",
]
