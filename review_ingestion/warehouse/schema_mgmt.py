"""
Schema management for the review warehouse.

Applies the bundled DDL (schema.sql). The statements are idempotent, so
ensure_schema can run on every deployment.
"""

from importlib import resources

from ..observability.logger import get_logger
from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

TABLES = ("providers", "file_records", "reviews")


def load_schema_sql() -> str:
    """Return the contents of the bundled schema.sql."""
    return resources.files(__package__).joinpath("schema.sql").read_text(encoding="utf-8")


def ensure_schema(pool: DatabaseConnectionPool) -> None:
    """
    Create tables and indexes if they do not exist.

    Args:
        pool: Open database connection pool
    """
    ddl = load_schema_sql()
    with pool.get_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(ddl)
        conn.commit()
    logger.info(f"Schema ensured for tables: {', '.join(TABLES)}")
