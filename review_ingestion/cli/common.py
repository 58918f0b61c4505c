"""
Helpers shared by the command line tools.
"""

import argparse
from datetime import datetime

from ..core.models import FileRecord, RunSummary
from ..warehouse.connection import DatabaseConnectionPool


def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    """Config file, logging and database connection arguments (DB_* env vars when omitted)."""
    parser.add_argument(
        "--config",
        help="Path to pipeline YAML configuration (default: PIPELINE_CONFIG env var)"
    )
    parser.add_argument(
        "--log-level",
        help="Log level (default: LOG_LEVEL env var, then INFO)"
    )
    parser.add_argument("--db-host", help="Database host (default: DB_HOST or localhost)")
    parser.add_argument("--db-port", type=int, help="Database port (default: DB_PORT or 5432)")
    parser.add_argument("--db-name", help="Database name (default: DB_NAME or reviewsystem)")
    parser.add_argument("--db-user", help="Database user (default: DB_USER or reviewuser)")
    parser.add_argument("--db-password", help="Database password (default: DB_PASSWORD)")


def create_pool(args: argparse.Namespace) -> DatabaseConnectionPool:
    """Build and open a pool from command line arguments."""
    pool = DatabaseConnectionPool(
        host=args.db_host,
        port=args.db_port,
        database=args.db_name,
        user=args.db_user,
        password=args.db_password,
    )
    pool.open()
    return pool


def format_timestamp(ts: datetime | None) -> str:
    return ts.strftime("%Y-%m-%d %H:%M:%S") if ts else "N/A"


def print_record(record: FileRecord) -> None:
    print(f"\n{'=' * 60}")
    print(f"FILE RECORD {record.id}")
    print(f"{'=' * 60}")
    print(f"  Key:          {record.source_key}")
    print(f"  Fingerprint:  {record.content_fingerprint}")
    print(f"  Provider:     {record.provider or '-'}")
    print(f"  Status:       {record.status.value}")
    print(f"  Processed:    {record.records_processed}")
    print(f"  Failed:       {record.records_failed}")
    print(f"  Created:      {format_timestamp(record.created_at)}")
    print(f"  Started:      {format_timestamp(record.processing_started_at)}")
    print(f"  Completed:    {format_timestamp(record.processing_completed_at)}")
    if record.error_message:
        print(f"  Error:        {record.error_message}")
    print()


def print_summary(summary: RunSummary) -> None:
    print(f"\n{'=' * 60}")
    print("PROCESSING RUN SUMMARY")
    print(f"{'=' * 60}")
    print(f"  Files found:        {summary.files_found}")
    print(f"  Files completed:    {summary.files_completed}")
    print(f"  Files failed:       {summary.files_failed}")
    print(f"  Files skipped:      {summary.files_skipped}")
    print(f"  Records processed:  {summary.records_processed}")
    if summary.outcomes:
        print()
        print(f"  {'Status':<12} {'Processed':>9} {'Failed':>7}  Key")
        print(f"  {'-' * 56}")
        for outcome in summary.outcomes:
            print(
                f"  {outcome.status.value:<12} {outcome.records_processed:>9} "
                f"{outcome.records_failed:>7}  {outcome.key}"
            )
    print()
