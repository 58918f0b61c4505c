"""
Ingestion CLI: run the scheduler or trigger one-off pipeline operations.

Usage:
    review-ingest run [--no-metrics-server]
    review-ingest process-now
    review-ingest process-file --key <object_key>
    review-ingest recover-stuck
    review-ingest cleanup
    review-ingest init-db
"""

import argparse
import signal
import sys
import time

import psycopg

from ..app import Application, build_application
from ..config import load_settings
from ..core.exceptions import ReviewPipelineError
from ..observability.logger import configure_logging, get_logger
from ..observability.metrics import start_metrics_server
from ..warehouse.schema_mgmt import ensure_schema
from .common import add_common_arguments, create_pool, print_summary

logger = get_logger(__name__)

# Global flag for graceful shutdown
_shutdown_requested = False


def signal_handler(signum, frame):  # type: ignore[no-untyped-def]
    """
    Handle shutdown signals (SIGINT, SIGTERM) for graceful scheduler termination.

    Args:
        signum: Signal number
        frame: Current stack frame
    """
    global _shutdown_requested
    signal_name = signal.Signals(signum).name
    logger.info(f"Received {signal_name} signal, initiating graceful shutdown...")
    _shutdown_requested = True


def _build(args: argparse.Namespace) -> Application:
    settings = load_settings(args.config)
    return build_application(settings, pool=create_pool(args))


def run_command(args: argparse.Namespace) -> int:
    """Start the scheduler and block until SIGINT/SIGTERM."""
    global _shutdown_requested
    _shutdown_requested = False

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    app = _build(args)
    try:
        if not args.no_metrics_server:
            start_metrics_server(app.settings.metrics_port)
            logger.info(f"Metrics server listening on port {app.settings.metrics_port}")

        app.scheduler.start()
        print("Review ingestion scheduler running. Press Ctrl+C to stop.")

        while not _shutdown_requested:
            time.sleep(1)
    finally:
        app.close()

    print("Review ingestion scheduler stopped.")
    return 0


def process_now_command(args: argparse.Namespace) -> int:
    app = _build(args)
    try:
        summary = app.admin.trigger_processing_now()
        print_summary(summary)
        return 1 if summary.files_failed else 0
    finally:
        app.close()


def process_file_command(args: argparse.Namespace) -> int:
    app = _build(args)
    try:
        outcome = app.orchestrator.process_key(args.key)
        print(f"\n{outcome.key}: {outcome.status.value}")
        print(f"  Records processed: {outcome.records_processed}")
        print(f"  Records failed:    {outcome.records_failed}")
        if outcome.error:
            print(f"  Error: {outcome.error}")
        print()
        return 0 if outcome.error is None else 1
    finally:
        app.close()


def recover_stuck_command(args: argparse.Namespace) -> int:
    app = _build(args)
    try:
        recovered = app.orchestrator.recover_stuck_files()
        print(f"\nRecovered {len(recovered)} stuck file(s)")
        for record in recovered:
            print(f"  [{record.id}] {record.source_key}")
        print()
        return 0
    finally:
        app.close()


def cleanup_command(args: argparse.Namespace) -> int:
    app = _build(args)
    try:
        deleted = app.orchestrator.cleanup_old_files()
        print(f"\nDeleted {deleted} ledger record(s) older than {app.settings.ledger.retention_days:g} days\n")
        return 0
    finally:
        app.close()


def init_db_command(args: argparse.Namespace) -> int:
    pool = create_pool(args)
    try:
        ensure_schema(pool)
        print("Database schema is up to date.")
        return 0
    finally:
        pool.close()


COMMANDS = {
    "run": run_command,
    "process-now": process_now_command,
    "process-file": process_file_command,
    "recover-stuck": recover_stuck_command,
    "cleanup": cleanup_command,
    "init-db": init_db_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="review-ingest",
        description="Hotel review ingestion pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Create tables and indexes
  %(prog)s init-db

  # Run the scheduler until interrupted
  %(prog)s run --config config/pipeline.yaml

  # Process one object right away
  %(prog)s process-file --key reviews/2025/04/10/agoda_reviews.jl
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    run_parser = subparsers.add_parser("run", help="Run the processing and cleanup scheduler")
    run_parser.add_argument(
        "--no-metrics-server",
        action="store_true",
        help="Do not expose Prometheus metrics over HTTP"
    )
    subparsers.add_parser("process-now", help="Run one processing cycle immediately")
    file_parser = subparsers.add_parser("process-file", help="Process a single object")
    file_parser.add_argument("--key", required=True, help="Object key to process")
    subparsers.add_parser("recover-stuck", help="Fail files stuck IN_PROGRESS past the timeout")
    subparsers.add_parser("cleanup", help="Delete ledger records past retention")
    subparsers.add_parser("init-db", help="Apply the database schema")

    for subparser in subparsers.choices.values():
        add_common_arguments(subparser)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    configure_logging(level=args.log_level)

    try:
        return COMMANDS[args.command](args)
    except ReviewPipelineError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    except psycopg.OperationalError as e:
        logger.error(f"Database unavailable: {e}")
        print(f"Database error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
