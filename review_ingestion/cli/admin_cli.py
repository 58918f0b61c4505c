"""
Admin CLI for inspecting and steering file processing.

Usage:
    review-admin status --id <record_id>
    review-admin list [--status FAILED] [--limit 50]
    review-admin stop --id <record_id>
    review-admin retry --id <record_id>
    review-admin stats [--provider Agoda]
"""

import argparse
import sys

import psycopg

from ..admin import IngestionAdmin
from ..app import build_application
from ..config import load_settings
from ..core.exceptions import ReviewPipelineError
from ..core.models import ProcessingStatus, ProviderCode, ProviderStatistics
from ..observability.logger import configure_logging, get_logger
from .common import add_common_arguments, create_pool, format_timestamp, print_record

logger = get_logger(__name__)


def _with_admin(args: argparse.Namespace, action) -> int:
    app = build_application(load_settings(args.config), pool=create_pool(args))
    try:
        return action(app.admin)
    finally:
        app.close()


def status_command(args: argparse.Namespace) -> int:
    def show(admin: IngestionAdmin) -> int:
        print_record(admin.get_status(args.id))
        return 0
    return _with_admin(args, show)


def list_command(args: argparse.Namespace) -> int:
    status = ProcessingStatus(args.status) if args.status else None

    def show(admin: IngestionAdmin) -> int:
        records = admin.list_statuses(status, args.limit)
        if not records:
            print("\nNo file records found.\n")
            return 0

        print(f"\n{'ID':>6}  {'Status':<12} {'Processed':>9} {'Failed':>7}  {'Updated':<20} Key")
        print(f"{'-' * 90}")
        for record in records:
            print(
                f"{record.id:>6}  {record.status.value:<12} {record.records_processed:>9} "
                f"{record.records_failed:>7}  {format_timestamp(record.updated_at):<20} {record.source_key}"
            )
        print(f"\n{len(records)} record(s)\n")
        return 0
    return _with_admin(args, show)


def stop_command(args: argparse.Namespace) -> int:
    def stop(admin: IngestionAdmin) -> int:
        record = admin.stop(args.id)
        print(f"File record {record.id} is now {record.status.value}")
        return 0
    return _with_admin(args, stop)


def retry_command(args: argparse.Namespace) -> int:
    def retry(admin: IngestionAdmin) -> int:
        record = admin.retry(args.id)
        print(f"Created retry attempt {record.id} for {record.source_key} ({record.status.value})")
        return 0
    return _with_admin(args, retry)


def _print_statistics(stats: ProviderStatistics) -> None:
    print(f"\n{stats.provider or 'All providers'}")
    print(f"  Total:        {stats.total:>8}")
    print(f"  Pending:      {stats.pending:>8}")
    print(f"  In progress:  {stats.in_progress:>8}")
    print(f"  Completed:    {stats.completed:>8}")
    print(f"  Failed:       {stats.failed:>8}")
    print(f"  Skipped:      {stats.skipped:>8}")
    print(f"  Cancelled:    {stats.cancelled:>8}")
    print(f"  Success rate: {stats.success_rate:>7.1f}%")
    print(f"  Failure rate: {stats.failure_rate:>7.1f}%")


def stats_command(args: argparse.Namespace) -> int:
    def show(admin: IngestionAdmin) -> int:
        print(f"\n{'=' * 40}")
        print("FILE PROCESSING STATISTICS")
        print(f"{'=' * 40}")
        if args.provider:
            _print_statistics(admin.statistics(ProviderCode.from_name(args.provider).value))
        else:
            _print_statistics(admin.statistics())
            for code in ProviderCode:
                _print_statistics(admin.statistics(code.value))
        print()
        return 0
    return _with_admin(args, show)


COMMANDS = {
    "status": status_command,
    "list": list_command,
    "stop": stop_command,
    "retry": retry_command,
    "stats": stats_command,
}


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the admin CLI."""
    parser = argparse.ArgumentParser(
        prog="review-admin",
        description="Inspect and manage review file processing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Failed files
  %(prog)s list --status FAILED

  # Retry a failed file as a new attempt
  %(prog)s retry --id 42

  # Success rates for one provider
  %(prog)s stats --provider agoda
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    status_parser = subparsers.add_parser("status", help="Show one file record")
    status_parser.add_argument("--id", type=int, required=True, help="File record ID")

    list_parser = subparsers.add_parser("list", help="List file records")
    list_parser.add_argument(
        "--status",
        choices=[status.value for status in ProcessingStatus],
        help="Only records in this status"
    )
    list_parser.add_argument("--limit", type=int, default=100, help="Maximum rows (default: 100)")

    stop_parser = subparsers.add_parser("stop", help="Cancel a pending or running file")
    stop_parser.add_argument("--id", type=int, required=True, help="File record ID")

    retry_parser = subparsers.add_parser("retry", help="Retry a failed or cancelled file")
    retry_parser.add_argument("--id", type=int, required=True, help="File record ID")

    stats_parser = subparsers.add_parser("stats", help="Processing statistics")
    stats_parser.add_argument(
        "--provider",
        help=f"Provider name ({', '.join(ProviderCode.names())})"
    )

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
        logger.error(f"Invalid input: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except psycopg.OperationalError as e:
        logger.error(f"Database unavailable: {e}")
        print(f"Database error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
