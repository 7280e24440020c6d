"""Command line entry point for the migration toolkit."""

import argparse
import logging
import sys
from typing import List, Optional

from .config import MigrationSettings, load_env_files
from .errors import MigrationError
from .orchestrator import FileMigrationOrchestrator, RowMigrationOrchestrator

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lms-migrate",
        description="Course Platform Migration Tool - move files and database rows between accounts",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--env-dir", help="Directory containing .env / .env.local (default: cwd)")
    parser.add_argument("--batch-size", type=int, help="Records per batch (default: 5)")
    parser.add_argument("--batch-delay", type=float, help="Seconds to wait between batches (default: 2)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # File migration
    files_parser = subparsers.add_parser("files", help="Re-upload files listed in a manifest")
    files_parser.add_argument("--manifest", help="Path to the JSON manifest (default: selected-rows.json)")
    files_parser.add_argument("--output", help="Path of the results file")

    # Row migration
    rows_parser = subparsers.add_parser("rows", help="Copy database rows with upserts")
    rows_parser.add_argument(
        "--table", action="append", dest="tables",
        help="Only migrate this table (repeatable, dependency order is kept)",
    )
    rows_parser.add_argument("--output", help="Path of the results file")
    rows_parser.add_argument(
        "--no-create-schema", action="store_true",
        help="Fail instead of creating missing destination tables",
    )

    # Count verification
    subparsers.add_parser("verify", help="Compare row counts between source and destination")

    return parser


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging once for the process."""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
    for noisy in ("urllib3", "requests"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_settings(args: argparse.Namespace) -> MigrationSettings:
    """Create the run configuration from the environment and the arguments."""
    load_env_files(args.env_dir)
    settings = MigrationSettings.from_env()

    if args.batch_size is not None:
        settings.batch_size = max(1, args.batch_size)
    if args.batch_delay is not None:
        settings.batch_delay = max(0.0, args.batch_delay)

    if getattr(args, "manifest", None):
        settings.manifest_path = args.manifest
    if getattr(args, "no_create_schema", False):
        settings.create_missing_schema = False
    if getattr(args, "output", None):
        if args.command == "files":
            settings.file_report_path = args.output
        else:
            settings.row_report_path = args.output

    logger.debug(f"Settings: {settings.to_dict()}")
    return settings


def run_files(settings: MigrationSettings) -> int:
    """Run the file migration."""
    report = FileMigrationOrchestrator(settings).run_migration()
    return report.exit_code


def run_rows(settings: MigrationSettings, tables: Optional[List[str]] = None) -> int:
    """Run the row migration."""
    orchestrator = RowMigrationOrchestrator(settings, tables=tables)
    try:
        report = orchestrator.run_migration()
    finally:
        orchestrator.dispose()
    return report.exit_code


def run_verify(settings: MigrationSettings) -> int:
    """Compare row counts only."""
    orchestrator = RowMigrationOrchestrator(settings)
    try:
        report = orchestrator.verify_only()
    finally:
        orchestrator.dispose()
    return 1 if report.mismatched_tables else 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.verbose, args.log_file)

    try:
        settings = build_settings(args)

        if args.command == "files":
            return run_files(settings)
        if args.command == "rows":
            return run_rows(settings, args.tables)
        return run_verify(settings)

    except MigrationError as e:
        logger.error(f"Migration failed: {e}", exc_info=True)
        return 1
    except Exception:
        logger.exception("Fatal error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
