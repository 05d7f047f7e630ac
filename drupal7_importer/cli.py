"""Command line interface for the Drupal 7 importer."""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from .exceptions import ConfigurationError, MigrationError, SourceQueryError
from .models.config import DatabaseConfig, ImporterConfig
from .models.migration import ALL_ENTITY_TYPES, EntityKind, JobState, JobSummary, RunMode
from .orchestrator import MigrationOrchestrator
from .runner import LABELS

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_NO_ROWS = 2
EXIT_CANCELLED = 130

KINDS = {
    "posts": EntityKind.POST,
    "images": EntityKind.IMAGE,
    "users": EntityKind.USER,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="drupal7-importer",
        description="Migrate Drupal 7 posts, images and users into WordPress"
    )
    parser.add_argument("--config", help="Path to a JSON config file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--report-dir", help="Directory to write JSON run reports to")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Import
    import_parser = subparsers.add_parser("import", help="Import Drupal content into WordPress")
    import_parser.add_argument("kind", choices=sorted(KINDS) + ["all"], help="What to import")
    import_parser.add_argument(
        "--entity-type",
        default=ALL_ENTITY_TYPES,
        help="Comma-separated Drupal node types to import (posts only)"
    )
    _add_paging_arguments(import_parser)
    import_parser.add_argument("--d7db-host", help="Drupal database host (defaults to the WordPress host)")
    import_parser.add_argument("--d7db-user", help="Drupal database user (defaults to the WordPress user)")
    import_parser.add_argument("--d7db-pass", help="Drupal database password (defaults to the WordPress password)")
    import_parser.add_argument("--d7db-name", help="Drupal database name (defaults to 'drupal')")
    import_parser.add_argument(
        "--allow-duplicates",
        action="store_true",
        help="Import items even if an earlier run already imported them"
    )

    # Validate
    validate_parser = subparsers.add_parser("validate", help="Repair already imported content")
    validate_parser.add_argument("kind", choices=["posts"], help="What to validate")
    _add_paging_arguments(validate_parser)

    return parser


def _add_paging_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--per-page", type=int, help="Items per batch (-1 for the default of 100)")
    parser.add_argument("--limit", type=int, help="Maximum number of items to process")
    parser.add_argument("--offset", type=int, default=0, help="Number of items to skip")


def apply_overrides(config: ImporterConfig, args: argparse.Namespace) -> ImporterConfig:
    """Apply command line flags on top of the loaded configuration."""
    updates = {}
    if getattr(args, "allow_duplicates", False):
        updates["skip_existing"] = False

    d7_flags = {
        "host": getattr(args, "d7db_host", None),
        "user": getattr(args, "d7db_user", None),
        "password": getattr(args, "d7db_pass", None),
        "name": getattr(args, "d7db_name", None),
    }
    d7_flags = {key: value for key, value in d7_flags.items() if value is not None}
    if d7_flags:
        if config.drupal_db is None and config.wordpress_db.url:
            d7_flags.setdefault("name", config.drupal_db_name)
            updates["drupal_db"] = DatabaseConfig(**d7_flags)
        else:
            updates["drupal_db"] = config.resolved_drupal_db().model_copy(update=d7_flags)

    return config.model_copy(update=updates) if updates else config


def summary_line(summary: JobSummary) -> str:
    label = LABELS[EntityKind(summary.kind)]
    if summary.mode == RunMode.VALIDATE.value:
        return f"Validated {summary.records_succeeded} of {summary.total_count} {label}, updated {summary.records_updated}."
    line = f"Imported {summary.records_succeeded} of {summary.total_count} {label}."
    if summary.records_existing:
        line += f" {summary.records_existing} were already imported."
    if summary.records_failed:
        line += f" {summary.records_failed} failed."
    return line


def exit_code_for(summaries: List[JobSummary]) -> int:
    if any(s.state == JobState.CANCELLED for s in summaries):
        return EXIT_CANCELLED
    if summaries and all(s.total_count == 0 for s in summaries):
        return EXIT_NO_ROWS
    return EXIT_OK


def run_command(args: argparse.Namespace, orchestrator: MigrationOrchestrator) -> List[JobSummary]:
    """Run the jobs an ``import`` or ``validate`` invocation asks for."""
    job_args = {
        "page_size": args.per_page,
        "offset": args.offset,
        "limit": args.limit,
    }

    if args.command == "validate":
        job = orchestrator.create_job(EntityKind.POST, RunMode.VALIDATE, **job_args)
        return [orchestrator.run(job, args.report_dir)]

    if args.kind == "all":
        return orchestrator.run_all(args.report_dir, entity_type=args.entity_type, **job_args)

    job = orchestrator.create_job(KINDS[args.kind], RunMode.IMPORT, entity_type=args.entity_type, **job_args)
    return [orchestrator.run(job, args.report_dir)]


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    if not args.command:
        parser.print_help()
        return EXIT_ERROR

    try:
        config = apply_overrides(ImporterConfig.load(args.config), args)
        orchestrator = MigrationOrchestrator(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR

    def handle_sigint(signum, frame):
        logger.warning("Interrupt received; stopping after the current page (press Ctrl+C again to abort)")
        orchestrator.cancel()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous_handler = signal.signal(signal.SIGINT, handle_sigint)
    try:
        summaries = run_command(args, orchestrator)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR
    except SourceQueryError as e:
        logger.error(f"Source query failed: {e}")
        return EXIT_ERROR
    except MigrationError as e:
        logger.error(f"Migration failed: {e}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        logger.error("Aborted")
        return EXIT_CANCELLED
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    for summary in summaries:
        print(summary_line(summary))

    return exit_code_for(summaries)


if __name__ == "__main__":
    sys.exit(main())
