# SPDX-License-Identifier: MIT
"""Command-line interface for migrating the catalog collection."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from importlib.metadata import PackageNotFoundError, version
from typing import Any, Coroutine, Sequence

import logfire
from pymongo.errors import PyMongoError

from catalog_migration.engine import (
    IndexManager,
    MigrationDriver,
    RollbackDriver,
    RunOptions,
    migrated_indexes,
    verify_collection,
)
from catalog_migration.errors import (
    FatalConnectionError,
    RollbackRefusedError,
    TransientStoreError,
)
from catalog_migration.io_utils.failures import FailureReportWriter
from catalog_migration.models import IndexReport, VerificationReport
from catalog_migration.observability import telemetry
from catalog_migration.observability.monitoring import init_logfire
from catalog_migration.runtime.settings import Settings, load_settings
from catalog_migration.store.connection import open_catalog

EXIT_OK = 0
EXIT_FAILURES = 1
EXIT_FATAL = 2

LOG_LEVELS = ["fatal", "error", "warn", "notice", "info", "debug", "trace"]
_LEVEL_ALIASES = {"warning": "warn", "critical": "fatal"}


def _print_version() -> None:
    """Print the installed package version."""
    try:
        pkg_version = version("catalog-migration")
    except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
        pkg_version = "unknown"
    print(f"catalog-migration {pkg_version}")


def _positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be a positive integer")
    return number


def _configure_logging(args: argparse.Namespace, settings: Settings) -> None:
    """Configure Logfire from the configured level and verbosity flags."""
    base = _LEVEL_ALIASES.get(settings.log_level.lower(), settings.log_level.lower())
    start = LOG_LEVELS.index(base) if base in LOG_LEVELS else LOG_LEVELS.index("info")
    index = start + args.verbose - args.quiet
    index = max(0, min(len(LOG_LEVELS) - 1, index))
    init_logfire(settings.logfire_token, LOG_LEVELS[index])


def _build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for ``catalog-migrate``."""
    parser = argparse.ArgumentParser(
        prog="catalog-migrate",
        description=(
            "Migrate catalog items between the flat legacy shape and the nested "
            "multilingual shape, reconcile indexes and verify the result. The "
            "connection string is read from MONGODB_URI."
        ),
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the catalog-migration version and exit.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML configuration file; defaults to config/app.yaml when present",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        help="Count and preview changes without writing anything",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--rollback",
        action="store_true",
        default=False,
        help="Restore the flat legacy shape (drops language, tags and grade)",
    )
    mode.add_argument(
        "--indexes-only",
        action="store_true",
        default=False,
        help="Only reconcile indexes",
    )
    mode.add_argument(
        "--verify-only",
        action="store_true",
        default=False,
        help="Only verify migrated documents",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Roll back even when legacy and migrated documents coexist",
    )
    parser.add_argument(
        "--batch-size",
        type=_positive_int,
        default=None,
        help="Writes per bulk request; overrides the configured value",
    )
    parser.add_argument(
        "--skip-indexes",
        action="store_true",
        default=False,
        help="Do not reconcile indexes after migrating",
    )
    parser.add_argument(
        "--skip-verify",
        action="store_true",
        default=False,
        help="Do not verify documents after migrating",
    )
    parser.add_argument(
        "--sample",
        type=_positive_int,
        default=None,
        help="Verify a random sample of N documents instead of all",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        default=False,
        help="Display a progress bar during execution",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity",
    )
    parser.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease logging verbosity",
    )
    return parser


def _apply_args_to_settings(args: argparse.Namespace, settings: Settings) -> Settings:
    """Return ``settings`` with CLI overrides applied."""
    update: dict[str, Any] = {}
    if args.batch_size is not None:
        update["batch_size"] = args.batch_size
    if args.sample is not None:
        update["verify_sample_size"] = args.sample
    return settings.model_copy(update=update) if update else settings


def _run_async_with_signals(coro: Coroutine[Any, Any, Any]) -> Any:
    """Execute ``coro`` and cancel it on SIGINT or SIGTERM."""

    async def _runner() -> Any:
        loop = asyncio.get_running_loop()
        task = asyncio.create_task(coro)
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, task.cancel)
        try:
            return await task
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    return asyncio.run(_runner())


async def _reconcile(
    collection: Any, settings: Settings, *, dry_run: bool
) -> IndexReport:
    if dry_run:
        indexes = migrated_indexes(
            settings.text_default_language, settings.text_language_override
        )
        print("INDEXES (dry run) would drop title_text, title_1 and ensure:")
        for model in indexes:
            print(f"  {model.document['name']}")
        return IndexReport()
    manager = IndexManager(
        collection,
        settings.text_default_language,
        settings.text_language_override,
        request_timeout=settings.request_timeout,
        retries=settings.retries,
        retry_base_delay=settings.retry_base_delay,
    )
    report = await manager.reconcile()
    telemetry.print_index_report(report)
    return report


async def _verify(collection: Any, settings: Settings) -> VerificationReport:
    report = await verify_collection(collection, settings.verify_sample_size)
    telemetry.print_verification_report(report)
    return report


async def _execute(args: argparse.Namespace, settings: Settings) -> int:
    """Run the requested passes and return the process exit code."""
    options = RunOptions.from_settings(
        settings, dry_run=args.dry_run, show_progress=args.progress
    )
    writer = None if args.dry_run else FailureReportWriter(settings.failure_report_dir)
    async with open_catalog(settings) as collection:
        if args.verify_only:
            report = await _verify(collection, settings)
            return EXIT_OK if report.ok else EXIT_FAILURES
        if args.indexes_only:
            index_report = await _reconcile(collection, settings, dry_run=args.dry_run)
            return EXIT_OK if index_report.ok else EXIT_FAILURES
        if args.rollback:
            rollback = RollbackDriver(
                collection, options, force=args.force, failure_writer=writer
            )
            summary = await rollback.run()
            telemetry.print_summary(summary)
            return EXIT_FAILURES if summary.failed else EXIT_OK

        summary = await MigrationDriver(collection, options, failure_writer=writer).run()
        telemetry.print_summary(summary)
        code = EXIT_FAILURES if summary.failed else EXIT_OK
        if args.dry_run:
            return code
        if not args.skip_indexes:
            index_report = await _reconcile(collection, settings, dry_run=False)
            if not index_report.ok:
                code = EXIT_FAILURES
        if not args.skip_verify:
            report = await _verify(collection, settings)
            if not report.ok:
                code = EXIT_FAILURES
        return code


def _execute_command(args: argparse.Namespace, settings: Settings) -> int:
    """Configure telemetry, run the command and map fatal errors to exit codes."""
    _configure_logging(args, settings)
    telemetry.reset()
    try:
        return _run_async_with_signals(_execute(args, settings))
    except RollbackRefusedError as exc:
        logfire.error("Rollback refused", error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL
    except (FatalConnectionError, TransientStoreError, PyMongoError) as exc:
        logfire.error("Run aborted", error=str(exc))
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL
    finally:
        if telemetry.has_failure_reports():
            print(
                f"failed documents written to {settings.failure_report_dir}",
                file=sys.stderr,
            )
        logfire.force_flush()


def main(argv: Sequence[str] | None = None) -> None:
    """Parse arguments, run the requested passes and exit with their status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.version:
        _print_version()
        return
    if args.force and not args.rollback:
        parser.error("--force only applies to --rollback")
    try:
        settings = load_settings(args.config)
    except RuntimeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(EXIT_FATAL) from exc
    settings = _apply_args_to_settings(args, settings)
    raise SystemExit(_execute_command(args, settings))


if __name__ == "__main__":  # pragma: no cover
    main()
