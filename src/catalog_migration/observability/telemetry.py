# SPDX-License-Identifier: MIT
"""Track failure reports and render end-of-run summaries."""

from __future__ import annotations

from pathlib import Path
from typing import List

from catalog_migration.models import IndexReport, RunSummary, VerificationReport

_failure_paths: List[Path] = []


def record_failure_report(path: Path) -> None:
    """Track creation of a failure report ``path``."""

    _failure_paths.append(path)


def has_failure_reports() -> bool:
    """Return ``True`` when any failure report files were written."""

    return bool(_failure_paths)


def failure_report_paths() -> list[Path]:
    """Return the failure report files written so far."""

    return list(_failure_paths)


def reset() -> None:
    """Clear recorded failure report paths."""

    _failure_paths.clear()


def format_progress(direction: str, summary: RunSummary) -> str:
    """Return a human readable progress line for a running pass."""

    return (
        f"[{direction}] scanned={summary.scanned} migrated={summary.migrated} "
        f"skipped={summary.skipped} failed={summary.failed}"
    )


def print_summary(summary: RunSummary) -> None:
    """Write the run summary to ``stdout`` followed by its JSON form."""

    label = "ROLLBACK" if summary.direction == "rollback" else "MIGRATION"
    mode = " (dry run, nothing written)" if summary.dry_run else ""
    print(f"{label} SUMMARY{mode}")
    print(
        f"  scanned={summary.scanned} migrated={summary.migrated} "
        f"skipped={summary.skipped} failed={summary.failed} "
        f"elapsed={summary.elapsed_ms}ms"
    )
    if summary.failed:
        print(f"  {summary.failed} document(s) require manual attention")
        for failure in summary.failures:
            print(f"    {failure.document_id}: [{failure.kind}] {failure.message}")
    else:
        print("  no documents require manual attention")
    print(summary.to_json_summary())


def print_index_report(report: IndexReport) -> None:
    """Write an index reconciliation report to ``stdout``."""

    print(
        f"INDEXES dropped={report.dropped} absent={report.absent} "
        f"created={report.created} existing={report.existing}"
    )
    for name in report.conflicts:
        print(f"  conflict: index '{name}' exists with a different definition")
    for error in report.drop_errors:
        print(f"  drop error: {error}")


def print_verification_report(report: VerificationReport) -> None:
    """Write a verification report to ``stdout``."""

    status = "OK" if report.ok else "FAILED"
    print(
        f"VERIFICATION {status} checked={report.checked} "
        f"violations={len(report.violations)} "
        f"legacy_remaining={report.legacy_remaining} malformed={report.malformed}"
    )
    for language, count in sorted(report.language_counts.items()):
        print(f"  {language}: {count}")
    for violation in report.violations:
        print(f"  {violation.document_id}: {'; '.join(violation.problems)}")


__all__ = [
    "failure_report_paths",
    "format_progress",
    "has_failure_reports",
    "print_index_report",
    "print_summary",
    "print_verification_report",
    "record_failure_report",
    "reset",
]
