"""Telemetry and monitoring helpers for catalog migration.

Exports:
    init_logfire: Configure Pydantic Logfire instrumentation.
    record_failure_report: Track creation of failure report files.
    print_summary: Output the summary of a migration or rollback pass.
    has_failure_reports: Indicate whether failure reports were written.
    reset: Clear stored failure report paths.
"""

from .monitoring import init_logfire
from .telemetry import (
    has_failure_reports,
    print_summary,
    record_failure_report,
    reset,
)

__all__ = [
    "init_logfire",
    "record_failure_report",
    "print_summary",
    "has_failure_reports",
    "reset",
]
