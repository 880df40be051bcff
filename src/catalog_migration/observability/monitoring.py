# SPDX-License-Identifier: MIT
"""Helpers for enabling Pydantic Logfire telemetry."""

from __future__ import annotations

import os
from typing import Literal

import logfire

# Attribute names whose values may embed store credentials.
SCRUB_PATTERNS = ("mongodb_uri", "mongo_uri", "connection_string")

LogLevel = Literal["fatal", "error", "warn", "notice", "info", "debug", "trace"]


def _mask_token(value: str | None) -> str | None:
    if not value:
        return None
    return f"{value[:4]}..."


def init_logfire(token: str | None = None, min_log_level: LogLevel = "info") -> None:
    """Configure Logfire console output and store instrumentation.

    Telemetry leaves the process only when a token is available, either passed
    in or read from ``CATALOG_LOGFIRE_TOKEN``. Attributes named like a
    connection string are scrubbed before export.
    """

    key = token or os.getenv("CATALOG_LOGFIRE_TOKEN")
    logfire.configure(
        token=key,
        send_to_logfire="if-token-present",
        service_name="catalog-migration",
        console=logfire.ConsoleOptions(
            min_log_level=min_log_level,
            show_project_link=False,
        ),
        scrubbing=logfire.ScrubbingOptions(extra_patterns=list(SCRUB_PATTERNS)),
        min_level=min_log_level,
    )
    logfire.debug("Configured logfire", token=_mask_token(key), level=min_log_level)

    # Every bulk write and index command becomes a span under the pass span.
    for name in ("instrument_pydantic", "instrument_pymongo"):
        instrument = getattr(logfire, name, None)
        if instrument:
            instrument()
