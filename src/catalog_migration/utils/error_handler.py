"""Pluggable reporting of errors that are about to be re-raised."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import logfire


class ErrorHandler(ABC):
    """Interface for reporting errors.

    Handlers only report; the caller still raises. Implementations must not
    raise themselves.
    """

    @abstractmethod
    def handle(
        self, message: str, exc: BaseException | None = None, **context: Any
    ) -> None:
        """Record ``message`` with optional ``exc`` and structured ``context``."""


class LoggingErrorHandler(ErrorHandler):
    """Report errors as ``logfire`` error records."""

    def handle(
        self, message: str, exc: BaseException | None = None, **context: Any
    ) -> None:
        if exc is None:
            logfire.error("{message}", message=message, **context)
            return
        logfire.error(
            "{message}: {error}",
            message=message,
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
