"""Utility helpers shared across the catalog migration packages.

Exports:
    ErrorHandler: Interface for reporting errors.
    LoggingErrorHandler: Error handler that logs via ``logfire``.
"""

from .error_handler import ErrorHandler, LoggingErrorHandler

__all__ = ["ErrorHandler", "LoggingErrorHandler"]
