# SPDX-License-Identifier: MIT
"""Exception hierarchy for catalog migration.

Per-document errors (:class:`MissingRequiredFieldError`,
:class:`MalformedDocumentError`, :class:`TransientStoreError`) are counted and
reported by the drivers while the run continues. Structural errors
(:class:`FatalConnectionError`, :class:`RollbackRefusedError`) abort the run.
"""

from __future__ import annotations

from typing import Any


class CatalogMigrationError(Exception):
    """Base class for all catalog migration errors."""


class MissingRequiredFieldError(CatalogMigrationError, ValueError):
    """A nested ``title`` or ``price`` lacks a mandatory sub-field."""

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}")
        self.field = field


class MalformedDocumentError(CatalogMigrationError):
    """The shape detector could not classify a stored document."""

    def __init__(self, document_id: Any, reason: str) -> None:
        super().__init__(f"Malformed document {document_id}: {reason}")
        self.document_id = document_id
        self.reason = reason


class TransientStoreError(CatalogMigrationError):
    """A read or write kept failing after all retry attempts."""

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(f"{message} (after {attempts} attempts)")
        self.attempts = attempts


class FatalConnectionError(CatalogMigrationError):
    """The document store or the target collection cannot be reached."""


class IndexConflictError(CatalogMigrationError):
    """An index with the same name but a different definition exists."""

    def __init__(
        self,
        name: str,
        existing: dict[str, Any] | None = None,
        requested: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Index '{name}' already exists with a different definition")
        self.name = name
        self.existing = existing or {}
        self.requested = requested or {}


class RollbackRefusedError(CatalogMigrationError):
    """Rollback was requested while the collection holds both shapes."""

    def __init__(self, legacy: int, migrated: int) -> None:
        super().__init__(
            "Refusing to roll back a collection in a mixed state "
            f"({legacy} legacy, {migrated} migrated documents); "
            "finish the forward migration or pass --force"
        )
        self.legacy = legacy
        self.migrated = migrated


__all__ = [
    "CatalogMigrationError",
    "FatalConnectionError",
    "IndexConflictError",
    "MalformedDocumentError",
    "MissingRequiredFieldError",
    "RollbackRefusedError",
    "TransientStoreError",
]
