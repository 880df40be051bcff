"""In-place migration of catalog items to the nested multilingual shape."""

from .errors import (
    CatalogMigrationError,
    FatalConnectionError,
    IndexConflictError,
    MalformedDocumentError,
    MissingRequiredFieldError,
    RollbackRefusedError,
    TransientStoreError,
)
from .models import Language, LegacyItem, MigratedItem, RunSummary

__all__ = [
    "CatalogMigrationError",
    "FatalConnectionError",
    "IndexConflictError",
    "Language",
    "LegacyItem",
    "MalformedDocumentError",
    "MigratedItem",
    "MissingRequiredFieldError",
    "RollbackRefusedError",
    "RunSummary",
    "TransientStoreError",
]
