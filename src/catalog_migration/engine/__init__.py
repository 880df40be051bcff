"""Passes that migrate, roll back, index and verify the catalog collection."""

from .driver import DocumentPass, MigrationDriver, PlannedWrite, RunOptions
from .indexes import IndexManager, migrated_indexes
from .rollback import RollbackDriver
from .verification import verify_collection

__all__ = [
    "DocumentPass",
    "IndexManager",
    "MigrationDriver",
    "PlannedWrite",
    "RollbackDriver",
    "RunOptions",
    "migrated_indexes",
    "verify_collection",
]
