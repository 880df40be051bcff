# SPDX-License-Identifier: MIT
"""Inverse pass restoring the flat legacy shape.

Rollback is lossy: ``language``, ``tags``, ``academicGrade`` and
``discountPercent`` are removed and the effective price becomes the flat
price. It refuses to start while the collection holds both shapes, because
that means a forward migration is unfinished or still running.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable

import logfire

from catalog_migration.constants import MIGRATED_ONLY_FIELDS
from catalog_migration.core.shape import (
    LEGACY_FILTER,
    MIGRATED_FILTER,
    describe_malformation,
    detect_shape,
)
from catalog_migration.core.transform import rollback_item
from catalog_migration.engine.driver import DocumentPass, PlannedWrite, RunOptions
from catalog_migration.errors import MalformedDocumentError, RollbackRefusedError
from catalog_migration.io_utils.failures import FailureReportWriter
from catalog_migration.models import DocumentShape, MigratedItem


class RollbackDriver(DocumentPass):
    """Move migrated documents back to the legacy shape in place."""

    direction = "rollback"
    target_filter = LEGACY_FILTER

    def __init__(
        self,
        collection: Any,
        options: RunOptions | None = None,
        *,
        force: bool = False,
        failure_writer: FailureReportWriter | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        super().__init__(collection, options, failure_writer=failure_writer, echo=echo)
        self.force = force

    async def prepare(self) -> None:
        """Refuse to run on a mixed collection unless forced.

        Raises:
            RollbackRefusedError: If legacy and migrated documents coexist and
                ``force`` is not set. Dry runs only log a warning.
        """
        if self.force:
            logfire.warning("Rollback forced, skipping mixed-state check")
            return
        legacy = await self._call(
            lambda: self.collection.count_documents(LEGACY_FILTER), "count legacy"
        )
        migrated = await self._call(
            lambda: self.collection.count_documents(MIGRATED_FILTER), "count migrated"
        )
        if legacy and migrated:
            if self.options.dry_run:
                logfire.warning(
                    "Collection is in a mixed state; a live rollback would be refused",
                    legacy=legacy,
                    migrated=migrated,
                )
                return
            raise RollbackRefusedError(legacy, migrated)

    def plan(self, document: Mapping[str, Any]) -> PlannedWrite | None:
        shape = detect_shape(document)
        if shape is DocumentShape.LEGACY:
            return None
        if shape is DocumentShape.MALFORMED:
            raise MalformedDocumentError(
                document.get("_id"), describe_malformation(document)
            )
        legacy = rollback_item(MigratedItem.model_validate(document))
        return PlannedWrite(
            document=document,
            filter={"_id": document.get("_id"), **MIGRATED_FILTER},
            update={
                "$set": legacy.shape_fields(),
                "$unset": {field: "" for field in MIGRATED_ONLY_FIELDS},
            },
        )


__all__ = ["RollbackDriver"]
