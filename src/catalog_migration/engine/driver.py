# SPDX-License-Identifier: MIT
"""Streaming passes over the catalog collection.

:class:`DocumentPass` owns the shared mechanics: a forward-only cursor,
batched unordered writes, bounded retries, progress lines and the final
summary. Subclasses only decide, per document, which update (if any) to issue.

Every update is guarded by the document's current shape, so a document that a
live writer changed behind the cursor is left alone and counted as skipped.
Two passes must not run concurrently against the same collection; that is an
operational precondition and is not enforced here.
"""

from __future__ import annotations

import sys
import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, ClassVar, Literal

import logfire
from pydantic import ValidationError
from pymongo import UpdateOne
from pymongo.errors import BulkWriteError, WriteError
from tqdm import tqdm  # type: ignore[import-untyped]

from catalog_migration.constants import PREVIEW_LIMIT
from catalog_migration.core.shape import (
    LEGACY_FILTER,
    MIGRATED_FILTER,
    describe_malformation,
    detect_shape,
)
from catalog_migration.core.transform import migrate_item
from catalog_migration.errors import (
    MalformedDocumentError,
    MissingRequiredFieldError,
    TransientStoreError,
)
from catalog_migration.io_utils.failures import FailureReportWriter
from catalog_migration.models import (
    DocumentShape,
    FailureRecord,
    LegacyItem,
    RunSummary,
)
from catalog_migration.observability import telemetry
from catalog_migration.store.retry import with_retry

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from catalog_migration.runtime.settings import Settings


@dataclass(frozen=True)
class RunOptions:
    """Explicit knobs for a single pass; nothing is read from global state."""

    dry_run: bool = False
    batch_size: int = 500
    progress_every: int = 100
    retries: int = 3
    retry_base_delay: float = 0.5
    request_timeout: float = 30.0
    show_progress: bool = False

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be a positive integer")
        if self.progress_every < 1:
            raise ValueError("progress_every must be a positive integer")
        if self.retries < 1:
            raise ValueError("retries must be a positive integer")

    @classmethod
    def from_settings(
        cls, settings: "Settings", *, dry_run: bool = False, show_progress: bool = False
    ) -> "RunOptions":
        """Return options derived from ``settings``."""
        return cls(
            dry_run=dry_run,
            batch_size=settings.batch_size,
            progress_every=settings.progress_every,
            retries=settings.retries,
            retry_base_delay=settings.retry_base_delay,
            request_timeout=settings.request_timeout,
            show_progress=show_progress,
        )


@dataclass(frozen=True)
class PlannedWrite:
    """A guarded single-document update waiting for the next batch flush."""

    document: Mapping[str, Any]
    filter: dict[str, Any]
    update: dict[str, Any]

    @property
    def document_id(self) -> str:
        return str(self.document.get("_id"))

    @property
    def operation(self) -> UpdateOne:
        return UpdateOne(self.filter, self.update)


class DocumentPass(ABC):
    """Stream every document of ``collection`` through :meth:`plan`."""

    direction: ClassVar[Literal["migrate", "rollback"]]
    #: Filter matching documents this pass has already written.
    target_filter: ClassVar[dict[str, Any]]

    def __init__(
        self,
        collection: Any,
        options: RunOptions | None = None,
        *,
        failure_writer: FailureReportWriter | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.collection = collection
        self.options = options or RunOptions()
        self.failure_writer = failure_writer
        self.echo = echo

    @abstractmethod
    def plan(self, document: Mapping[str, Any]) -> PlannedWrite | None:
        """Return the update for ``document`` or ``None`` when it is up to date.

        Raises:
            MalformedDocumentError: If the document matches neither shape.
            MissingRequiredFieldError: If a mandatory sub-field is absent.
            pydantic.ValidationError: If values violate the target shape.
        """

    async def prepare(self) -> None:
        """Run checks before streaming starts."""

    async def _call_with_attempt(self, factory, operation: str):  # noqa: ANN001
        return await with_retry(
            factory,
            request_timeout=self.options.request_timeout,
            attempts=self.options.retries,
            base=self.options.retry_base_delay,
            operation=operation,
        )

    async def _call(self, factory, operation: str):  # noqa: ANN001
        result, _ = await self._call_with_attempt(factory, operation)
        return result

    async def _count_applied(self, batch: list[PlannedWrite]) -> int:
        """Return how many documents of ``batch`` are already in the target shape."""
        ids = [planned.document.get("_id") for planned in batch]
        query = {"_id": {"$in": ids}, **self.target_filter}
        return await self._call(
            lambda: self.collection.count_documents(query), "count applied"
        )

    async def run(self) -> RunSummary:
        """Process the whole collection and return the run summary.

        Per-document failures are recorded and the run continues. Cursor and
        connection failures propagate; a later run resumes where this one
        stopped because up-to-date documents are skipped.
        """
        summary = RunSummary(direction=self.direction, dry_run=self.options.dry_run)
        started = time.perf_counter()
        with logfire.span(
            f"{self.direction}.run",
            attributes={
                "dry_run": self.options.dry_run,
                "batch_size": self.options.batch_size,
            },
        ):
            await self.prepare()
            progress = await self._create_progress()
            pending: list[PlannedWrite] = []
            try:
                cursor = self.collection.find({}, batch_size=self.options.batch_size)
                async for document in cursor:
                    summary.scanned += 1
                    self._process(document, summary, pending)
                    if len(pending) >= self.options.batch_size:
                        await self._flush(pending, summary)
                        pending = []
                    if progress is not None:
                        progress.update(1)
                    if summary.scanned % self.options.progress_every == 0:
                        self._report_progress(summary)
                if pending:
                    await self._flush(pending, summary)
            finally:
                if progress is not None:
                    progress.close()
                if self.failure_writer is not None:
                    self.failure_writer.write_manifest(self.direction)
            summary.elapsed_ms = int((time.perf_counter() - started) * 1000)
            logfire.info(
                "{direction} pass complete",
                direction=self.direction,
                scanned=summary.scanned,
                migrated=summary.migrated,
                skipped=summary.skipped,
                failed=summary.failed,
                elapsed_ms=summary.elapsed_ms,
            )
        return summary

    async def _create_progress(self) -> tqdm | None:
        """Create a progress bar on an interactive terminal if enabled."""
        if not self.options.show_progress or not sys.stderr.isatty():
            return None
        total = await self._call(
            lambda: self.collection.estimated_document_count(), "count documents"
        )
        return tqdm(total=total, desc=self.direction, file=sys.stderr)

    def _process(
        self,
        document: Mapping[str, Any],
        summary: RunSummary,
        pending: list[PlannedWrite],
    ) -> None:
        try:
            planned = self.plan(document)
        except MalformedDocumentError as exc:
            self._record_failure(summary, document, "malformed_document", str(exc))
        except MissingRequiredFieldError as exc:
            self._record_failure(summary, document, "missing_required_field", str(exc))
        except ValidationError as exc:
            self._record_failure(summary, document, "invalid_document", str(exc))
        else:
            if planned is None:
                summary.skipped += 1
            elif self.options.dry_run:
                summary.migrated += 1
                if summary.migrated <= PREVIEW_LIMIT:
                    self._preview(planned)
            else:
                pending.append(planned)

    def _preview(self, planned: PlannedWrite) -> None:
        logfire.info(
            "Planned change",
            direction=self.direction,
            document_id=planned.document_id,
            update=planned.update,
        )
        self.echo(f"[{self.direction}] preview {planned.document_id}: {planned.update}")

    async def _flush(self, batch: list[PlannedWrite], summary: RunSummary) -> None:
        operations = [planned.operation for planned in batch]
        try:
            result, attempt = await self._call_with_attempt(
                lambda: self.collection.bulk_write(operations, ordered=False),
                "bulk write",
            )
        except BulkWriteError as exc:
            errors = {error["index"]: error for error in exc.details.get("writeErrors", [])}
            self._count_written(
                summary, len(batch) - len(errors), exc.details.get("nMatched", 0)
            )
            for index, error in sorted(errors.items()):
                self._record_failure(
                    summary,
                    batch[index].document,
                    "write_error",
                    error.get("errmsg", "write error"),
                )
        except TransientStoreError as exc:
            logfire.warning(
                "Batch write failed, retrying per document",
                size=len(batch),
                error=str(exc),
            )
            for planned in batch:
                await self._write_one(planned, summary, replayed=True)
        else:
            matched = result.matched_count
            if attempt and matched < len(batch):
                # A lost reply may hide writes the server already applied.
                matched = max(matched, await self._count_applied(batch))
            self._count_written(summary, len(batch), matched)

    async def _write_one(
        self, planned: PlannedWrite, summary: RunSummary, *, replayed: bool = False
    ) -> None:
        try:
            result, attempt = await self._call_with_attempt(
                lambda: self.collection.update_one(planned.filter, planned.update),
                "update document",
            )
        except TransientStoreError as exc:
            self._record_failure(summary, planned.document, "transient_store_error", str(exc))
        except WriteError as exc:
            self._record_failure(summary, planned.document, "write_error", str(exc))
        else:
            matched = result.matched_count
            if (replayed or attempt) and not matched:
                matched = await self._count_applied([planned])
            self._count_written(summary, 1, matched)

    @staticmethod
    def _count_written(summary: RunSummary, attempted: int, matched: int) -> None:
        # Unmatched updates lost the shape guard to a concurrent writer.
        summary.migrated += matched
        summary.skipped += max(attempted - matched, 0)

    def _record_failure(
        self,
        summary: RunSummary,
        document: Mapping[str, Any],
        kind: str,
        message: str,
    ) -> None:
        document_id = str(document.get("_id"))
        summary.failed += 1
        summary.failures.append(
            FailureRecord(document_id=document_id, kind=kind, message=message)
        )
        logfire.warning(
            "Document failed",
            direction=self.direction,
            document_id=document_id,
            kind=kind,
            error=message,
        )
        if self.failure_writer is not None:
            self.failure_writer.write(
                self.direction,
                kind,
                document_id,
                {"document_id": document_id, "error": message, "document": dict(document)},
            )

    def _report_progress(self, summary: RunSummary) -> None:
        line = telemetry.format_progress(self.direction, summary)
        self.echo(line)
        logfire.info(
            "Progress",
            direction=self.direction,
            scanned=summary.scanned,
            migrated=summary.migrated,
            skipped=summary.skipped,
            failed=summary.failed,
        )


class MigrationDriver(DocumentPass):
    """Move legacy documents to the migrated shape in place."""

    direction = "migrate"
    target_filter = MIGRATED_FILTER

    def plan(self, document: Mapping[str, Any]) -> PlannedWrite | None:
        shape = detect_shape(document)
        if shape is DocumentShape.MIGRATED:
            return None
        if shape is DocumentShape.MALFORMED:
            raise MalformedDocumentError(
                document.get("_id"), describe_malformation(document)
            )
        migrated = migrate_item(LegacyItem.model_validate(document))
        return PlannedWrite(
            document=document,
            filter={"_id": document.get("_id"), **LEGACY_FILTER},
            update={"$set": migrated.shape_fields()},
        )


__all__ = ["DocumentPass", "MigrationDriver", "PlannedWrite", "RunOptions"]
