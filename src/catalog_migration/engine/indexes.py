# SPDX-License-Identifier: MIT
"""Reconcile secondary indexes with the migrated document shape.

Reconciliation is repeatable: legacy indexes that are already gone count as
dropped, and indexes that already exist with the same definition are left in
place. A same-named index with a different definition is a conflict for that
index only; the remaining indexes are still processed.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import logfire
from pymongo import ASCENDING, TEXT, IndexModel
from pymongo.errors import OperationFailure

from catalog_migration.errors import IndexConflictError
from catalog_migration.models import IndexReport
from catalog_migration.store.retry import with_retry

LEGACY_INDEXES = ("title_text", "title_1")

INDEX_NOT_FOUND = 27
# IndexOptionsConflict, IndexKeySpecsConflict
CONFLICT_CODES = frozenset({85, 86})


def migrated_indexes(
    text_default_language: str = "english",
    text_language_override: str = "textSearchLanguage",
) -> list[IndexModel]:
    """Return the index set required by the migrated shape.

    The text index must not read per-document languages from ``language``:
    its values (``English``, ``Odia``) are catalog data, not stemming
    directives, so ``language_override`` points at a field that is never set.
    """

    if text_language_override == "language":
        raise ValueError("text_language_override must not be the 'language' field")
    return [
        IndexModel(
            [("title.display", TEXT), ("author", TEXT), ("description", TEXT)],
            name="title_display_text",
            default_language=text_default_language,
            language_override=text_language_override,
        ),
        IndexModel([("title.english", ASCENDING)], name="title_english_1", sparse=True),
        IndexModel([("title.odia", ASCENDING)], name="title_odia_1", sparse=True),
        IndexModel([("tags", ASCENDING)], name="tags_1", sparse=True),
        IndexModel([("language", ASCENDING)], name="language_1"),
        IndexModel([("price.discounted", ASCENDING)], name="price_discounted_1"),
    ]


def _key_pairs(key: Any) -> list[tuple[str, Any]]:
    if isinstance(key, Mapping):
        return list(key.items())
    return [(field, direction) for field, direction in key]


def index_signature(spec: Mapping[str, Any]) -> tuple[Any, ...]:
    """Return a comparable definition of an index.

    ``spec`` is either an :class:`IndexModel` document or an entry of
    ``index_information()``. Text indexes are reported by the server as
    ``_fts``/``_ftsx`` keys plus ``weights``, so they are compared by their
    weighted fields and language options instead.
    """

    pairs = _key_pairs(spec.get("key", ()))
    if any(direction == "text" for _, direction in pairs):
        weights = spec.get("weights") or {
            field: 1 for field, direction in pairs if direction == "text"
        }
        return (
            "text",
            frozenset(weights),
            spec.get("default_language", "english"),
            spec.get("language_override", "language"),
        )
    normalised = tuple(
        (field, direction if isinstance(direction, str) else int(direction))
        for field, direction in pairs
    )
    return ("plain", normalised, bool(spec.get("sparse", False)))


class IndexManager:
    """Drop legacy indexes and create the migrated index set."""

    def __init__(
        self,
        collection: Any,
        text_default_language: str = "english",
        text_language_override: str = "textSearchLanguage",
        *,
        indexes: Sequence[IndexModel] | None = None,
        legacy_indexes: Sequence[str] = LEGACY_INDEXES,
        request_timeout: float = 30.0,
        retries: int = 3,
        retry_base_delay: float = 0.5,
    ) -> None:
        self.collection = collection
        self.indexes = (
            list(indexes)
            if indexes is not None
            else migrated_indexes(text_default_language, text_language_override)
        )
        self.legacy_indexes = tuple(legacy_indexes)
        self.request_timeout = request_timeout
        self.retries = retries
        self.retry_base_delay = retry_base_delay
        self.conflicts: list[IndexConflictError] = []

    async def _call(self, factory, operation: str):  # noqa: ANN001
        result, _ = await with_retry(
            factory,
            request_timeout=self.request_timeout,
            attempts=self.retries,
            base=self.retry_base_delay,
            operation=operation,
        )
        return result

    async def reconcile(self) -> IndexReport:
        """Drop legacy indexes, then create every missing migrated index."""
        report = IndexReport()
        self.conflicts = []
        with logfire.span("indexes.reconcile"):
            for name in self.legacy_indexes:
                await self._drop(name, report)
            existing = await self._call(
                lambda: self.collection.index_information(), "list indexes"
            )
            for model in self.indexes:
                await self._ensure(model, existing, report)
        logfire.info(
            "Index reconciliation complete",
            dropped=report.dropped,
            created=report.created,
            existing=report.existing,
            conflicts=report.conflicts,
        )
        return report

    async def _drop(self, name: str, report: IndexReport) -> None:
        try:
            await self._call(lambda: self.collection.drop_index(name), "drop index")
        except OperationFailure as exc:
            if exc.code == INDEX_NOT_FOUND or "index not found" in str(exc).lower():
                logfire.debug("Legacy index already absent", index=name)
                report.absent.append(name)
                return
            logfire.warning("Could not drop legacy index", index=name, error=str(exc))
            report.drop_errors.append(f"{name}: {exc}")
            return
        logfire.info("Dropped legacy index", index=name)
        report.dropped.append(name)

    async def _ensure(
        self,
        model: IndexModel,
        existing: Mapping[str, Mapping[str, Any]],
        report: IndexReport,
    ) -> None:
        requested = model.document
        name = requested["name"]
        wanted = index_signature(requested)
        current = existing.get(name)
        if current is not None:
            if index_signature(current) == wanted:
                report.existing.append(name)
            else:
                self._conflict(name, dict(current), dict(requested), report)
            return
        for other, spec in existing.items():
            if other not in self.legacy_indexes and index_signature(spec) == wanted:
                logfire.info("Equivalent index exists", index=name, existing=other)
                report.existing.append(name)
                return
        try:
            await self._call(
                lambda: self.collection.create_indexes([model]), "create index"
            )
        except OperationFailure as exc:
            if exc.code not in CONFLICT_CODES:
                raise
            self._conflict(name, {"error": str(exc)}, dict(requested), report)
            return
        logfire.info("Created index", index=name)
        report.created.append(name)

    def _conflict(
        self,
        name: str,
        existing: dict[str, Any],
        requested: dict[str, Any],
        report: IndexReport,
    ) -> None:
        error = IndexConflictError(name, existing, requested)
        logfire.error("{error}", error=str(error))
        self.conflicts.append(error)
        report.conflicts.append(name)


__all__ = ["IndexManager", "LEGACY_INDEXES", "index_signature", "migrated_indexes"]
