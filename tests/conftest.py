# SPDX-License-Identifier: MIT
"""Test configuration for catalog-migration.

Provides an in-memory asynchronous stand-in for a pymongo collection that
supports the filter, update and index operations the migration code issues.
"""

from __future__ import annotations

import copy
import random
from collections.abc import Callable, Mapping
from numbers import Real
from types import SimpleNamespace
from typing import Any

import logfire
import pytest
from bson import ObjectId
from pymongo.errors import AutoReconnect, BulkWriteError, OperationFailure, WriteError

from catalog_migration.observability import telemetry

_MISSING = object()


@pytest.fixture(autouse=True, scope="session")
def _configure_logfire():
    """Keep logfire local and quiet during tests."""

    logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture(autouse=True)
def _reset_telemetry():
    telemetry.reset()
    yield
    telemetry.reset()


def _get(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _type_matches(value: Any, type_name: str) -> bool:
    if type_name == "string":
        return isinstance(value, str)
    if type_name == "number":
        return isinstance(value, Real) and not isinstance(value, bool)
    if type_name == "object":
        return isinstance(value, Mapping)
    raise NotImplementedError(type_name)


def matches(document: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    """Return ``True`` when ``document`` satisfies the subset of MQL used here."""

    for path, condition in query.items():
        value = _get(document, path)
        if (
            isinstance(condition, Mapping)
            and condition
            and all(str(key).startswith("$") for key in condition)
        ):
            for operator, argument in condition.items():
                if operator == "$exists":
                    if (value is not _MISSING) != bool(argument):
                        return False
                elif operator == "$type":
                    if value is _MISSING or not _type_matches(value, argument):
                        return False
                elif operator == "$in":
                    if value is _MISSING or value not in argument:
                        return False
                else:
                    raise NotImplementedError(operator)
        elif value is _MISSING or value != condition:
            return False
    return True


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    target = document
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = copy.deepcopy(value)


def _unset_path(document: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    target: Any = document
    for part in parents:
        target = target.get(part) if isinstance(target, Mapping) else None
        if target is None:
            return
    target.pop(leaf, None)


def apply_update(document: dict[str, Any], update: Mapping[str, Any]) -> None:
    for path, value in update.get("$set", {}).items():
        _set_path(document, path, value)
    for path in update.get("$unset", {}):
        _unset_path(document, path)


class FakeCursor:
    """Async iterator over a snapshot taken when the cursor was opened."""

    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents
        self._limit: int | None = None

    def limit(self, count: int) -> "FakeCursor":
        self._limit = count
        return self

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        documents = self._documents
        if self._limit:
            documents = documents[: self._limit]
        for document in documents:
            yield copy.deepcopy(document)


class FakeCollection:
    """In-memory collection with failure injection hooks.

    Attributes:
        fail_bulk_writes: Number of upcoming ``bulk_write`` calls that raise
            :class:`AutoReconnect`.
        lost_bulk_replies: Number of upcoming ``bulk_write`` calls that apply
            their updates and then raise :class:`AutoReconnect`.
        fail_update_ids: Document ids whose ``update_one`` always raises
            :class:`AutoReconnect`.
        write_errors: Document ids rejected with a server write error.
        before_write: Callback invoked with the collection before each write,
            used to simulate a concurrent writer.
    """

    def __init__(self, documents: list[dict[str, Any]] | None = None) -> None:
        self.documents: list[dict[str, Any]] = []
        self.indexes: dict[str, dict[str, Any]] = {"_id_": {"key": [("_id", 1)], "v": 2}}
        self.fail_bulk_writes = 0
        self.lost_bulk_replies = 0
        self.fail_update_ids: set[Any] = set()
        self.write_errors: dict[Any, str] = {}
        self.before_write: Callable[["FakeCollection"], None] | None = None
        self.bulk_calls = 0
        self.update_calls = 0
        for document in documents or []:
            self.add(document)

    def add(self, document: Mapping[str, Any]) -> dict[str, Any]:
        stored = copy.deepcopy(dict(document))
        stored.setdefault("_id", ObjectId())
        self.documents.append(stored)
        return stored

    def get(self, document_id: Any) -> dict[str, Any] | None:
        for document in self.documents:
            if document["_id"] == document_id:
                return document
        return None

    def _notify_write(self) -> None:
        if self.before_write is not None:
            hook, self.before_write = self.before_write, None
            hook(self)

    def _update(self, query: Mapping[str, Any], update: Mapping[str, Any]) -> int:
        for document in self.documents:
            if matches(document, query):
                apply_update(document, update)
                return 1
        return 0

    # Reads -----------------------------------------------------------------
    def find(self, query: Mapping[str, Any] | None = None, **_kwargs: Any) -> FakeCursor:
        snapshot = [doc for doc in self.documents if matches(doc, query or {})]
        return FakeCursor(snapshot)

    async def find_one(self, query: Mapping[str, Any]) -> dict[str, Any] | None:
        for document in self.documents:
            if matches(document, query):
                return copy.deepcopy(document)
        return None

    async def count_documents(self, query: Mapping[str, Any]) -> int:
        return sum(1 for doc in self.documents if matches(doc, query))

    async def estimated_document_count(self) -> int:
        return len(self.documents)

    async def aggregate(self, pipeline: list[Mapping[str, Any]]) -> FakeCursor:
        documents = list(self.documents)
        for stage in pipeline:
            if "$sample" in stage:
                size = min(stage["$sample"]["size"], len(documents))
                documents = random.sample(documents, size)
            else:
                raise NotImplementedError(stage)
        return FakeCursor(documents)

    # Writes ----------------------------------------------------------------
    async def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        self._notify_write()
        stored = self.add(document)
        return SimpleNamespace(inserted_id=stored["_id"])

    async def update_one(
        self, query: Mapping[str, Any], update: Mapping[str, Any]
    ) -> SimpleNamespace:
        self.update_calls += 1
        self._notify_write()
        document_id = query.get("_id")
        if document_id in self.fail_update_ids:
            raise AutoReconnect("connection reset")
        if document_id in self.write_errors:
            raise WriteError(self.write_errors[document_id], 121, {})
        matched = self._update(query, update)
        return SimpleNamespace(matched_count=matched, modified_count=matched)

    async def bulk_write(self, requests: list[Any], ordered: bool = True) -> SimpleNamespace:
        self.bulk_calls += 1
        self._notify_write()
        if self.fail_bulk_writes:
            self.fail_bulk_writes -= 1
            raise AutoReconnect("connection reset")
        matched = 0
        errors = []
        for index, request in enumerate(requests):
            query, update = request._filter, request._doc
            document_id = query.get("_id")
            if document_id in self.write_errors:
                errors.append(
                    {"index": index, "code": 121, "errmsg": self.write_errors[document_id]}
                )
                continue
            matched += self._update(query, update)
        if errors:
            raise BulkWriteError(
                {
                    "writeErrors": errors,
                    "writeConcernErrors": [],
                    "nInserted": 0,
                    "nUpserted": 0,
                    "nMatched": matched,
                    "nModified": matched,
                    "nRemoved": 0,
                    "upserted": [],
                }
            )
        if self.lost_bulk_replies:
            self.lost_bulk_replies -= 1
            raise AutoReconnect("connection closed before reply")
        return SimpleNamespace(matched_count=matched, modified_count=matched)

    # Indexes ---------------------------------------------------------------
    async def index_information(self) -> dict[str, dict[str, Any]]:
        return copy.deepcopy(self.indexes)

    async def drop_index(self, name: str) -> None:
        if name not in self.indexes:
            raise OperationFailure(f"index not found with name [{name}]", code=27)
        del self.indexes[name]

    async def create_indexes(self, models: list[Any]) -> list[str]:
        names = []
        for model in models:
            spec = model.document
            name = spec["name"]
            pairs = list(spec["key"].items())
            if any(direction == "text" for _, direction in pairs):
                info = {
                    "key": [("_fts", "text"), ("_ftsx", 1)],
                    "weights": {field: 1 for field, _ in pairs},
                    "default_language": spec.get("default_language", "english"),
                    "language_override": spec.get("language_override", "language"),
                    "textIndexVersion": 3,
                    "v": 2,
                }
                for other, existing in self.indexes.items():
                    if other != name and existing["key"][0] == ("_fts", "text"):
                        raise OperationFailure(
                            "An equivalent index already exists with a different name",
                            code=85,
                        )
            else:
                info = {"key": pairs, "v": 2}
                if spec.get("sparse"):
                    info["sparse"] = True
            if name in self.indexes and self.indexes[name] != info:
                raise OperationFailure(
                    f"Index with name: {name} already exists with different options",
                    code=85,
                )
            self.indexes[name] = info
            names.append(name)
        return names


def legacy_document(title: str = "Test", price: float = 100, **extra: Any) -> dict[str, Any]:
    return {"_id": ObjectId(), "title": title, "price": price, **extra}


def migrated_document(
    display: str = "Test",
    original: float = 100,
    discounted: float | None = None,
    percent: float = 0,
    **extra: Any,
) -> dict[str, Any]:
    document = {
        "_id": ObjectId(),
        "title": {"display": display, "english": display},
        "price": {
            "original": original,
            "discounted": original if discounted is None else discounted,
            "discountPercent": percent,
        },
        "language": "English",
        "academicGrade": None,
        "tags": [],
    }
    document.update(extra)
    return document


@pytest.fixture()
def collection() -> FakeCollection:
    return FakeCollection()
