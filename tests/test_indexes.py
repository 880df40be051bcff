# SPDX-License-Identifier: MIT
"""Tests for index reconciliation."""

from __future__ import annotations

import pytest
from conftest import FakeCollection
from pymongo.errors import OperationFailure

from catalog_migration.engine.indexes import (
    IndexManager,
    index_signature,
    migrated_indexes,
)

MIGRATED_NAMES = [
    "title_display_text",
    "title_english_1",
    "title_odia_1",
    "tags_1",
    "language_1",
    "price_discounted_1",
]


def _legacy_indexes(collection: FakeCollection) -> None:
    collection.indexes["title_text"] = {
        "key": [("_fts", "text"), ("_ftsx", 1)],
        "weights": {"title": 1},
        "default_language": "english",
        "language_override": "language",
    }
    collection.indexes["title_1"] = {"key": [("title", 1)]}


def _manager(collection) -> IndexManager:
    return IndexManager(collection, retries=1, retry_base_delay=0)


@pytest.mark.asyncio()
async def test_reconcile_drops_legacy_and_creates_migrated_indexes(collection) -> None:
    _legacy_indexes(collection)

    report = await _manager(collection).reconcile()

    assert report.dropped == ["title_text", "title_1"]
    assert report.created == MIGRATED_NAMES
    assert report.ok
    assert set(collection.indexes) == {"_id_", *MIGRATED_NAMES}
    assert collection.indexes["title_english_1"]["sparse"] is True
    assert collection.indexes["tags_1"]["sparse"] is True
    assert "sparse" not in collection.indexes["language_1"]


@pytest.mark.asyncio()
async def test_reconcile_twice_yields_same_index_set(collection) -> None:
    _legacy_indexes(collection)
    await _manager(collection).reconcile()
    first = dict(collection.indexes)

    report = await _manager(collection).reconcile()

    assert collection.indexes == first
    assert report.dropped == []
    assert report.absent == ["title_text", "title_1"]
    assert report.created == []
    assert report.existing == MIGRATED_NAMES
    assert report.ok


@pytest.mark.asyncio()
async def test_text_index_does_not_read_language_field(collection) -> None:
    await _manager(collection).reconcile()

    text = collection.indexes["title_display_text"]
    assert text["language_override"] != "language"
    assert text["language_override"] == "textSearchLanguage"
    assert text["default_language"] == "english"
    assert set(text["weights"]) == {"title.display", "author", "description"}


def test_language_field_cannot_be_the_override() -> None:
    with pytest.raises(ValueError):
        migrated_indexes(text_language_override="language")


@pytest.mark.asyncio()
async def test_conflicting_definition_does_not_stop_other_indexes(collection) -> None:
    collection.indexes["tags_1"] = {"key": [("tags", 1)]}
    manager = _manager(collection)

    report = await manager.reconcile()

    assert report.conflicts == ["tags_1"]
    assert not report.ok
    assert "tags_1" not in report.created
    assert "price_discounted_1" in report.created
    assert manager.conflicts[0].name == "tags_1"
    assert collection.indexes["tags_1"] == {"key": [("tags", 1)]}


@pytest.mark.asyncio()
async def test_text_index_with_language_override_is_a_conflict(collection) -> None:
    collection.indexes["title_display_text"] = {
        "key": [("_fts", "text"), ("_ftsx", 1)],
        "weights": {"title.display": 1, "author": 1, "description": 1},
        "default_language": "english",
        "language_override": "language",
    }

    report = await _manager(collection).reconcile()

    assert report.conflicts == ["title_display_text"]
    assert len(report.created) == 5


@pytest.mark.asyncio()
async def test_equivalent_index_under_other_name_counts_as_existing(collection) -> None:
    collection.indexes["language_idx"] = {"key": [("language", 1)]}

    report = await _manager(collection).reconcile()

    assert "language_1" in report.existing
    assert "language_1" not in collection.indexes


@pytest.mark.asyncio()
async def test_server_side_conflict_is_recorded(collection) -> None:
    async def refuse(_models):
        raise OperationFailure("Index already exists with a different name", code=85)

    collection.create_indexes = refuse

    report = await _manager(collection).reconcile()

    assert report.conflicts == MIGRATED_NAMES
    assert report.created == []


@pytest.mark.asyncio()
async def test_unexpected_drop_error_is_reported(collection) -> None:
    async def unauthorized(name):
        raise OperationFailure("not authorized", code=13)

    collection.drop_index = unauthorized

    report = await _manager(collection).reconcile()

    assert len(report.drop_errors) == 2
    assert report.created == MIGRATED_NAMES


def test_index_signature_matches_server_text_index() -> None:
    model = migrated_indexes()[0]
    server = {
        "key": [("_fts", "text"), ("_ftsx", 1)],
        "weights": {"title.display": 1, "author": 1, "description": 1},
        "default_language": "english",
        "language_override": "textSearchLanguage",
    }
    assert index_signature(server) == index_signature(model.document)
