# SPDX-License-Identifier: MIT
"""Tests for the shape-agnostic catalog read/write contract."""

from __future__ import annotations

import pytest
from conftest import FakeCollection, legacy_document, migrated_document

from catalog_migration.core.invariants import check_invariants
from catalog_migration.errors import MissingRequiredFieldError
from catalog_migration.store.catalog import CatalogStore


def _store(collection) -> CatalogStore:
    return CatalogStore(collection, retries=1, retry_base_delay=0)


@pytest.mark.asyncio()
async def test_create_legacy_input_persists_migrated_shape(collection) -> None:
    payload = await _store(collection).create_item(
        {"title": "ଓଡ଼ିଆ ସାହିତ୍ୟ", "price": 150, "author": "Writer"}
    )

    stored = collection.documents[0]
    assert stored["title"] == {"display": "ଓଡ଼ିଆ ସାହିତ୍ୟ", "odia": "ଓଡ଼ିଆ ସାହିତ୍ୟ"}
    assert stored["language"] == "Odia"
    assert stored["author"] == "Writer"
    assert check_invariants(stored) == []
    assert payload["id"] == str(stored["_id"])
    assert payload["finalPrice"] == 150
    assert payload["hasDiscount"] is False


@pytest.mark.asyncio()
async def test_create_with_explicit_language_is_self_consistent(collection) -> None:
    await _store(collection).create_item(
        {"title": {"display": "ଓଡ଼ିଆ"}, "price": 10, "language": "Odia"}
    )

    stored = collection.documents[0]
    assert stored["title"] == {"display": "ଓଡ଼ିଆ", "odia": "ଓଡ଼ିଆ"}
    assert check_invariants(stored) == []


@pytest.mark.asyncio()
async def test_create_migrated_input(collection) -> None:
    payload = await _store(collection).create_item(
        {
            "title": {"display": "Test"},
            "price": {"original": 100, "discounted": 80},
            "tags": ["x", "x"],
        }
    )

    stored = collection.documents[0]
    assert stored["price"]["discountPercent"] == 20
    assert stored["tags"] == ["x"]
    assert payload["savings"] == 20


@pytest.mark.asyncio()
async def test_create_rejects_missing_display(collection) -> None:
    with pytest.raises(MissingRequiredFieldError):
        await _store(collection).create_item({"title": {"english": "x"}, "price": 1})
    assert collection.documents == []


@pytest.mark.asyncio()
async def test_reads_are_shape_agnostic() -> None:
    legacy = legacy_document("Test", 100)
    migrated = migrated_document("Test", 100, discounted=80, percent=20)
    collection = FakeCollection([legacy, migrated])
    store = _store(collection)

    first = await store.get_item(str(legacy["_id"]))
    second = await store.get_item(migrated["_id"])

    assert (first["titleDisplay"], first["finalPrice"], first["hasDiscount"]) == (
        "Test",
        100,
        False,
    )
    assert (second["titleDisplay"], second["finalPrice"], second["savings"]) == (
        "Test",
        80,
        20,
    )
    assert first["title"]["display"] == second["title"]["display"]
    assert await store.get_item("missing") is None


@pytest.mark.asyncio()
async def test_list_items_respects_limit() -> None:
    collection = FakeCollection([legacy_document(f"Book {i}", i) for i in range(4)])

    items = await _store(collection).list_items(limit=3)

    assert len(items) == 3
    assert all("titleDisplay" in item for item in items)


@pytest.mark.asyncio()
async def test_apply_discount_migrates_legacy_item() -> None:
    legacy = legacy_document("Test", 200)
    collection = FakeCollection([legacy])

    payload = await _store(collection).apply_discount(legacy["_id"], 25)

    stored = collection.get(legacy["_id"])
    assert stored["price"] == {"original": 200, "discounted": 150, "discountPercent": 25}
    assert stored["title"]["display"] == "Test"
    assert payload["finalPrice"] == 150
    assert check_invariants(stored) == []


@pytest.mark.asyncio()
async def test_remove_discount() -> None:
    document = migrated_document("Test", 100, discounted=80, percent=20)
    collection = FakeCollection([document])

    payload = await _store(collection).remove_discount(document["_id"])

    assert collection.get(document["_id"])["price"]["discounted"] == 100
    assert payload["hasDiscount"] is False


@pytest.mark.asyncio()
async def test_apply_discount_validates_percent() -> None:
    document = migrated_document("Test", 100)
    collection = FakeCollection([document])
    with pytest.raises(ValueError):
        await _store(collection).apply_discount(document["_id"], 150)


@pytest.mark.asyncio()
async def test_concurrent_change_is_not_overwritten() -> None:
    legacy = legacy_document("Test", 200)
    collection = FakeCollection([legacy])

    def migrate_elsewhere(coll: FakeCollection) -> None:
        coll.get(legacy["_id"])["title"] = {"display": "Other", "english": "Other"}
        coll.get(legacy["_id"])["price"] = {"original": 1, "discounted": 1, "discountPercent": 0}

    collection.before_write = migrate_elsewhere

    assert await _store(collection).apply_discount(legacy["_id"], 10) is None
    assert collection.get(legacy["_id"])["title"]["display"] == "Other"


@pytest.mark.asyncio()
async def test_missing_item_returns_none(collection) -> None:
    assert await _store(collection).remove_discount("0123456789abcdef01234567") is None
