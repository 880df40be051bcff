# SPDX-License-Identifier: MIT
"""Classify stored catalog documents by shape.

The classification is total: every document is exactly one of legacy,
migrated or malformed. It doubles as the idempotency gate for both drivers.
"""

from __future__ import annotations

from collections.abc import Mapping
from numbers import Real
from typing import Any

from catalog_migration.errors import MalformedDocumentError
from catalog_migration.models import DocumentShape, LegacyItem, MigratedItem

# Filters matching each shape on the server side.
LEGACY_FILTER: dict[str, Any] = {
    "title": {"$type": "string"},
    "price": {"$type": "number"},
}
MIGRATED_FILTER: dict[str, Any] = {
    "title.display": {"$exists": True},
    "price.original": {"$exists": True},
}


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def detect_shape(document: Mapping[str, Any]) -> DocumentShape:
    """Return the :class:`DocumentShape` of ``document``."""

    title = document.get("title")
    price = document.get("price")
    if isinstance(title, str) and _is_number(price):
        return DocumentShape.LEGACY
    if (
        isinstance(title, Mapping)
        and "display" in title
        and isinstance(price, Mapping)
        and "original" in price
    ):
        return DocumentShape.MIGRATED
    return DocumentShape.MALFORMED


def describe_malformation(document: Mapping[str, Any]) -> str:
    """Explain why ``document`` is neither legacy nor migrated."""

    title = document.get("title")
    price = document.get("price")
    if title is None:
        return "missing title"
    if price is None:
        return "missing price"
    if isinstance(title, Mapping) and "display" not in title:
        return "nested title without display"
    if isinstance(price, Mapping) and "original" not in price:
        return "nested price without original"
    return (
        f"unsupported combination: title is {type(title).__name__}, "
        f"price is {type(price).__name__}"
    )


def parse_document(document: Mapping[str, Any]) -> LegacyItem | MigratedItem:
    """Return the typed item for ``document``.

    Raises:
        MalformedDocumentError: If the document matches neither shape.
        pydantic.ValidationError: If the shape matches but values are invalid.
    """

    shape = detect_shape(document)
    if shape is DocumentShape.LEGACY:
        return LegacyItem.model_validate(document)
    if shape is DocumentShape.MIGRATED:
        return MigratedItem.model_validate(document)
    raise MalformedDocumentError(
        document.get("_id"), describe_malformation(document)
    )


__all__ = [
    "LEGACY_FILTER",
    "MIGRATED_FILTER",
    "describe_malformation",
    "detect_shape",
    "parse_document",
]
