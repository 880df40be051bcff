# SPDX-License-Identifier: MIT
"""Read-time compatibility projection for catalog items.

Readers never see which shape a document is stored in. The computed fields are
derived on every read, are never persisted and carry no cache.
"""

from __future__ import annotations

from collections.abc import Mapping
from numbers import Real
from typing import Any

from pydantic import ValidationError

from catalog_migration.core.shape import detect_shape
from catalog_migration.core.transform import migrate_item
from catalog_migration.models import CatalogView, DocumentShape, LegacyItem


def _number(value: Any) -> int | float | None:
    if isinstance(value, Real) and not isinstance(value, bool):
        return value
    return None


def _title_display(title: Any) -> str:
    if isinstance(title, str):
        return title
    if isinstance(title, Mapping):
        display = title.get("display")
        return display if isinstance(display, str) else ""
    return ""


def _prices(price: Any) -> tuple[int | float | None, int | float]:
    """Return ``(original, final)`` for either price shape."""

    flat = _number(price)
    if flat is not None:
        return flat, flat
    if isinstance(price, Mapping):
        original = _number(price.get("original"))
        discounted = _number(price.get("discounted"))
        if discounted is not None:
            return original, discounted
        if original is not None:
            return original, original
    return None, 0


def compute_view(document: Mapping[str, Any]) -> CatalogView:
    """Return the computed compatibility fields for ``document``."""

    original, final = _prices(document.get("price"))
    has_discount = original is not None and final < original
    savings = max(original - final, 0) if has_discount else 0
    return CatalogView(
        title_display=_title_display(document.get("title")),
        final_price=final,
        has_discount=has_discount,
        savings=savings,
    )


def _nested_fields(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return migrated shape fields for a legacy ``document`` without storing them."""

    try:
        return migrate_item(LegacyItem.model_validate(document)).shape_fields()
    except ValidationError:
        return {}


def project_item(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return the payload served to catalog readers.

    The payload carries ``id`` instead of ``_id``, the nested fields (legacy
    documents are transformed in memory) and the computed fields of
    :func:`compute_view`.
    """

    payload = {key: value for key, value in document.items() if key != "_id"}
    if "_id" in document:
        payload = {"id": str(document["_id"]), **payload}
    if detect_shape(document) is DocumentShape.LEGACY:
        payload.update(_nested_fields(document))
    payload.update(compute_view(document).model_dump(by_alias=True))
    return payload


__all__ = ["compute_view", "project_item"]
