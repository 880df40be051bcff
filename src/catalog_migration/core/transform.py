# SPDX-License-Identifier: MIT
"""Pure transforms between the legacy and migrated catalog shapes.

The forward transform classifies the title language once and reuses the result
for both the ``language`` field and the title variant. The inverse transform is
lossy: ``language``, ``tags``, ``academicGrade`` and ``discountPercent`` are
dropped and only the effective price survives.
"""

from __future__ import annotations

from collections.abc import Mapping
from numbers import Real
from typing import Any

from catalog_migration.constants import DISCOUNT_PERCENT_TOLERANCE
from catalog_migration.core.language import classify_language
from catalog_migration.errors import MissingRequiredFieldError
from catalog_migration.models import (
    ItemPrice,
    ItemTitle,
    Language,
    LegacyItem,
    MigratedItem,
)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _title_variant(language: Language) -> str:
    return "odia" if language is Language.ODIA else "english"


def split_title(text: str, language: Language) -> ItemTitle:
    """Return a nested title with ``text`` under the variant for ``language``."""

    return ItemTitle.model_validate({"display": text, _title_variant(language): text})


def discount_percent_for(original: float, discounted: float) -> float:
    """Return the discount implied by ``original`` and ``discounted`` in percent."""

    if original <= 0 or discounted >= original:
        return 0
    return round((original - discounted) / original * 100, 2)


def apply_discount(price: ItemPrice, percent: float) -> ItemPrice:
    """Return ``price`` discounted by ``percent`` of its original value.

    Raises:
        ValueError: If ``percent`` is not between 0 and 100.
    """

    if not _is_number(percent) or not 0 <= percent <= 100:
        raise ValueError("Discount percent must be between 0 and 100")
    discounted = round(price.original * (1 - percent / 100), 2)
    return price.model_copy(
        update={"discounted": discounted, "discount_percent": percent}
    )


def remove_discount(price: ItemPrice) -> ItemPrice:
    """Return ``price`` reset to its original value."""

    return price.model_copy(
        update={"discounted": price.original, "discount_percent": 0}
    )


def migrate_item(item: LegacyItem) -> MigratedItem:
    """Return the migrated form of a legacy ``item``.

    ``language``, ``academicGrade`` and ``tags`` already present on the legacy
    document are kept; the rest is defaulted. The price starts without a
    discount.
    """

    classified = classify_language(item.title)
    return MigratedItem(
        document_id=item.document_id,
        title=split_title(item.title, classified),
        price=ItemPrice(
            original=item.price, discounted=item.price, discount_percent=0
        ),
        language=item.language or classified,
        academic_grade=item.academic_grade,
        tags=item.tags or [],
    )


def rollback_item(item: MigratedItem) -> LegacyItem:
    """Return the flat form of a migrated ``item`` (best effort, lossy)."""

    price = item.price
    flat_price = price.discounted if price.has_discount else price.original
    return LegacyItem(
        document_id=item.document_id, title=item.title.display, price=flat_price
    )


def _normalise_title(
    title: Any, language_given: bool
) -> tuple[dict[str, Any], Language | None]:
    if isinstance(title, str):
        if not title.strip():
            raise MissingRequiredFieldError("title")
        classified = classify_language(title)
        return split_title(title, classified).to_document(), classified
    if isinstance(title, Mapping):
        display = title.get("display")
        if not isinstance(display, str) or not display.strip():
            raise MissingRequiredFieldError("title.display")
        nested = dict(title)
        classified = classify_language(display)
        variant = _title_variant(classified)
        # Explicit variants are kept as given, but at least one is always set.
        has_variant = bool(nested.get("english") or nested.get("odia"))
        if not nested.get(variant) and not (language_given and has_variant):
            nested[variant] = display
        return nested, classified
    raise ValueError("title must be a string or an object")


def _normalise_price(price: Any) -> ItemPrice:
    if _is_number(price):
        return ItemPrice(original=price, discounted=price, discount_percent=0)
    if not isinstance(price, Mapping):
        raise ValueError("price must be a number or an object")
    original = price.get("original")
    if original is None:
        raise MissingRequiredFieldError("price.original")
    discounted = price.get("discounted")
    percent = price.get("discountPercent")
    base = ItemPrice(original=original, discounted=original)
    if discounted is None:
        return apply_discount(base, percent) if percent else base
    implied = discount_percent_for(original, discounted) if _is_number(discounted) else 0
    if percent is None:
        percent = implied
    elif _is_number(percent) and abs(percent - implied) > DISCOUNT_PERCENT_TOLERANCE:
        raise ValueError("price.discountPercent does not match original and discounted")
    return ItemPrice(original=original, discounted=discounted, discount_percent=percent)


def normalize_item_input(payload: Mapping[str, Any]) -> MigratedItem:
    """Validate a write payload in either shape and return a migrated item.

    Args:
        payload: Item as submitted by a catalog writer. ``title`` may be a
            string or ``{display, english?, odia?}``; ``price`` may be a number
            or ``{original, discounted?, discountPercent?}``.

    Returns:
        The item in migrated shape, ready to persist.

    Raises:
        MissingRequiredFieldError: If ``title``/``price`` or their mandatory
            sub-fields ``display``/``original`` are missing.
        ValueError: If values have the wrong type or violate price invariants.
    """

    if payload.get("title") is None:
        raise MissingRequiredFieldError("title")
    if payload.get("price") is None:
        raise MissingRequiredFieldError("price")
    language_given = bool(payload.get("language"))
    title, classified = _normalise_title(payload["title"], language_given)
    price = _normalise_price(payload["price"])
    data = {
        **payload,
        "title": title,
        "price": price.to_document(),
        "language": payload.get("language") or classified,
    }
    return MigratedItem.model_validate(data)


def normalize_document(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``payload`` with its shape fields replaced by the migrated form.

    Fields unrelated to the migration (author, description, stock, ...) are
    kept as submitted.
    """

    item = normalize_item_input(payload)
    return {**payload, **item.to_document()}


__all__ = [
    "apply_discount",
    "discount_percent_for",
    "migrate_item",
    "normalize_document",
    "normalize_item_input",
    "remove_discount",
    "rollback_item",
    "split_title",
]
