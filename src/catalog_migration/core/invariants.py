# SPDX-License-Identifier: MIT
"""Per-document invariants every migrated catalog item must satisfy."""

from __future__ import annotations

from collections.abc import Mapping
from numbers import Real
from typing import Any

from catalog_migration.constants import DISCOUNT_PERCENT_TOLERANCE
from catalog_migration.core.language import detect_scripts
from catalog_migration.models import Language


def _number(value: Any) -> float | None:
    if isinstance(value, Real) and not isinstance(value, bool):
        return float(value)
    return None


def _title_problems(title: Mapping[str, Any]) -> list[str]:
    problems: list[str] = []
    display = title.get("display")
    if not isinstance(display, str) or not display.strip():
        problems.append("title.display is empty")
        display = ""
    present = []
    for variant in ("english", "odia"):
        if variant not in title:
            continue
        value = title[variant]
        if not isinstance(value, str) or not value.strip():
            problems.append(f"title.{variant} is present but empty")
        else:
            present.append(variant)
    if not present:
        problems.append("neither title.english nor title.odia is set")
    elif len(present) == 2:
        scripts = detect_scripts(display)
        if not {Language.ENGLISH, Language.ODIA} <= scripts:
            problems.append("both title variants set on a single-script title")
    return problems


def _price_problems(price: Mapping[str, Any]) -> list[str]:
    original = _number(price.get("original"))
    discounted = _number(price.get("discounted"))
    percent = _number(price.get("discountPercent"))
    if original is None or discounted is None or percent is None:
        return ["price.original, price.discounted and price.discountPercent must be numbers"]
    problems: list[str] = []
    if not original >= discounted >= 0:
        problems.append("price must satisfy original >= discounted >= 0")
    expected = 0.0
    if original > 0 and discounted < original:
        expected = (original - discounted) / original * 100
    if abs(percent - expected) > DISCOUNT_PERCENT_TOLERANCE:
        problems.append(
            f"price.discountPercent {percent:g} does not match expected {expected:.2f}"
        )
    return problems


def check_invariants(document: Mapping[str, Any]) -> list[str]:
    """Return invariant violations of a migrated ``document``.

    An empty list means the document is a valid migrated catalog item.
    """

    problems: list[str] = []
    title = document.get("title")
    price = document.get("price")
    if not isinstance(title, Mapping):
        problems.append("title is not nested")
    else:
        problems.extend(_title_problems(title))
    if not isinstance(price, Mapping):
        problems.append("price is not nested")
    else:
        problems.extend(_price_problems(price))
    language = document.get("language")
    if language not in {member.value for member in Language}:
        problems.append(f"language is unset or unknown: {language!r}")
    tags = document.get("tags")
    if not isinstance(tags, list):
        problems.append("tags is not a list")
    elif len(set(map(str, tags))) != len(tags):
        problems.append("tags contains duplicates")
    return problems


__all__ = ["check_invariants"]
