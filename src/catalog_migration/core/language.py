# SPDX-License-Identifier: MIT
"""Unicode-script heuristics for catalog content language.

Script presence decides: a single Oriya code point is enough to classify text
as Odia, whatever the proportion of Latin characters around it.
"""

from __future__ import annotations

from catalog_migration.constants import ODIA_RANGE
from catalog_migration.models import Language

# Checked in order; the first script present in the text wins.
SCRIPT_RANGES: tuple[tuple[Language, tuple[int, int]], ...] = (
    (Language.ODIA, ODIA_RANGE),
)

DEFAULT_LANGUAGE = Language.ENGLISH


def _has_script(text: str, code_range: tuple[int, int]) -> bool:
    low, high = code_range
    return any(low <= ord(char) <= high for char in text)


def has_latin_letters(text: str | None) -> bool:
    """Return ``True`` when ``text`` contains ASCII letters."""

    return bool(text) and any(char.isascii() and char.isalpha() for char in text)


def detect_scripts(text: str | None) -> set[Language]:
    """Return every language whose script appears in ``text``.

    Latin letters map to :attr:`Language.ENGLISH`. Empty text yields an empty set.
    """

    if not text:
        return set()
    found = {language for language, rng in SCRIPT_RANGES if _has_script(text, rng)}
    if has_latin_letters(text):
        found.add(Language.ENGLISH)
    return found


def classify_language(text: str | None) -> Language:
    """Return the content language of ``text``.

    Args:
        text: Title or other free text. ``None``, empty and whitespace-only
            strings are accepted.

    Returns:
        The first language in :data:`SCRIPT_RANGES` whose script is present,
        otherwise :data:`DEFAULT_LANGUAGE`.
    """

    if not text or not text.strip():
        return DEFAULT_LANGUAGE
    for language, code_range in SCRIPT_RANGES:
        if _has_script(text, code_range):
            return language
    return DEFAULT_LANGUAGE


__all__ = ["SCRIPT_RANGES", "classify_language", "detect_scripts", "has_latin_letters"]
