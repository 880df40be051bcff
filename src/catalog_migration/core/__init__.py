"""Pure catalog shape logic shared by the drivers and the store.

Exports:
    detect_shape: Classify a stored document as legacy, migrated or malformed.
    parse_document: Return the typed item for a stored document.
    classify_language: Infer the content language from script presence.
    migrate_item: Legacy to migrated transform.
    rollback_item: Migrated to legacy transform (lossy).
    normalize_item_input: Validate a write payload in either shape.
    compute_view: Shape-agnostic computed fields for readers.
    project_item: Full reader payload for a stored document.
    check_invariants: Invariant violations of a migrated document.
"""

from .invariants import check_invariants
from .language import classify_language
from .shape import detect_shape, parse_document
from .transform import migrate_item, normalize_item_input, rollback_item
from .view import compute_view, project_item

__all__ = [
    "check_invariants",
    "classify_language",
    "compute_view",
    "detect_shape",
    "migrate_item",
    "normalize_item_input",
    "parse_document",
    "project_item",
    "rollback_item",
]
