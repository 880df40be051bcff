"""Project-wide constants and default names.

This module centralises small constants that are imported across the
application. Keep this file minimal and free of side effects.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_COLLECTION = "books"
DEFAULT_FAILURE_REPORT_DIR = Path("migration-failures")

# Oriya block (U+0B00 to U+0B7F).
ODIA_RANGE = (0x0B00, 0x0B7F)

# Percentage points allowed between a stored ``discountPercent`` and the value
# implied by ``original`` and ``discounted``.
DISCOUNT_PERCENT_TOLERANCE = 0.5

# Fields that only exist on migrated documents.
MIGRATED_ONLY_FIELDS = ("language", "academicGrade", "tags")

# Number of planned changes logged during a dry run.
PREVIEW_LIMIT = 5

__all__ = [
    "DEFAULT_COLLECTION",
    "DEFAULT_FAILURE_REPORT_DIR",
    "DISCOUNT_PERCENT_TOLERANCE",
    "MIGRATED_ONLY_FIELDS",
    "ODIA_RANGE",
    "PREVIEW_LIMIT",
]
