# SPDX-License-Identifier: MIT
"""Post-migration verification of stored catalog items."""

from __future__ import annotations

from collections import Counter
from typing import Any

import logfire

from catalog_migration.core.invariants import check_invariants
from catalog_migration.core.shape import detect_shape
from catalog_migration.models import (
    DocumentShape,
    InvariantViolation,
    VerificationReport,
)


async def verify_collection(
    collection: Any, sample_size: int | None = None
) -> VerificationReport:
    """Check every migrated document, or a random sample of ``sample_size``.

    Legacy and malformed documents are counted rather than checked; either
    makes the report fail because a completed migration leaves none behind.
    """

    if sample_size is not None and sample_size < 1:
        raise ValueError("sample_size must be a positive integer")
    report = VerificationReport()
    languages: Counter[str] = Counter()
    with logfire.span("verify.collection", attributes={"sample_size": sample_size}):
        if sample_size is None:
            cursor = collection.find({})
        else:
            cursor = await collection.aggregate([{"$sample": {"size": sample_size}}])
        async for document in cursor:
            report.checked += 1
            shape = detect_shape(document)
            if shape is DocumentShape.LEGACY:
                report.legacy_remaining += 1
                continue
            if shape is DocumentShape.MALFORMED:
                report.malformed += 1
                continue
            languages[str(document.get("language"))] += 1
            problems = check_invariants(document)
            if problems:
                report.violations.append(
                    InvariantViolation(
                        document_id=str(document.get("_id")), problems=problems
                    )
                )
        report.language_counts = dict(languages)
    log = logfire.info if report.ok else logfire.warning
    log(
        "Verification finished",
        checked=report.checked,
        violations=len(report.violations),
        legacy_remaining=report.legacy_remaining,
        malformed=report.malformed,
    )
    return report


__all__ = ["verify_collection"]
