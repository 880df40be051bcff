# SPDX-License-Identifier: MIT
"""Pydantic models describing catalog items, run summaries and reports.

Stored catalog documents exist in two shapes during a migration window. The
flat *legacy* shape is represented by :class:`LegacyItem` and the nested
*migrated* shape by :class:`MigratedItem`. Raw documents are classified once by
:mod:`catalog_migration.core.shape` and only the typed models flow through the
transformer and the drivers.
"""

from __future__ import annotations

import math
from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


class Language(str, Enum):
    """Content language stored on migrated items."""

    ENGLISH = "English"
    ODIA = "Odia"
    HINDI = "Hindi"


class DocumentShape(str, Enum):
    """Classification produced by the shape detector."""

    LEGACY = "legacy"
    MIGRATED = "migrated"
    MALFORMED = "malformed"


def _reject_bool(value: Any) -> Any:
    if isinstance(value, bool):
        raise ValueError("boolean is not a valid amount")
    return value


def _non_negative(value: int | float) -> int | float:
    if not math.isfinite(value) or value < 0:
        raise ValueError("amount must be a finite, non-negative number")
    return value


def _percent_range(value: int | float) -> int | float:
    if not math.isfinite(value) or not 0 <= value <= 100:
        raise ValueError("discountPercent must be between 0 and 100")
    return value


Amount = Annotated[
    int | float, BeforeValidator(_reject_bool), AfterValidator(_non_negative)
]
Percent = Annotated[
    int | float, BeforeValidator(_reject_bool), AfterValidator(_percent_range)
]


class StrictModel(BaseModel):
    """Base model with strict settings to prevent shape drift."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ItemTitle(BaseModel):
    """Multilingual title of a migrated item."""

    model_config = ConfigDict(extra="ignore")

    display: Annotated[str, Field(min_length=1, description="Title shown to readers.")]
    english: str | None = Field(None, description="Title in Latin script.")
    odia: str | None = Field(None, description="Title in Oriya script.")

    @field_validator("display")
    @classmethod
    def _display_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("title.display must not be blank")
        return value

    @field_validator("english", "odia")
    @classmethod
    def _blank_is_absent(cls, value: str | None) -> str | None:
        """Store an empty language variant as absent to keep sparse indexes lean."""

        if value is not None and not value.strip():
            return None
        return value

    def to_document(self) -> dict[str, str]:
        """Return the stored representation without unset language variants."""

        return self.model_dump(exclude_none=True)


class ItemPrice(BaseModel):
    """Structured price of a migrated item."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    original: Amount = Field(..., description="List price.")
    discounted: Amount = Field(..., description="Selling price after discount.")
    discount_percent: Percent = Field(
        0, alias="discountPercent", description="Discount in percent of original."
    )

    @model_validator(mode="after")
    def _discount_not_above_original(self) -> "ItemPrice":
        if self.discounted > self.original:
            raise ValueError("price.discounted must not exceed price.original")
        return self

    @property
    def has_discount(self) -> bool:
        """Return ``True`` when the selling price is below the list price."""

        return self.discounted < self.original

    def to_document(self) -> dict[str, int | float]:
        return self.model_dump(by_alias=True)


class LegacyItem(BaseModel):
    """Flat catalog item with a plain string title and numeric price."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    document_id: Any = Field(None, alias="_id")
    title: str
    price: Amount
    language: Language | None = None
    academic_grade: str | None = Field(None, alias="academicGrade")
    tags: list[str] | None = None

    def shape_fields(self) -> dict[str, Any]:
        """Return the fields that differ between the two stored shapes."""

        return {"title": self.title, "price": self.price}


class MigratedItem(BaseModel):
    """Nested catalog item with multilingual title and structured price."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    document_id: Any = Field(None, alias="_id")
    title: ItemTitle
    price: ItemPrice
    language: Language | None = None
    academic_grade: str | None = Field(None, alias="academicGrade")
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_as_ordered_set(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            return list(dict.fromkeys(value))
        return value

    def shape_fields(self) -> dict[str, Any]:
        """Return the fields written when an item enters the migrated shape."""

        fields: dict[str, Any] = {
            "title": self.title.to_document(),
            "price": self.price.to_document(),
            "academicGrade": self.academic_grade,
            "tags": list(self.tags),
        }
        if self.language is not None:
            fields["language"] = self.language.value
        return fields

    def to_document(self) -> dict[str, Any]:
        """Return a full document suitable for insertion."""

        document = self.shape_fields()
        if self.document_id is not None:
            document = {"_id": self.document_id, **document}
        return document


class CatalogView(StrictModel):
    """Shape-agnostic computed fields served to catalog readers."""

    title_display: str = Field(..., alias="titleDisplay")
    final_price: int | float = Field(..., alias="finalPrice")
    has_discount: bool = Field(..., alias="hasDiscount")
    savings: int | float = Field(...)


class FailureRecord(StrictModel):
    """A document the drivers could not process."""

    document_id: str = Field(..., description="Stringified document identifier.")
    kind: str = Field(..., description="Failure category.")
    message: str = Field(..., description="Human readable failure reason.")


SUMMARY_FIELDS = {"scanned", "migrated", "skipped", "failed", "elapsed_ms"}


class RunSummary(StrictModel):
    """Counts reported at the end of a migration or rollback pass."""

    direction: Literal["migrate", "rollback"]
    dry_run: bool = False
    scanned: int = 0
    migrated: int = 0
    skipped: int = 0
    failed: int = 0
    elapsed_ms: int = Field(0, alias="elapsedMs")
    failures: list[FailureRecord] = Field(default_factory=list)

    def to_json_summary(self) -> str:
        """Return the machine-readable summary line printed by the CLI."""

        return self.model_dump_json(by_alias=True, include=SUMMARY_FIELDS)


class InvariantViolation(StrictModel):
    """Problems detected on a single document by the verification harness."""

    document_id: str
    problems: list[str]


class VerificationReport(StrictModel):
    """Outcome of a post-migration invariant check."""

    checked: int = 0
    legacy_remaining: int = Field(0, alias="legacyRemaining")
    malformed: int = 0
    violations: list[InvariantViolation] = Field(default_factory=list)
    language_counts: dict[str, int] = Field(
        default_factory=dict, alias="languageCounts"
    )

    @property
    def ok(self) -> bool:
        return not self.violations and not self.legacy_remaining and not self.malformed


class IndexReport(StrictModel):
    """Outcome of an index reconciliation pass."""

    dropped: list[str] = Field(default_factory=list)
    absent: list[str] = Field(default_factory=list)
    drop_errors: list[str] = Field(default_factory=list, alias="dropErrors")
    created: list[str] = Field(default_factory=list)
    existing: list[str] = Field(default_factory=list)
    conflicts: list[str] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.conflicts


class AppConfig(StrictModel):
    """File-based configuration read from ``config/app.yaml``."""

    mongodb_uri: str | None = Field(
        None, description="Connection string; normally supplied via MONGODB_URI."
    )
    database: str | None = Field(
        None, description="Database name; defaults to the one in the URI."
    )
    collection: Annotated[
        str, Field(min_length=1, description="Catalog collection name.")
    ] = "books"
    batch_size: int = Field(500, ge=1, description="Writes per bulk request.")
    progress_every: int = Field(
        100, ge=1, description="Scanned documents between progress lines."
    )
    retries: int = Field(3, ge=1, description="Attempts per store operation.")
    retry_base_delay: float = Field(
        0.5, ge=0, description="Initial backoff delay in seconds."
    )
    request_timeout: float = Field(
        30, gt=0, description="Per-operation timeout in seconds."
    )
    connect_timeout_ms: int = Field(
        5000, gt=0, description="Server selection timeout in milliseconds."
    )
    text_default_language: str = Field(
        "english", description="Stemming language of the full-text index."
    )
    text_language_override: str = Field(
        "textSearchLanguage",
        description="Per-document language field consulted by the text index.",
    )
    failure_report_dir: Path = Field(
        Path("migration-failures"), description="Where failed documents are written."
    )
    verify_sample_size: int | None = Field(
        None, ge=1, description="Documents sampled by verification; all when unset."
    )
    log_level: Annotated[
        str, Field(min_length=1, description="Logging verbosity level.")
    ] = "INFO"


__all__ = [
    "AppConfig",
    "CatalogView",
    "DocumentShape",
    "FailureRecord",
    "IndexReport",
    "InvariantViolation",
    "ItemPrice",
    "ItemTitle",
    "Language",
    "LegacyItem",
    "MigratedItem",
    "RunSummary",
    "StrictModel",
    "VerificationReport",
]
