# SPDX-License-Identifier: MIT
"""Utilities for writing failed catalog documents to disk."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import logfire
from pydantic_core import to_json

from catalog_migration.observability import telemetry

MANIFEST = "manifest.json"
ALLOWED_KINDS = {
    "malformed_document",
    "missing_required_field",
    "invalid_document",
    "write_error",
    "transient_store_error",
}


def _dump(payload: Any) -> str:
    # ObjectId and datetime values are rendered as strings.
    return to_json(payload, indent=2, fallback=str).decode("utf-8")


def _default_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")


class FailureReportWriter:
    """Persist documents that need manual attention and summarise them per run.

    Reports land in ``<base_dir>/<direction>/<run_id>/`` so repeated runs
    never mix. Payload files are written as failures occur; the manifest is
    kept in memory and written once by :meth:`write_manifest`.
    """

    def __init__(
        self,
        base_dir: Path | str = Path("migration-failures"),
        run_id: str | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.run_id = run_id or _default_run_id()
        self._manifests: dict[str, dict[str, dict[str, Any]]] = {}

    def run_dir(self, direction: str) -> Path:
        """Return the report directory of this run for ``direction``."""
        return self.base_dir / direction / self.run_id

    def write(self, direction: str, kind: str, document_id: str, payload: Any) -> Path:
        """Persist ``payload`` and record it in the manifest for ``direction``.

        Parameters
        ----------
        direction:
            Pass that produced the failure, ``migrate`` or ``rollback``.
        kind:
            Nature of the failure, such as ``malformed_document``.
        document_id:
            Stringified identifier of the failed document.
        payload:
            Failure details including the offending document.

        Returns
        -------
        Path
            Location of the written payload file.
        """

        if kind not in ALLOWED_KINDS:
            raise ValueError(f"Unsupported failure kind: {kind}")

        fdir = self.run_dir(direction)
        fdir.mkdir(parents=True, exist_ok=True)

        manifest = self._manifests.setdefault(direction, {})
        entry = manifest.setdefault(kind, {"count": 0, "document_ids": []})
        entry["count"] += 1
        entry["document_ids"].append(document_id)

        file_path = fdir / f"{kind}_{entry['count']}.json"
        file_path.write_text(_dump(payload), encoding="utf-8")

        logfire.warning(
            "Recorded failed document",
            path=str(file_path),
            kind=kind,
            document_id=document_id,
            direction=direction,
        )

        telemetry.record_failure_report(file_path)
        return file_path

    def write_manifest(self, direction: str) -> Path | None:
        """Write the manifest for ``direction`` if anything failed.

        Returns:
            The manifest path, or ``None`` when the run recorded no failures.
        """
        manifest = self._manifests.get(direction)
        if not manifest:
            return None
        manifest_path = self.run_dir(direction) / MANIFEST
        manifest_path.write_text(_dump(manifest), encoding="utf-8")
        logfire.info(
            "Wrote failure manifest",
            path=str(manifest_path),
            direction=direction,
            failed=sum(entry["count"] for entry in manifest.values()),
        )
        return manifest_path


__all__ = ["FailureReportWriter"]
