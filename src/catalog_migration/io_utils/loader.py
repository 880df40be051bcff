# SPDX-License-Identifier: MIT
"""Utilities for loading file-based configuration.

The helpers centralise file-system access for the YAML configuration and
include lightweight error handling so callers receive concise exceptions.
"""

from __future__ import annotations

from pathlib import Path
from typing import TypeVar

import logfire
import yaml
from pydantic import TypeAdapter, ValidationError

from catalog_migration.models import AppConfig
from catalog_migration.utils import ErrorHandler, LoggingErrorHandler

T = TypeVar("T")


def _read_file(path: Path, error_handler: ErrorHandler | None = None) -> str:
    """Return the contents of ``path``.

    Raises:
        FileNotFoundError: If the file does not exist.
        RuntimeError: If the file cannot be read.
    """
    handler = error_handler or LoggingErrorHandler()
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise
    except OSError as exc:
        handler.handle("Error reading file", exc, path=str(path))
        raise RuntimeError(f"An error occurred while reading the file: {exc}") from exc


def _read_yaml_file(
    path: Path,
    schema: type[T],
    error_handler: ErrorHandler | None = None,
) -> T:
    """Return YAML data loaded from ``path`` validated against ``schema``."""
    handler = error_handler or LoggingErrorHandler()
    with logfire.span("fs.read_yaml", attributes={"path": str(path)}):
        try:
            adapter = TypeAdapter(schema)
            return adapter.validate_python(
                yaml.safe_load(_read_file(path, handler)) or {}
            )
        except FileNotFoundError:
            raise
        except (RuntimeError, ValidationError, yaml.YAMLError, ValueError) as exc:
            handler.handle("Error reading YAML file", exc, path=str(path))
            raise RuntimeError(
                f"An error occurred while reading the YAML file: {exc}"
            ) from exc


def load_app_config(
    base_dir: Path | str = Path("config"),
    filename: Path | str = Path("app.yaml"),
    *,
    required: bool = False,
) -> AppConfig:
    """Return application configuration from ``base_dir``.

    A missing file yields the built-in defaults unless ``required`` is set, in
    which case :class:`FileNotFoundError` propagates.
    """
    path = Path(base_dir) / Path(filename)
    try:
        return _read_yaml_file(path, AppConfig)
    except FileNotFoundError:
        if required:
            raise
        logfire.debug("No configuration file, using defaults", path=str(path))
        return AppConfig()


__all__ = ["load_app_config"]
