# SPDX-License-Identifier: MIT
"""Centralised application configuration management.

This module exposes :class:`Settings`, a ``pydantic-settings`` model that
combines values sourced from a YAML configuration file and environment
variables. Environment variables take precedence over file-based values and
the merged configuration is validated before use.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from catalog_migration.constants import DEFAULT_COLLECTION, DEFAULT_FAILURE_REPORT_DIR
from catalog_migration.io_utils.loader import load_app_config


class Settings(BaseSettings):
    """Application settings combining file-based and environment configuration."""

    mongodb_uri: str = Field(
        ...,
        validation_alias=AliasChoices("MONGODB_URI", "MONGO_URI", "mongodb_uri"),
        description="Connection string of the document store.",
        repr=False,
    )
    database: str | None = Field(
        None, description="Database name; defaults to the one in the URI."
    )
    collection: str = Field(
        DEFAULT_COLLECTION, min_length=1, description="Catalog collection name."
    )
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
        DEFAULT_FAILURE_REPORT_DIR, description="Where failed documents are written."
    )
    verify_sample_size: int | None = Field(
        None, ge=1, description="Documents sampled by verification; all when unset."
    )
    log_level: str = Field("INFO", description="Logging verbosity level.")
    logfire_token: str | None = Field(
        None, description="Logfire authentication token, if available.", repr=False
    )

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_", extra="ignore", populate_by_name=True
    )

    @field_validator("text_language_override")
    @classmethod
    def _keep_language_field_out_of_text_search(cls, value: str) -> str:
        # ``language`` holds "English"/"Odia", which are not text search languages.
        if value == "language":
            raise ValueError("must not be 'language'; that field stores the item language")
        return value

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # File values arrive as init kwargs; the environment must win over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load and validate application settings.

    Configuration values are read from the YAML configuration file and then
    merged with environment variables using ``pydantic-settings``. When a value
    is provided in both sources the environment variable wins. A ``.env`` file
    in the working directory is loaded automatically when present.

    Args:
        config_path: Optional path to a YAML configuration file. When given the
            file must exist; otherwise ``config/app.yaml`` is used if present.

    Returns:
        Settings: Fully validated application configuration.

    Raises:
        RuntimeError: If required configuration values are missing or invalid.
    """
    if config_path:
        cfg_path = Path(config_path)
        try:
            config = load_app_config(cfg_path.parent, cfg_path.name, required=True)
        except FileNotFoundError as exc:
            raise RuntimeError(f"Configuration file not found: {cfg_path}") from exc
    else:
        config = load_app_config()
    env_file_path = Path(".env")
    env_file = env_file_path if env_file_path.exists() else None
    file_values = config.model_dump(exclude_none=True)
    try:
        return Settings(**file_values, _env_file=env_file)
    except ValidationError as exc:
        # Summarise validation issues so the caller receives clear feedback.
        details = "; ".join(
            f"{'.'.join(map(str, error['loc']))}: {error['msg']}"
            for error in exc.errors()
        )
        raise RuntimeError(f"Invalid configuration: {details}") from exc


__all__ = ["Settings", "load_settings"]
