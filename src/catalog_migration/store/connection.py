# SPDX-License-Identifier: MIT
"""Connect to the document store and resolve the catalog collection."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncIterator

import logfire
from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError, PyMongoError

from catalog_migration.errors import FatalConnectionError
from catalog_migration.utils import ErrorHandler, LoggingErrorHandler

if TYPE_CHECKING:  # pragma: no cover - for type checkers only
    from catalog_migration.runtime.settings import Settings


async def connect(
    settings: "Settings", error_handler: ErrorHandler | None = None
) -> AsyncMongoClient[dict[str, Any]]:
    """Return a client that answered ``ping``.

    Raises:
        FatalConnectionError: If the URI is invalid or the server cannot be
            reached within ``connect_timeout_ms``.
    """
    handler = error_handler or LoggingErrorHandler()
    with logfire.span("store.connect"):
        try:
            client: AsyncMongoClient[dict[str, Any]] = AsyncMongoClient(
                settings.mongodb_uri,
                serverSelectionTimeoutMS=settings.connect_timeout_ms,
            )
        except (ConfigurationError, ValueError) as exc:
            handler.handle("Invalid connection string", exc)
            raise FatalConnectionError(f"Invalid connection string: {exc}") from exc
        try:
            await client.admin.command("ping")
        except PyMongoError as exc:
            await client.close()
            handler.handle(
                "Cannot reach document store",
                exc,
                timeout_ms=settings.connect_timeout_ms,
            )
            raise FatalConnectionError(f"Cannot connect to document store: {exc}") from exc
        logfire.info("Connected to document store")
        return client


def resolve_collection(client: AsyncMongoClient[Any], settings: "Settings") -> Any:
    """Return the catalog collection named by ``settings``.

    Raises:
        FatalConnectionError: If no database is configured and the URI names
            none either.
    """
    try:
        database = (
            client[settings.database]
            if settings.database
            else client.get_default_database()
        )
    except ConfigurationError as exc:
        raise FatalConnectionError(
            "No database configured; add one to the URI or set CATALOG_DATABASE"
        ) from exc
    logfire.info(
        "Using catalog collection",
        database=database.name,
        collection=settings.collection,
    )
    return database[settings.collection]


@asynccontextmanager
async def open_catalog(settings: "Settings") -> AsyncIterator[Any]:
    """Yield the catalog collection and close the client afterwards."""
    client = await connect(settings)
    try:
        yield resolve_collection(client, settings)
    finally:
        await client.close()


__all__ = ["connect", "open_catalog", "resolve_collection"]
