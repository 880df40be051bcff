# SPDX-License-Identifier: MIT
"""Catalog read/write contract used by the API layer.

Writes accept either item shape and always persist the migrated shape. Reads
always go through :func:`catalog_migration.core.view.project_item`, so callers
never depend on how a given document is stored.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import logfire
from bson import ObjectId
from bson.errors import InvalidId

from catalog_migration.core.shape import LEGACY_FILTER, parse_document
from catalog_migration.core.transform import (
    apply_discount,
    migrate_item,
    normalize_document,
    remove_discount,
)
from catalog_migration.core.view import project_item
from catalog_migration.models import ItemPrice, LegacyItem
from catalog_migration.store.retry import with_retry


def _as_object_id(item_id: Any) -> Any:
    if isinstance(item_id, str):
        try:
            return ObjectId(item_id)
        except InvalidId:
            return item_id
    return item_id


class CatalogStore:
    """Shape-agnostic access to the catalog collection."""

    def __init__(
        self,
        collection: Any,
        *,
        request_timeout: float = 30.0,
        retries: int = 3,
        retry_base_delay: float = 0.5,
    ) -> None:
        self.collection = collection
        self.request_timeout = request_timeout
        self.retries = retries
        self.retry_base_delay = retry_base_delay

    async def _call(self, factory, operation: str):  # noqa: ANN001
        result, _ = await with_retry(
            factory,
            request_timeout=self.request_timeout,
            attempts=self.retries,
            base=self.retry_base_delay,
            operation=operation,
        )
        return result

    async def create_item(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Validate ``payload`` in either shape, persist it migrated and return it.

        Raises:
            MissingRequiredFieldError: If nested ``title``/``price`` lack
                ``display``/``original``.
            ValueError: If the payload is otherwise invalid.
        """
        document = normalize_document(payload)
        result = await self._call(
            lambda: self.collection.insert_one(document), "insert item"
        )
        document["_id"] = result.inserted_id
        logfire.info(
            "Catalog item created",
            item_id=str(result.inserted_id),
            title=document["title"]["display"],
            language=document.get("language"),
        )
        return project_item(document)

    async def get_item(self, item_id: Any) -> dict[str, Any] | None:
        """Return the reader payload for ``item_id`` or ``None``."""
        document = await self._call(
            lambda: self.collection.find_one({"_id": _as_object_id(item_id)}),
            "find item",
        )
        return project_item(document) if document is not None else None

    async def list_items(
        self, query: Mapping[str, Any] | None = None, *, limit: int = 50
    ) -> list[dict[str, Any]]:
        """Return reader payloads for up to ``limit`` items matching ``query``."""
        items: list[dict[str, Any]] = []
        async for document in self.collection.find(dict(query or {})).limit(limit):
            items.append(project_item(document))
        return items

    async def _update_price(self, item_id: Any, update_price) -> dict[str, Any] | None:  # noqa: ANN001
        oid = _as_object_id(item_id)
        document = await self._call(
            lambda: self.collection.find_one({"_id": oid}), "find item"
        )
        if document is None:
            return None
        item = parse_document(document)
        if isinstance(item, LegacyItem):
            # Legacy items are migrated in the same update; guard on the old shape.
            migrated = migrate_item(item)
            guard = {"_id": oid, **LEGACY_FILTER}
        else:
            migrated = item
            guard = {"_id": oid, "price.original": item.price.original}
        price: ItemPrice = update_price(migrated.price)
        fields = {**migrated.shape_fields(), "price": price.to_document()}
        result = await self._call(
            lambda: self.collection.update_one(guard, {"$set": fields}),
            "update price",
        )
        if not result.matched_count:
            logfire.warning("Item changed concurrently, price not updated", item_id=str(oid))
            return None
        return project_item({**document, **fields})

    async def apply_discount(self, item_id: Any, percent: float) -> dict[str, Any] | None:
        """Discount an item by ``percent`` and return the updated payload.

        Raises:
            ValueError: If ``percent`` is not between 0 and 100.
        """
        if isinstance(percent, bool) or not 0 <= percent <= 100:
            raise ValueError("Discount percent must be between 0 and 100")
        return await self._update_price(item_id, lambda price: apply_discount(price, percent))

    async def remove_discount(self, item_id: Any) -> dict[str, Any] | None:
        """Reset an item to its original price and return the updated payload."""
        return await self._update_price(item_id, remove_discount)


__all__ = ["CatalogStore"]
