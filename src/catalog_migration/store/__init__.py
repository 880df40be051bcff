"""Document store access: connection, retries and the catalog contract.

Exports:
    open_catalog: Async context manager yielding the catalog collection.
    CatalogStore: Shape-agnostic read/write access to catalog items.
    with_retry: Retry an awaitable on transient store errors.
"""

from .catalog import CatalogStore
from .connection import connect, open_catalog, resolve_collection
from .retry import TRANSIENT_EXCEPTIONS, with_retry

__all__ = [
    "CatalogStore",
    "TRANSIENT_EXCEPTIONS",
    "connect",
    "open_catalog",
    "resolve_collection",
    "with_retry",
]
