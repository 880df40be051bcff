# SPDX-License-Identifier: MIT
"""Retry helpers for document store operations.

This module centralises exponential backoff and transient exception handling
so the drivers and the catalog store share consistent logic.
"""

from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, TypeVar

import logfire
from pymongo.errors import AutoReconnect, ExecutionTimeout, WTimeoutError

from catalog_migration.errors import TransientStoreError

T = TypeVar("T")

# ``NetworkTimeout`` and ``ServerSelectionTimeoutError`` derive from
# ``AutoReconnect``.
TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    asyncio.TimeoutError,
    ConnectionError,
    AutoReconnect,
    ExecutionTimeout,
    WTimeoutError,
)


def _compute_backoff_delay(attempt: int, *, base: float, cap: float) -> float:
    delay = min(cap, base * (2**attempt))
    delay *= 1 + random.random() * 0.25  # nosec B311 - jitter
    return float(delay)


async def with_retry(
    coro_factory: Callable[[], Awaitable[T]],
    *,
    request_timeout: float,
    attempts: int = 3,
    base: float = 0.5,
    cap: float = 8.0,
    operation: str = "store operation",
) -> tuple[T, int]:
    """Execute ``coro_factory`` with exponential backoff and jitter.

    Args:
        coro_factory: Callable creating a fresh awaitable per attempt.
        request_timeout: Per-attempt timeout in seconds.
        attempts: Total number of attempts, including the first one.
        base: Initial backoff delay in seconds.
        cap: Upper bound for a single backoff delay.
        operation: Label used in log records and error messages.

    Returns:
        The awaited result and the zero-based attempt that produced it.

    Raises:
        TransientStoreError: If every attempt failed with a transient error.
    """

    last_exc: BaseException | None = None
    for attempt in range(attempts):
        try:
            result = await asyncio.wait_for(coro_factory(), timeout=request_timeout)
        except TRANSIENT_EXCEPTIONS as exc:
            last_exc = exc
            if attempt + 1 >= attempts:
                break
            delay = _compute_backoff_delay(attempt, base=base, cap=cap)
            logfire.warning(
                "Retrying {operation}",
                operation=operation,
                attempt=attempt + 1,
                backoff_delay=delay,
                error=str(exc),
            )
            await asyncio.sleep(delay)
            continue
        return result, attempt
    raise TransientStoreError(f"{operation} failed: {last_exc}", attempts) from last_exc


__all__ = ["TRANSIENT_EXCEPTIONS", "with_retry"]
