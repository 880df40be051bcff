# SPDX-License-Identifier: MIT
"""Tests for the store retry helper."""

import asyncio

import pytest
from pymongo.errors import AutoReconnect, DuplicateKeyError

from catalog_migration.errors import TransientStoreError
from catalog_migration.store import retry
from catalog_migration.store.retry import with_retry


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch):
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr(retry.asyncio, "sleep", fake_sleep)
    return delays


@pytest.mark.asyncio()
async def test_returns_result_and_attempt(_no_sleep) -> None:
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls < 3:
            raise AutoReconnect("reset")
        return "ok"

    result, attempt = await with_retry(flaky, request_timeout=1, attempts=3, base=0.1)

    assert (result, attempt) == ("ok", 2)
    assert len(_no_sleep) == 2
    assert _no_sleep[1] >= _no_sleep[0]


@pytest.mark.asyncio()
async def test_exhaustion_raises_transient_store_error() -> None:
    async def always_down():
        raise ConnectionError("down")

    with pytest.raises(TransientStoreError) as excinfo:
        await with_retry(always_down, request_timeout=1, attempts=2, operation="ping")

    assert excinfo.value.attempts == 2
    assert "ping failed" in str(excinfo.value)
    assert isinstance(excinfo.value.__cause__, ConnectionError)


@pytest.mark.asyncio()
async def test_timeout_is_transient() -> None:
    async def slow():
        await asyncio.Event().wait()

    with pytest.raises(TransientStoreError):
        await with_retry(slow, request_timeout=0.01, attempts=1)


@pytest.mark.asyncio()
async def test_non_transient_errors_propagate() -> None:
    calls = 0

    async def duplicate():
        nonlocal calls
        calls += 1
        raise DuplicateKeyError("E11000")

    with pytest.raises(DuplicateKeyError):
        await with_retry(duplicate, request_timeout=1, attempts=3)
    assert calls == 1
