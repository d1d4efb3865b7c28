"""TTL cache tests."""

from __future__ import annotations

import asyncio

import pytest

from quotasync.data.cache import TTLCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_value_is_reused_within_ttl() -> None:
    clock = FakeClock()
    cache = TTLCache(1.0, clock=clock)
    calls = {"count": 0}

    async def loader() -> object:
        calls["count"] += 1
        return object()

    first = await cache.get_or_load("settings", loader)
    clock.now += 0.5
    second = await cache.get_or_load("settings", loader)
    assert first is second
    assert calls["count"] == 1

    clock.now += 0.5
    third = await cache.get_or_load("settings", loader)
    assert third is not first
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_per_call_ttl_override() -> None:
    clock = FakeClock()
    cache = TTLCache(10.0, clock=clock)
    values = iter(["a", "b"])

    async def loader() -> str:
        return next(values)

    assert await cache.get_or_load("k", loader) == "a"
    clock.now += 2
    assert await cache.get_or_load("k", loader, ttl=1.0) == "b"


@pytest.mark.asyncio
async def test_loader_failure_is_not_cached() -> None:
    cache = TTLCache(60.0, clock=FakeClock())
    attempts = {"count": 0}

    async def flaky() -> str:
        attempts["count"] += 1
        if attempts["count"] == 1:
            raise OSError("disk went away")
        return "ok"

    with pytest.raises(OSError):
        await cache.get_or_load("k", flaky)
    assert await cache.get_or_load("k", flaky) == "ok"
    assert attempts["count"] == 2


@pytest.mark.asyncio
async def test_concurrent_loads_share_one_call() -> None:
    cache = TTLCache(1.0, clock=FakeClock())
    calls = {"count": 0}

    async def slow() -> int:
        calls["count"] += 1
        await asyncio.sleep(0.01)
        return 42

    results = await asyncio.gather(*(cache.get_or_load("k", slow) for _ in range(5)))
    assert results == [42] * 5
    assert calls["count"] == 1


@pytest.mark.asyncio
async def test_invalidate() -> None:
    cache = TTLCache(60.0, clock=FakeClock())
    values = iter([1, 2, 3])

    async def loader() -> int:
        return next(values)

    assert await cache.get_or_load("a", loader) == 1
    cache.invalidate("a")
    assert await cache.get_or_load("a", loader) == 2
    cache.invalidate()
    assert await cache.get_or_load("a", loader) == 3
