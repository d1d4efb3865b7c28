"""Time-boxed in-memory cache for short-lived reads."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

T = TypeVar("T")


@dataclass
class _Entry:
    value: Any
    loaded_at: float


class TTLCache:
    """Returns a loaded value until ``ttl`` seconds have elapsed since it was loaded.

    Loader exceptions propagate and nothing is stored, so the next call simply
    retries the load.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def _fresh(self, key: str, ttl: float) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry.loaded_at < ttl:
            return entry
        return None

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        ttl: float | None = None,
    ) -> T:
        window = self._ttl if ttl is None else ttl
        entry = self._fresh(key, window)
        if entry is not None:
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have loaded while we waited.
            entry = self._fresh(key, window)
            if entry is not None:
                return entry.value
            value = await loader()
            self._entries[key] = _Entry(value=value, loaded_at=self._clock())
            return value

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or everything when ``key`` is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)
