"""In-memory fallback store used by the cache service when Valkey is unavailable."""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from typing import Callable


class InMemoryFallbackStore:
    """
    Bounded LRU store with per-entry expiry.

    Expiry is checked lazily on read: an entry past its deadline is evicted and
    reported as missing even if it has not been swept yet. Once ``max_entries``
    is exceeded the least recently used entry is dropped.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store: OrderedDict[str, tuple[str, float | None]] = OrderedDict()
        self._max_entries = max_entries
        self._clock = clock
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._store)

    async def set(self, key: str, value: str, ttl_seconds: int | None) -> None:
        """Store a value with optional TTL."""
        expires_at = None
        if ttl_seconds and ttl_seconds > 0:
            expires_at = self._clock() + ttl_seconds

        async with self._lock:
            self._store[key] = (value, expires_at)
            self._store.move_to_end(key)
            while len(self._store) > self._max_entries:
                self._store.popitem(last=False)

    async def get(self, key: str) -> str | None:
        """Retrieve a value, returning None if expired or not found."""
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock():
                del self._store[key]
                return None

            self._store.move_to_end(key)
            return value

    async def delete(self, key: str) -> bool:
        """Delete a value from the store, reporting whether it was present."""
        async with self._lock:
            return self._store.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._store.clear()


__all__ = ["InMemoryFallbackStore"]
