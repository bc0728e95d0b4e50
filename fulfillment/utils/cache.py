"""Injectable TTL cache for settings rows.

Components that read slowly-changing configuration from the database (such as
the webhook endpoint list) receive a TTLCache instance instead of keeping
process-global state. ``invalidate()`` drops one key or everything, and is
called after settings are saved or from the admin cache route.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

V = TypeVar("V")


class TTLCache(Generic[V]):
    """Small in-memory cache with per-entry expiry.

    Attributes:
        ttl_seconds: Entry lifetime. 0 disables caching entirely.

    Example:
        >>> cache: TTLCache[dict] = TTLCache(ttl_seconds=60)
        >>> config = await cache.get_or_load("webhooks_config", load_config)
        >>> cache.invalidate("webhooks_config")
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[float, V]] = {}
        self._lock = asyncio.Lock()

    def get(self, key: str) -> V | None:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: V) -> None:
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[V]]) -> V:
        """Return the cached value, loading and caching it on a miss.

        Concurrent misses for the same cache share a lock, so the loader runs
        once per expiry.
        """
        value = self.get(key)
        if value is not None:
            return value
        async with self._lock:
            value = self.get(key)
            if value is not None:
                return value
            value = await loader()
            self.set(key, value)
            return value

    def invalidate(self, key: str | None = None) -> None:
        """Drop one key, or every entry when key is None."""
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)
