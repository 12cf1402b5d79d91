"""Read-through query cache with TTL, LRU eviction and prefix invalidation.

Keys are tuples: ("cards", board_id), ("time_tracking_summary", card_id), ...
``invalidate("time_entries")`` drops every key starting with "time_entries",
``invalidate("time_entries", 42)`` only that card's entries.
"""

import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Hashable, Optional

logger = logging.getLogger(__name__)

CacheKey = tuple[Hashable, ...]


class QueryCache:
    """In-process cache for board API and record store reads.

    Entries expire ``ttl_seconds`` after they were loaded. Once ``max_size``
    entries are held, expired entries are purged and then the least recently
    used one is evicted. Every mutation that affects a key must call
    ``invalidate`` with that key or a prefix of it.
    """

    def __init__(
        self,
        ttl_seconds: float = 300,
        max_size: Optional[int] = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: OrderedDict[CacheKey, tuple[Any, float]] = OrderedDict()
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._evictions = 0

    def _lookup(self, key: CacheKey) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return False, None
        value, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            self._misses += 1
            return False, None
        self._entries.move_to_end(key)
        self._hits += 1
        return True, value

    def get(self, key: CacheKey) -> Optional[Any]:
        return self._lookup(key)[1]

    def set(self, key: CacheKey, value: Any) -> None:
        if self.ttl_seconds <= 0:
            return
        if key in self._entries:
            self._entries.move_to_end(key)
        elif self.max_size is not None and len(self._entries) >= self.max_size:
            self._purge_expired()
            while len(self._entries) >= self.max_size:
                self._entries.popitem(last=False)
                self._evictions += 1
        self._entries[key] = (value, self._clock() + self.ttl_seconds)

    def _purge_expired(self) -> None:
        now = self._clock()
        for key in [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]:
            del self._entries[key]

    async def get_or_load(
        self, key: CacheKey, loader: Callable[[], Awaitable[Any]]
    ) -> Any:
        """Return the cached value for ``key`` or await ``loader`` and cache it."""
        found, value = self._lookup(key)
        if found:
            return value
        value = await loader()
        self.set(key, value)
        return value

    def invalidate(self, *prefix: Hashable) -> int:
        """Drop every key whose leading elements equal ``prefix``."""
        n = len(prefix)
        stale = [k for k in self._entries if k[:n] == prefix]
        for key in stale:
            del self._entries[key]
        if stale:
            self._invalidations += len(stale)
            logger.debug(f"Invalidated {len(stale)} cache entries for {prefix!r}")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self.max_size,
            "hits": self._hits,
            "misses": self._misses,
            "invalidations": self._invalidations,
            "evictions": self._evictions,
            "hit_rate_percent": round(self._hits / total * 100, 1) if total else 0.0,
        }
