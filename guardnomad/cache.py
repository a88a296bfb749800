"""Guard Nomad Backend - In-memory response cache with TTL"""

import time
import logging
from typing import Any, Callable, Optional

from cachetools import FIFOCache

logger = logging.getLogger("guardnomad.cache")


class ResponseCache:
    """In-memory cache with per-entry TTL and a FIFO size bound.

    Entries are ``(value, timestamp, ttl)`` tuples in a cachetools FIFOCache,
    so the oldest insertion goes first once ``max_size`` is reached.
    Expiry is lazy: an entry read past its TTL is dropped and reported absent.
    """

    def __init__(self, default_ttl: float = 1800, max_size: int = 50,
                 clock: Callable[[], float] = time.time, name: str = "cache"):
        self._store: FIFOCache = FIFOCache(maxsize=max_size)
        self._default_ttl = default_ttl
        self._max_size = max_size
        self._clock = clock
        self.name = name

    def get(self, key: str) -> Optional[Any]:
        entry = self._store.get(key)
        if entry is None:
            return None
        value, stored_at, ttl = entry
        if self._clock() - stored_at > ttl:
            del self._store[key]
            logger.debug(f"{self.name}: expired {key}")
            return None
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None):
        # Re-inserting moves the key to the back of the eviction order
        self._store.pop(key, None)
        if len(self._store) >= self._max_size:
            logger.debug(f"{self.name}: full (max_size={self._max_size}), evicting oldest entry")
        self._store[key] = (value, self._clock(), self._default_ttl if ttl is None else ttl)

    def delete(self, key: str):
        self._store.pop(key, None)

    def clear(self):
        self._store.clear()

    def evict_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, ts, ttl) in self._store.items() if now - ts > ttl]
        for k in expired:
            del self._store[k]
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._store)
