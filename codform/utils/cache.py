"""Small in-memory TTL cache, passed explicitly to the services that use it."""
import time
from typing import Any, Callable, Dict, Optional, Tuple

_MISS = object()


class TTLCache:
    """
    Key/value cache with a fixed time-to-live per entry.

    A ttl of 0 disables caching entirely (every lookup misses), which is what
    tests use when they mutate settings between requests.
    """

    def __init__(self, ttl_seconds: float = 120, clock: Optional[Callable[[], float]] = None):
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: Dict[str, Tuple[float, Any]] = {}

    def get(self, key: str):
        """Return cached value if still valid, else the _MISS sentinel."""
        entry = self._entries.get(key)
        if entry is None:
            return _MISS
        expires, value = entry
        if self._clock() < expires:
            return value
        del self._entries[key]
        return _MISS

    def set(self, key: str, value: Any):
        """Store a value with the cache TTL."""
        if self.ttl_seconds <= 0:
            return
        self._entries[key] = (self._clock() + self.ttl_seconds, value)

    def invalidate(self, key: str):
        self._entries.pop(key, None)

    def clear(self):
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
