"""In-memory TTL cache for public feed pages."""
import time
from threading import Lock
from typing import Any, Callable, Hashable

from pokepals.core import config


class TTLCache:
    """Maps keys to values that expire ``ttl_seconds`` after being stored."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[float, Any]] = {}
        self._lock = Lock()
        self._generation = 0

    def get(self, key: Hashable) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    @property
    def generation(self) -> int:
        """Bumped by every ``clear``; pass it back to ``set`` to drop stale values."""
        with self._lock:
            return self._generation

    def set(self, key: Hashable, value: Any, generation: int | None = None) -> bool:
        if self.ttl_seconds <= 0:
            return False
        with self._lock:
            if generation is not None and generation != self._generation:
                return False
            self._entries[key] = (self._clock() + self.ttl_seconds, value)
            return True

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


public_feed_cache = TTLCache(config.FEED_CACHE_TTL_SECONDS)


def invalidate_public_feed() -> None:
    public_feed_cache.clear()
