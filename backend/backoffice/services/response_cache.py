from __future__ import annotations

import time
from typing import Any, Callable, Protocol


class ResponseCache(Protocol):
    async def connect(self) -> None: ...

    async def close(self) -> None: ...

    async def get(self, key: str) -> Any | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...


class NullCache:
    """Cache that never stores anything; used when caching is disabled."""

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    async def get(self, key: str) -> Any | None:
        return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        return None


DEFAULT_MAX_ENTRIES = 1000


class MemoryCache:
    """In-process TTL cache holding at most ``max_entries`` keys.

    Expired entries are dropped on read and swept on every write; past the cap
    the oldest writes are evicted first. Writes to records never invalidate.
    """

    def __init__(
        self, clock: Callable[[], float] = time.monotonic, *, max_entries: int = DEFAULT_MAX_ENTRIES
    ) -> None:
        self._clock = clock
        self.max_entries = max(1, max_entries)
        self._entries: dict[str, tuple[float, Any]] = {}

    async def connect(self) -> None:
        self._entries.clear()

    async def close(self) -> None:
        self._entries.clear()

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        now = self._clock()
        self._sweep(now)
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            del self._entries[next(iter(self._entries))]
        self._entries[key] = (now + ttl_seconds, value)

    @property
    def size(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]


def build_cache(enabled: bool) -> ResponseCache:
    return MemoryCache() if enabled else NullCache()
