"""
In-process response cache for provider search results.

Entries live for a fixed TTL and are dropped lazily when read after expiry.
There is no size bound and no eviction policy beyond expiry.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

from .metrics import cache_hits_total, cache_misses_total, cache_size


class TTLCache:
    def __init__(
        self,
        name: str,
        ttl_seconds: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}
        self.hits = 0
        self.misses = 0

    @property
    def enabled(self) -> bool:
        return self.ttl_seconds > 0

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is not None and entry[1] <= self._clock():
            self._entries.pop(key, None)
            entry = None
        if entry is None:
            self.misses += 1
            cache_misses_total.labels(cache_name=self.name).inc()
            return None
        self.hits += 1
        cache_hits_total.labels(cache_name=self.name).inc()
        return entry[0]

    def set(self, key: str, value: Any) -> None:
        if not self.enabled:
            return
        self._entries[key] = (value, self._clock() + self.ttl_seconds)
        cache_size.labels(cache_name=self.name).set(len(self._entries))

    def clear(self) -> None:
        self._entries.clear()
        cache_size.labels(cache_name=self.name).set(0)

    def stats(self) -> dict[str, Any]:
        return {
            "entries": len(self._entries),
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }


__all__ = ["TTLCache"]
