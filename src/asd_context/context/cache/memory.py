"""In-memory bundle cache with lazy TTL expiry.

Best-effort, not exactly-once: there is no in-flight marker, so two
concurrent requests for the same key may both miss and both recompute.
The last ``put`` wins.
"""

from __future__ import annotations

import time
from typing import Callable

from asd_context.context.models import CacheEntry, CacheKey, ContextBundle


def _epoch_ms() -> float:
    return time.time() * 1000


class BundleCache:
    """Dict-backed cache of context bundles keyed by request identity.

    Entries older than ``ttl_ms`` are removed when read; nothing sweeps in
    the background.  Bundles are deep-copied on the way in and out, so a
    caller editing its bundle never changes what later hits return.
    """

    def __init__(self, ttl_ms: int = 300_000, *, clock: Callable[[], float] = _epoch_ms) -> None:
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._store: dict[CacheKey, CacheEntry] = {}

    def get(self, key: CacheKey) -> ContextBundle | None:
        """Return the live bundle for *key*, or None on miss or expiry."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.age_ms(self._clock()) > self.ttl_ms:
            del self._store[key]
            return None
        entry.hit_count += 1
        return entry.bundle.model_copy(deep=True)

    def put(self, key: CacheKey, bundle: ContextBundle) -> None:
        self._store[key] = CacheEntry(
            key=key, bundle=bundle.model_copy(deep=True), stored_at_ms=self._clock()
        )

    def invalidate(self, key: CacheKey) -> None:
        self._store.pop(key, None)

    def clear(self) -> None:
        self._store.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def keys(self) -> list[CacheKey]:
        return list(self._store)

    def total_hits(self) -> int:
        """Hits served by the entries currently held."""
        return sum(entry.hit_count for entry in self._store.values())
