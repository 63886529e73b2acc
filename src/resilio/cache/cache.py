"""Bounded TTL cache for API responses.

:class:`ResponseCache` stores values under string keys, each with its own
TTL. An entry is valid while ``now - stored_at < ttl``; expired entries
are treated as absent and removed when a lookup finds them.

Capacity is bounded by :meth:`ResponseCache.evict_expired`, which drops
expired entries and then, if the cache still holds more than
``max_size`` entries, the oldest ones by ``stored_at`` until ``max_size // 2``
remain. The
pass does not run on every write: each successful :meth:`~ResponseCache.set`
triggers it with probability ``CacheConfig.eviction_probability``. That
keeps the amortised cost of a write low at the price of letting the cache
briefly exceed ``max_size``; set the probability to ``1.0`` for a strict
bound.

Concurrent misses for the same key are not coalesced: every caller that
misses fetches and stores on its own.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Iterable, Optional

from resilio.cache.store import CacheStore, MemoryStore
from resilio.models import CacheConfig, CacheEntry, CacheEntryInfo, CacheStats
from resilio.output import debug, info, warning


class ResponseCache:
    """Key to value store with per-entry TTL and size-bounded eviction.

    Args:
        config: Sizing, TTL and eviction settings.
        store: Backend holding the entries. Defaults to a
            :class:`~resilio.cache.store.MemoryStore`.
        clock: Returns the current time in seconds.
        rng: Random source deciding when eviction runs.

    Example::

        cache = ResponseCache(CacheConfig(max_size=50))
        cache.set("GET:https://api.example.com/gates:", [{"id": "g1"}], ttl=3600)
        gates = cache.get("GET:https://api.example.com/gates:")
    """

    def __init__(
        self,
        config: CacheConfig,
        store: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._config = config
        self._store: CacheStore = store if store is not None else MemoryStore()
        self._clock = clock
        self._rng = rng or random.Random()

    @property
    def config(self) -> CacheConfig:
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for *key*, or *default* when missing or expired.

        An expired entry is deleted as a side effect.
        """
        entry = self._lookup(key)
        if entry is None:
            return default
        return entry.value

    def contains(self, key: str) -> bool:
        """``True`` when *key* holds an unexpired entry."""
        return self._lookup(key) is not None

    def set(self, key: str, value: Any, ttl: float) -> bool:
        """Store *value* under *key* for *ttl* seconds.

        A ``ttl`` of zero or less marks the value as not cacheable and the
        call does nothing. A failing store is reported and leaves earlier
        entries untouched.

        Returns:
            ``True`` if the value was stored.
        """
        if not self._config.enabled:
            return False
        if ttl <= 0:
            debug(f"Skipping cache for non-cacheable key: {key}")
            return False

        entry = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=ttl)
        try:
            self._store.set(entry)
        except Exception as exc:
            warning(f"Failed to cache {key}: {exc}")
            return False
        debug(f"Cached {key} (ttl={ttl:g}s)")

        if self._rng.random() < self._config.eviction_probability:
            self.evict_expired()
        return True

    def invalidate(self, pattern: Optional[str] = None) -> int:
        """Remove entries whose key contains *pattern*; no pattern clears all.

        Returns:
            The number of removed entries.
        """
        if pattern is None:
            return self.clear()
        return self.invalidate_matching([pattern])

    def invalidate_matching(self, fragments: Iterable[str]) -> int:
        """Remove entries whose key contains any of *fragments*."""
        fragments = [f for f in fragments if f]
        removed = 0
        for entry in self._store.entries():
            if any(fragment in entry.key for fragment in fragments):
                self._store.delete(entry.key)
                removed += 1
        if removed:
            info(f"Invalidated {removed} cache entries matching {', '.join(fragments)}")
        return removed

    def evict_expired(self) -> int:
        """Drop expired entries, then shrink to half capacity if still over it.

        Returns:
            The number of removed entries.
        """
        now = self._clock()
        removed = 0
        live: list[CacheEntry] = []
        for entry in self._store.entries():
            if entry.is_valid(now):
                live.append(entry)
            else:
                self._store.delete(entry.key)
                removed += 1

        max_size = self._config.max_size
        if len(live) > max_size:
            live.sort(key=lambda e: e.stored_at)
            for entry in live[: len(live) - max_size // 2]:
                self._store.delete(entry.key)
                removed += 1

        if removed:
            debug(f"Evicted {removed} cache entries, {len(self._store)} remaining")
        return removed

    def clear(self) -> int:
        """Remove every entry and return how many there were."""
        size = len(self._store)
        self._store.clear()
        info(f"Cleared all cache ({size} entries)")
        return size

    def stats(self) -> CacheStats:
        """Size plus age and TTL of every stored entry, expired or not."""
        now = self._clock()
        entries = [
            CacheEntryInfo(key=e.key, age=e.age(now), ttl=e.ttl)
            for e in self._store.entries()
        ]
        return CacheStats(size=len(entries), entries=entries)

    def close(self) -> None:
        """Release the backing store."""
        self._store.close()

    def __len__(self) -> int:
        return len(self._store)

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        if not self._config.enabled:
            return None
        entry = self._store.get(key)
        if entry is None:
            debug(f"Cache miss: {key}")
            return None
        now = self._clock()
        if not entry.is_valid(now):
            debug(f"Cache expired: {key} (age={entry.age(now):.1f}s, ttl={entry.ttl:g}s)")
            self._store.delete(key)
            return None
        debug(f"Cache hit: {key}")
        return entry
