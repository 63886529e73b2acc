"""Request-level cache surface used by the client.

:class:`CacheManager` speaks in requests (method, URL, body) rather than
keys: it builds the key, picks the TTL from the policy in
:mod:`resilio.cache.policy`, and invalidates by URL base path after
mutations.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from resilio.cache.cache import ResponseCache
from resilio.cache.policy import (
    base_path,
    is_cacheable_method,
    make_cache_key,
    ttl_for_request,
)
from resilio.models import CacheStats, TTLClass
from resilio.output import debug

DataKind = Literal["gates", "experiments", "dynamic-configs", "all"]

_DATA_FRAGMENTS: dict[str, tuple[str, ...]] = {
    "gates": ("/gates",),
    "experiments": ("/experiments",),
    "dynamic-configs": ("/dynamic-configs", "/dynamic_configs"),
}


class CacheManager:
    """Facade over a :class:`ResponseCache` keyed by request.

    Args:
        cache: The underlying response cache.
    """

    def __init__(self, cache: ResponseCache) -> None:
        self._cache = cache

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    def get(self, url: str, method: str = "GET", body: Any = None, default: Any = None) -> Any:
        """Return the cached payload for a request, or *default* on a miss."""
        return self._cache.get(make_cache_key(method, url, body), default)

    def set(
        self,
        url: str,
        method: str,
        value: Any,
        body: Any = None,
        ttl_class: Optional[TTLClass] = None,
    ) -> bool:
        """Cache *value* for a request using the TTL policy.

        Non-GET requests resolve to TTL 0 and are never stored.
        """
        ttl = ttl_for_request(method, url, self._cache.config, ttl_class)
        return self._cache.set(make_cache_key(method, url, body), value, ttl)

    def should_cache(self, url: str, method: str) -> bool:
        should = is_cacheable_method(method) and ttl_for_request(method, url, self._cache.config) > 0
        debug(f"Cache decision for {method.upper()} {url}: {should}")
        return should

    def invalidate(self, url: Optional[str] = None) -> int:
        """Drop entries related to *url* (by base path), or everything."""
        if url is None:
            return self._cache.clear()
        return self._cache.invalidate(base_path(url))

    def invalidate_data(self, kind: DataKind) -> int:
        """Drop every cached gate, experiment or dynamic-config response."""
        if kind == "all":
            fragments = [f for group in _DATA_FRAGMENTS.values() for f in group]
        else:
            fragments = list(_DATA_FRAGMENTS[kind])
        return self._cache.invalidate_matching(fragments)

    def clear(self) -> int:
        return self._cache.clear()

    def stats(self) -> CacheStats:
        return self._cache.stats()
