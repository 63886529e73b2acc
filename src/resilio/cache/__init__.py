"""Bounded TTL response caching for resilio.

:class:`ResponseCache` is the key-level store with TTL expiry and
probabilistic size eviction; :class:`CacheManager` is the request-level
surface (method, URL, body) the client uses. Entries live in memory by
default, or in a :mod:`diskcache` directory when ``cache.persist`` is
enabled (:class:`~resilio.models.CacheConfig`).
"""

from resilio.cache.cache import ResponseCache
from resilio.cache.manager import CacheManager
from resilio.cache.policy import make_cache_key, ttl_for_request
from resilio.cache.store import DiskStore, MemoryStore

__all__ = [
    "CacheManager",
    "DiskStore",
    "MemoryStore",
    "ResponseCache",
    "make_cache_key",
    "ttl_for_request",
]
