"""Cache keys and TTL classification.

Keys have the form ``"{METHOD}:{URL}:{json(body) | ''}"``. The body is
serialised with sorted keys, so two logically identical requests always
collide on the same key.

TTL is a pure function of method and URL path:

* non-GET -- ``0``, never cached;
* GET on a slow-changing path (``CacheConfig.long_ttl_paths``: gates,
  experiments, dynamic configs) -- ``long_ttl`` (1 hour);
* any other GET -- ``default_ttl`` (5 minutes).

``short_ttl`` (30 seconds) is only used when a caller asks for
:attr:`~resilio.models.TTLClass.SHORT` explicitly.
"""

from __future__ import annotations

import json
from typing import Any, Optional
from urllib.parse import urlsplit

from resilio.models import CacheConfig, TTLClass


def make_cache_key(method: str, url: str, body: Any = None) -> str:
    """Build the cache key for a request."""
    serialised = ""
    if body is not None:
        serialised = json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    return f"{method.upper()}:{url}:{serialised}"


def base_path(url: str) -> str:
    """Return *url* without its query string."""
    return url.split("?", 1)[0]


def is_cacheable_method(method: str) -> bool:
    return method.upper() == "GET"


def ttl_for_request(
    method: str,
    url: str,
    config: CacheConfig,
    ttl_class: Optional[TTLClass] = None,
) -> float:
    """Resolve the TTL in seconds for a request; ``0`` means not cacheable."""
    if not is_cacheable_method(method):
        return 0
    if ttl_class is TTLClass.SHORT:
        return config.short_ttl
    if ttl_class is TTLClass.LONG:
        return config.long_ttl
    if ttl_class is TTLClass.DEFAULT:
        return config.default_ttl

    path = urlsplit(url).path
    if any(fragment in path for fragment in config.long_ttl_paths):
        return config.long_ttl
    return config.default_ttl
