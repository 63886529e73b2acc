"""Key-value backends for :class:`~resilio.cache.ResponseCache`.

A store only keeps :class:`~resilio.models.CacheEntry` objects by key. TTL
checks and eviction live in :class:`~resilio.cache.ResponseCache`, so both
backends behave the same:

* :class:`MemoryStore` -- a plain dict with process lifetime (default).
* :class:`DiskStore` -- entries persisted with :mod:`diskcache` in the
  cache directory, so a cached payload survives a restart of the CLI.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional, Protocol

import diskcache

from resilio.models import CacheEntry


class CacheStore(Protocol):
    def get(self, key: str) -> Optional[CacheEntry]: ...

    def set(self, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def entries(self) -> Iterator[CacheEntry]: ...

    def clear(self) -> None: ...

    def close(self) -> None: ...

    def __len__(self) -> int: ...


class MemoryStore:
    """In-process dict store."""

    def __init__(self) -> None:
        self._data: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._data.get(key)

    def set(self, entry: CacheEntry) -> None:
        self._data[entry.key] = entry

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def entries(self) -> Iterator[CacheEntry]:
        return iter(list(self._data.values()))

    def clear(self) -> None:
        self._data.clear()

    def close(self) -> None:
        pass

    def __len__(self) -> int:
        return len(self._data)


class DiskStore:
    """Store backed by a :class:`diskcache.Cache` under ``<cache_dir>/responses``.

    Entries are written as plain dicts; values must therefore be picklable
    (decoded JSON always is).

    Args:
        cache_dir: Root directory for the store.
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self.directory = Path(cache_dir) / "responses"
        self._cache: Optional[diskcache.Cache] = diskcache.Cache(str(self.directory))

    def get(self, key: str) -> Optional[CacheEntry]:
        data = self._require().get(key)
        if data is None:
            return None
        return CacheEntry.model_validate(data)

    def set(self, entry: CacheEntry) -> None:
        self._require().set(entry.key, entry.model_dump())

    def delete(self, key: str) -> None:
        self._require().delete(key)

    def entries(self) -> Iterator[CacheEntry]:
        cache = self._require()
        for key in list(cache.iterkeys()):
            entry = self.get(key)
            if entry is not None:
                yield entry

    def clear(self) -> None:
        self._require().clear()

    def close(self) -> None:
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    def __len__(self) -> int:
        return len(self._require())

    def _require(self) -> diskcache.Cache:
        assert self._cache is not None, "DiskStore used after close()"
        return self._cache
