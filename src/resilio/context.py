"""Composition root for the resilience layer.

:class:`Resilience` owns the process-wide pieces -- the network tracker,
the retry queue, the retry executor and the response cache -- and wires the
tracker's reconnect signal to :meth:`~resilio.retry.RetryQueue.drain`.
Create one at application start and pass it to every
:class:`~resilio.client.ResilientClient`.

Example::

    resilience = Resilience.create(resolve_config())
    try:
        async with ResilientClient(config.api, resilience) as client:
            ...
    finally:
        resilience.close()
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from resilio.cache import CacheManager, DiskStore, ResponseCache
from resilio.cache.store import CacheStore
from resilio.models import GlobalConfig
from resilio.network import ConnectivityNotifier, ManualNotifier, NetworkStatusTracker
from resilio.retry import RetryExecutor, RetryQueue


@dataclass
class Resilience:
    """Shared cache, retry and connectivity state.

    Attributes:
        tracker: Online/offline state and reconnect signal.
        queue: Deferred operations replayed on reconnect.
        executor: Retry executor consulting :attr:`tracker`.
        cache: Request-level response cache.
    """

    tracker: NetworkStatusTracker
    queue: RetryQueue
    executor: RetryExecutor
    cache: CacheManager

    @classmethod
    def create(
        cls,
        config: Optional[GlobalConfig] = None,
        notifier: Optional[ConnectivityNotifier] = None,
        cache_dir: Optional[Path] = None,
    ) -> Resilience:
        """Build and wire all components from *config*.

        Args:
            config: Effective configuration; defaults apply when ``None``.
            notifier: Connectivity source. Defaults to a
                :class:`~resilio.network.ManualNotifier` that starts online.
            cache_dir: Directory for the persistent store when
                ``cache.persist`` is set. Defaults to the XDG cache dir.
        """
        config = config or GlobalConfig()

        store: Optional[CacheStore] = None
        if config.cache.persist:
            if cache_dir is None:
                from resilio.config import get_cache_dir

                cache_dir = get_cache_dir()
            store = DiskStore(cache_dir)

        tracker = NetworkStatusTracker(notifier or ManualNotifier(online=True))
        queue = RetryQueue()
        tracker.add_reconnect_listener(queue.drain)

        return cls(
            tracker=tracker,
            queue=queue,
            executor=RetryExecutor(tracker, defaults=config.retry),
            cache=CacheManager(ResponseCache(config.cache, store=store)),
        )

    def close(self) -> None:
        """Detach from the notifier and release the cache store."""
        self.tracker.close()
        self.cache.cache.close()
