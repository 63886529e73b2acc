"""Network reachability tracking.

:class:`NetworkStatusTracker` mirrors the state of a
:class:`~resilio.network.notifier.ConnectivityNotifier`:

* The initial state is read from the notifier at construction time.
* Going offline records ``last_online_timestamp``.
* Coming back online fires every reconnect listener. A listener that raises
  is reported and skipped; the rest still run. Listeners that return
  an awaitable (such as :meth:`~resilio.retry.RetryQueue.drain`) are
  scheduled as tasks on the running event loop.

The tracker is the only writer of :class:`~resilio.models.NetworkStatus`.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Any, Callable

from resilio.models import NetworkStatus
from resilio.network.notifier import ConnectivityNotifier
from resilio.output import error, info, warning


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NetworkStatusTracker:
    """Online/offline state plus a reconnect signal.

    Args:
        notifier: Source of connectivity transitions.
        clock: Returns the current time; used for ``last_online_timestamp``.
    """

    def __init__(
        self,
        notifier: ConnectivityNotifier,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._notifier = notifier
        self._clock = clock
        self._status = NetworkStatus(is_online=notifier.is_online())
        self._listeners: list[Callable[[], Any]] = []
        self._tasks: set[asyncio.Future[Any]] = set()
        notifier.subscribe(self._on_change)

    def is_online(self) -> bool:
        return self._status.is_online

    def get_network_status(self) -> NetworkStatus:
        """Return a copy of the current status."""
        return self._status.model_copy()

    def add_reconnect_listener(self, listener: Callable[[], Any]) -> None:
        """Call *listener* every time the network comes back online."""
        self._listeners.append(listener)

    async def wait_for_pending(self) -> None:
        """Wait until reconnect work scheduled so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop listening to the notifier."""
        self._notifier.unsubscribe(self._on_change)

    def _on_change(self, online: bool) -> None:
        if online == self._status.is_online:
            return
        if online:
            info("Network came back online")
            self._status.is_online = True
            self._fire_reconnect()
        else:
            warning("Network went offline")
            self._status.is_online = False
            self._status.last_online_timestamp = self._clock()

    def _fire_reconnect(self) -> None:
        for listener in list(self._listeners):
            try:
                result = listener()
            except Exception as exc:
                error(f"Reconnect listener failed: {exc}")
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            warning("No running event loop; reconnect work was not scheduled")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
