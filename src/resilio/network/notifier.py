"""Connectivity notifiers -- the source of online/offline transitions.

The :class:`~resilio.network.tracker.NetworkStatusTracker` never inspects
the platform itself. It talks to a :class:`ConnectivityNotifier`, so hosts
plug in whatever signal they have and tests drive transitions by hand.

Two implementations ship with resilio:

* :class:`ManualNotifier` -- state is set programmatically with
  :meth:`~ManualNotifier.set_online`.
* :class:`ProbeNotifier` -- periodically probes a URL with :mod:`httpx`.
  Any HTTP response counts as online; a transport error or timeout counts
  as offline.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional, Protocol

import httpx

from resilio.output import debug

Listener = Callable[[bool], None]


class ConnectivityNotifier(Protocol):
    """Interface the tracker subscribes to."""

    def is_online(self) -> bool:
        """Current connectivity as known to the notifier."""
        ...

    def subscribe(self, callback: Listener) -> None:
        """Register *callback* to receive the new state on every transition."""
        ...

    def unsubscribe(self, callback: Listener) -> None:
        """Remove a callback registered with :meth:`subscribe`."""
        ...


class ManualNotifier:
    """Notifier whose state is set by the host application.

    Args:
        online: Initial connectivity state.
    """

    def __init__(self, online: bool = True) -> None:
        self._online = online
        self._listeners: list[Listener] = []

    def is_online(self) -> bool:
        return self._online

    def subscribe(self, callback: Listener) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Listener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def set_online(self, online: bool) -> None:
        """Record the new state and notify listeners when it changed."""
        if online == self._online:
            return
        self._online = online
        for listener in list(self._listeners):
            listener(online)


class ProbeNotifier(ManualNotifier):
    """Notifier that polls a URL to detect connectivity.

    Args:
        url: Endpoint to probe with ``HEAD``.
        interval: Seconds between probes once started.
        timeout: Timeout for a single probe.
        client: Optional client to probe with; one is created and owned by
            the notifier otherwise.
        online: State assumed before the first probe completes.
    """

    def __init__(
        self,
        url: str,
        interval: float = 10.0,
        timeout: float = 3.0,
        client: Optional[httpx.AsyncClient] = None,
        online: bool = True,
    ) -> None:
        super().__init__(online=online)
        self._url = url
        self._interval = interval
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._task: Optional[asyncio.Task[None]] = None

    async def check(self) -> bool:
        """Probe once, update the state, and return it."""
        if self._client is None:
            self._client = httpx.AsyncClient()
        try:
            await self._client.head(self._url, timeout=self._timeout)
            online = True
        except httpx.TransportError as exc:
            debug(f"Connectivity probe to {self._url} failed: {exc}")
            online = False
        self.set_online(online)
        return online

    def start(self) -> None:
        """Start probing in the background on the running event loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Stop probing and close the client if the notifier created it."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self._interval)
