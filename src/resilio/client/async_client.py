"""Asynchronous HTTP client with response caching, retry and offline support.

This module provides :class:`ResilientClient`, the request facade of
resilio. It wraps :class:`httpx.AsyncClient` and routes every call through
the shared :class:`~resilio.context.Resilience` components:

- **Reads** (GET) -- served from the response cache when possible. On a
  miss the call runs through the retry executor and a successful payload
  is cached with the TTL chosen by :mod:`resilio.cache.policy`.
- **Writes** (POST, PUT, PATCH, DELETE) -- never cached. They run through
  the retry executor and, on success, invalidate cached entries sharing
  the request's base path.
- **Per-call timeout** -- each network call carries its own timeout
  (``ApiConfig.timeout``, 5 s by default). A timeout is retryable and
  consumes one attempt.
- **Error mapping** -- non-2xx responses and transport failures become
  typed :mod:`resilio.exceptions` errors whose ``kind`` drives retry
  classification. A 401/403 also clears the cache.

Two concurrent misses on the same URL each fetch the payload; there is no
in-flight de-duplication.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx

from resilio import __version__
from resilio.context import Resilience
from resilio.exceptions import ConnectionError_, TimeoutError_, error_for_status
from resilio.models import ApiConfig, QueuedOperation, RetryConfig, TTLClass
from resilio.output import debug, info, warning
from resilio.client.response import error_detail, extract_response_data

T = TypeVar("T")

_MISS = object()


class ResilientClient:
    """Cached, retried access to the configuration API.

    Must be used as an async context manager.

    Args:
        config: Connection settings (base URL, headers, timeout).
        resilience: Shared cache, retry executor, queue and tracker.
        api_key: API key to send. When ``None`` it is resolved from
            ``config.api_key_source`` on entry, if set.
        transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with ResilientClient(config.api, resilience) as client:
            gates = await client.get("/gates")
            await client.post("/gates/my_gate/overrides", json_body={...})
    """

    def __init__(
        self,
        config: ApiConfig,
        resilience: Resilience,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._resilience = resilience
        self._api_key = api_key
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def resilience(self) -> Resilience:
        return self._resilience

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> ResilientClient:
        if self._api_key is None and self._config.api_key_source:
            from resilio.config import resolve_credential

            self._api_key = resolve_credential(self._config.api_key_source)

        self._client = httpx.AsyncClient(
            headers=self._build_headers(),
            timeout=self._config.timeout,
            verify=self._config.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Any = None,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
        retry: Optional[RetryConfig] = None,
        ttl_class: Optional[TTLClass] = None,
        force_refresh: bool = False,
    ) -> Any:
        """Send a request through the cache and the retry executor.

        Args:
            method: HTTP method.
            path: URL path appended to ``base_url`` (or an absolute URL).
            params: Query parameters.
            json_body: JSON-serialisable body. Part of the cache key.
            headers: Extra request headers.
            timeout: Per-call timeout override in seconds.
            retry: Retry settings for this call.
            ttl_class: Explicit TTL bucket for a cacheable read.
            force_refresh: Skip the cache lookup for a read (the fresh
                payload is still cached).

        Returns:
            The decoded payload (see :func:`extract_response_data`).

        Raises:
            HTTPError: A subclass matching the final response status.
            TimeoutError_: The last attempt timed out.
            ConnectionError_: The last attempt failed at transport level.
            OfflineError: The network went offline and retries ran out.
        """
        method = method.upper()
        url = self._build_url(path, params)
        cache = self._resilience.cache

        if method == "GET" and not force_refresh:
            cached = cache.get(url, method, json_body, default=_MISS)
            if cached is not _MISS:
                debug(f"Returning cached response for {url}")
                return cached

        debug(f"{method} {url}")
        payload = await self._resilience.executor.with_retry(
            lambda: self._send(method, url, json_body, headers, timeout),
            retry,
        )

        if method == "GET":
            cache.set(url, method, payload, json_body, ttl_class)
        else:
            cache.invalidate(url)
        return payload

    async def get(self, path: str, **kwargs: Any) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> Any:
        return await self.request("POST", path, **kwargs)

    async def put(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PUT", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> Any:
        return await self.request("PATCH", path, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> Any:
        return await self.request("DELETE", path, **kwargs)

    async def with_offline_fallback(
        self,
        operation: Callable[[], Awaitable[T]],
        fallback: Callable[[], Union[T, Awaitable[T]]],
        retry: Optional[RetryConfig] = None,
    ) -> T:
        """Shortcut for :meth:`RetryExecutor.with_offline_fallback`."""
        return await self._resilience.executor.with_offline_fallback(
            operation, fallback, retry
        )

    def defer(self, queue_name: str, method: str, path: str, **kwargs: Any) -> QueuedOperation:
        """Queue a request to be replayed on the next reconnect drain.

        The client must still be open when the drain runs.
        """
        return self._resilience.queue.queue_for_retry(
            queue_name, lambda: self.request(method, path, **kwargs)
        )

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"resilio/{__version__}",
            **self._config.headers,
        }
        if self._api_key:
            headers[self._config.api_key_header] = self._api_key
        return headers

    def _build_url(self, path: str, params: Optional[dict[str, Any]]) -> str:
        if path.startswith(("http://", "https://")):
            url = httpx.URL(path)
        else:
            url = httpx.URL(self._config.base_url.rstrip("/") + "/" + path.lstrip("/"))
        if params:
            url = url.copy_merge_params(params)
        return str(url)

    async def _send(
        self,
        method: str,
        url: str,
        json_body: Any,
        headers: Optional[dict[str, str]],
        timeout: Optional[float],
    ) -> Any:
        """One network attempt: send, map errors, decode the payload."""
        assert self._client is not None, "Client not initialised -- use as async context manager"
        effective_timeout = timeout if timeout is not None else self._config.timeout

        try:
            response = await self._client.request(
                method,
                url,
                json=json_body,
                headers=headers,
                timeout=effective_timeout,
            )
        except httpx.TimeoutException as exc:
            raise TimeoutError_(
                f"Request timeout after {effective_timeout:g}s: {method} {url}"
            ) from exc
        except httpx.TransportError as exc:
            raise ConnectionError_(f"Network error: {method} {url}: {exc}") from exc

        if response.status_code >= 400:
            self._raise_for_status(response, url)

        info(f"{method} {url} -> HTTP {response.status_code}")
        return extract_response_data(response)

    def _raise_for_status(self, response: httpx.Response, url: str) -> None:
        status = response.status_code
        detail = error_detail(response)
        message = f"HTTP {status}: {detail}" if detail else f"HTTP {status}"

        if status in (401, 403):
            warning(f"Authentication error, clearing cache ({url})")
            self._resilience.cache.clear()

        body: Any
        try:
            body = response.json()
        except ValueError:
            body = response.text
        raise error_for_status(status, message, url, body)
