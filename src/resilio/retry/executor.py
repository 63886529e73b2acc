"""Retry executor with error classification and offline awareness.

:class:`RetryExecutor` wraps any zero-argument coroutine factory and drives
it through this state machine::

    Attempting(1) --ok--> Succeeded
    Attempting(n) --error, budget left, retryable--> wait delay(n-1) --> Attempting(n+1)
    Attempting(n) --error, not retryable--> Failed (error raised as-is)
    Attempting(n) --error, n > max_retries--> Failed (last error raised)

Before every attempt after the first, the executor asks the
:class:`~resilio.network.NetworkStatusTracker` whether the network is up.
While offline the attempt fails with :class:`~resilio.exceptions.OfflineError`
without calling the operation.

Error classification (:func:`is_retryable_error`):

1. A custom ``RetryConfig.retryable`` predicate, when given, decides alone.
2. A :class:`~resilio.exceptions.ResilioError` with a known, non-transient
   :class:`~resilio.exceptions.ErrorKind` (auth, not found, client,
   validation) is never retried, whatever its message says.
3. Otherwise the error is retryable when one of
   ``RetryConfig.retryable_errors`` occurs (case-insensitive) in its
   message, its kind value or its HTTP status code. With the default list
   an HTTP 501 is therefore not retried, and narrowing the list to
   ``["timeout"]`` stops retries of server errors.
"""

from __future__ import annotations

import asyncio
import functools
import inspect
import random
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Iterable,
    Optional,
    TypeVar,
    Union,
)

from resilio.exceptions import ErrorKind, OfflineError, ResilioError
from resilio.models import RetryConfig
from resilio.output import error, info, warning
from resilio.retry.backoff import BackoffPolicy

if TYPE_CHECKING:
    from resilio.network.tracker import NetworkStatusTracker

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]
Sleep = Callable[[float], Awaitable[Any]]


def _error_labels(exc: BaseException) -> list[str]:
    """Texts of *exc* that ``retryable_errors`` fragments are matched against."""
    labels = [str(exc).lower()]
    if isinstance(exc, ResilioError) and exc.kind is not ErrorKind.UNKNOWN:
        labels.append(exc.kind.value)
        status_code = getattr(exc, "status_code", None)
        if status_code is not None:
            labels.append(str(status_code))
    return labels


def is_retryable_error(exc: BaseException, config: RetryConfig) -> bool:
    """Decide whether *exc* is worth another attempt under *config*."""
    if config.retryable is not None:
        return config.retryable(exc)
    if isinstance(exc, ResilioError) and exc.kind is not ErrorKind.UNKNOWN:
        if not exc.is_transient:
            return False
    fragments = [fragment.lower() for fragment in config.retryable_errors]
    return any(
        fragment in label for fragment in fragments for label in _error_labels(exc)
    )


class RetryExecutor:
    """Run operations with a retry budget and exponential backoff.

    Args:
        tracker: Network tracker consulted before each retry. When ``None``
            the network is assumed to be up.
        defaults: Config used when a call does not pass its own.
        sleep: Awaitable sleep function, replaceable in tests.
        rng: Random source for backoff jitter.

    Example::

        executor = RetryExecutor(tracker)
        gates = await executor.with_retry(lambda: client.fetch("/gates"))
    """

    def __init__(
        self,
        tracker: Optional[NetworkStatusTracker] = None,
        defaults: Optional[RetryConfig] = None,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._tracker = tracker
        self._defaults = defaults or RetryConfig()
        self._sleep = sleep
        self._rng = rng

    @property
    def defaults(self) -> RetryConfig:
        return self._defaults

    def is_online(self) -> bool:
        return self._tracker is None or self._tracker.is_online()

    async def with_retry(
        self, operation: Operation[T], config: Optional[RetryConfig] = None
    ) -> T:
        """Run *operation* until it succeeds or the retry budget is spent.

        Args:
            operation: Zero-argument callable returning an awaitable.
            config: Retry settings for this call; the executor defaults
                apply when omitted.

        Returns:
            The operation's result.

        Raises:
            Exception: The first non-retryable error, or the error from the
                final attempt once ``max_retries`` retries have failed.
        """
        cfg = config or self._defaults
        backoff = BackoffPolicy.from_config(cfg, self._rng)
        attempt = 0

        while True:
            attempt += 1
            try:
                if attempt > 1 and not self.is_online():
                    raise OfflineError()

                result = await operation()

                if attempt > 1:
                    info(f"Operation succeeded on attempt {attempt}")
                return result
            except Exception as exc:
                if not is_retryable_error(exc, cfg):
                    warning(f"Non-retryable error encountered: {exc}")
                    raise

                if attempt > cfg.max_retries:
                    error(f"All {cfg.max_retries} retries exhausted: {exc}")
                    raise

                delay = backoff.delay(attempt - 1)
                info(f"Attempt {attempt} failed, retrying in {delay:.2f}s: {exc}")
                if cfg.on_retry is not None:
                    cfg.on_retry(attempt, exc)
                await self._sleep(delay)

    def create_retryable(
        self,
        fn: Callable[..., Awaitable[T]],
        config: Optional[RetryConfig] = None,
    ) -> Callable[..., Awaitable[T]]:
        """Wrap an async function so every call goes through :meth:`with_retry`."""

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.with_retry(lambda: fn(*args, **kwargs), config)

        return wrapper

    async def batch_retry(
        self,
        operations: Iterable[Operation[T]],
        config: Optional[RetryConfig] = None,
    ) -> list[Union[T, BaseException]]:
        """Retry each operation independently and collect the outcomes.

        Returns:
            One entry per operation, in order: its result, or the terminal
            exception when it could not be completed. One exhausted
            operation never aborts the others.
        """
        return await asyncio.gather(
            *(self.with_retry(op, config) for op in operations),
            return_exceptions=True,
        )

    async def with_offline_fallback(
        self,
        operation: Operation[T],
        fallback: Callable[[], Union[T, Awaitable[T]]],
        config: Optional[RetryConfig] = None,
    ) -> T:
        """Run *operation* with retries, substituting *fallback* when offline.

        If every attempt fails and the tracker reports offline at that
        moment, the fallback's value is returned instead of raising. While
        online the error propagates unchanged.
        """
        try:
            return await self.with_retry(operation, config)
        except Exception:
            if self.is_online():
                raise
            info("Using offline fallback due to network unavailability")
            result = fallback()
            if inspect.isawaitable(result):
                return await result
            return result
