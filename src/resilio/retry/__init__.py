"""Retry machinery: backoff schedule, retry executor, and deferred-work queues.

* :class:`BackoffPolicy` -- attempt index to jittered, capped delay.
* :class:`RetryExecutor` -- retry budget, error classification, offline
  short-circuit, batch and offline-fallback helpers.
* :class:`RetryQueue` -- named queues drained when connectivity returns.
"""

from resilio.retry.backoff import BackoffPolicy
from resilio.retry.executor import RetryExecutor, is_retryable_error
from resilio.retry.queue import RetryQueue

__all__ = ["BackoffPolicy", "RetryExecutor", "RetryQueue", "is_retryable_error"]
