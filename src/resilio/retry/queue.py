"""Named queues of deferred operations, replayed when the network returns.

Callers park work with :meth:`RetryQueue.queue_for_retry` while offline.
:meth:`RetryQueue.drain` (wired to the tracker's reconnect signal by
:class:`~resilio.context.Resilience`, or called by hand) then replays every
non-empty queue:

* operations of one queue start staggered by ``index * stagger`` seconds so
  a large backlog does not hit the API in one burst;
* they run concurrently and settle independently; a failure is reported
  and returned, never raised;
* once all of them settled the queue is emptied. Failed operations are not
  re-queued.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from resilio.models import QueuedOperation
from resilio.output import error, info

DEFAULT_STAGGER = 0.1


class RetryQueue:
    """Process-wide store of deferred operations keyed by queue name.

    Args:
        stagger: Seconds between the start of consecutive operations of one
            queue during a drain.
        sleep: Awaitable sleep function, replaceable in tests.
    """

    def __init__(
        self,
        stagger: float = DEFAULT_STAGGER,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._stagger = stagger
        self._sleep = sleep
        self._queues: dict[str, list[QueuedOperation]] = {}
        self._drain_lock = asyncio.Lock()

    def queue_for_retry(
        self, queue_name: str, operation: Callable[[], Awaitable[Any]]
    ) -> QueuedOperation:
        """Append *operation* to *queue_name*, creating the queue on first use."""
        queued = QueuedOperation(queue_name=queue_name, operation=operation)
        self._queues.setdefault(queue_name, []).append(queued)
        info(f"Operation queued for retry in queue: {queue_name}")
        return queued

    def clear_retry_queue(self, queue_name: str) -> None:
        """Drop *queue_name* and everything still pending in it."""
        self._queues.pop(queue_name, None)
        info(f"Retry queue cleared: {queue_name}")

    def get_retry_queue_status(self) -> dict[str, int]:
        """Map every known queue name to its pending operation count."""
        return {name: len(ops) for name, ops in self._queues.items()}

    async def drain(self) -> dict[str, list[Any]]:
        """Replay every non-empty queue.

        Concurrent calls are serialised, so an operation is never replayed
        twice. Operations queued while a drain is running stay pending for
        the next drain.

        Returns:
            Per drained queue, the outcome of each operation in queue order:
            its result, or the exception it raised.
        """
        async with self._drain_lock:
            info("Processing retry queues...")
            summary: dict[str, list[Any]] = {}

            for queue_name, pending in list(self._queues.items()):
                if not pending:
                    continue
                batch = list(pending)
                info(f"Processing {len(batch)} operations in queue: {queue_name}")

                summary[queue_name] = await asyncio.gather(
                    *(self._replay(index, queued) for index, queued in enumerate(batch))
                )

                remaining = self._queues.get(queue_name)
                if remaining is not None:
                    drained = {id(queued) for queued in batch}
                    self._queues[queue_name] = [
                        queued for queued in remaining if id(queued) not in drained
                    ]

            info("Retry queue processing completed")
            return summary

    async def _replay(self, index: int, queued: QueuedOperation) -> Any:
        await self._sleep(index * self._stagger)
        try:
            result = await queued.operation()
        except Exception as exc:
            error(f"Queued operation {index + 1} in {queued.queue_name} failed: {exc}")
            return exc
        info(f"Queued operation {index + 1} in {queued.queue_name} completed successfully")
        return result
