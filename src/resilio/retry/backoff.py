"""Exponential backoff with jitter.

:class:`BackoffPolicy` maps a zero-indexed retry attempt to a delay in
seconds::

    raw    = base_delay * backoff_multiplier ** attempt
    jitter = uniform(0, 0.1) * raw
    delay  = min(raw + jitter, max_delay)

The jitter spreads out retries from many callers that failed at the same
moment so they do not hit the API again in lockstep. ``attempt=0`` is the
wait before the second overall try.
"""

from __future__ import annotations

import random
from typing import Optional

from resilio.models import RetryConfig

JITTER_RATIO = 0.1


class BackoffPolicy:
    """Delay schedule for one retry sequence.

    Args:
        base_delay: Delay before the first retry, in seconds.
        max_delay: Ceiling applied after jitter.
        backoff_multiplier: Growth factor between consecutive attempts.
        rng: Random source for jitter. Defaults to the module-level
            :mod:`random` generator.
    """

    def __init__(
        self,
        base_delay: float,
        max_delay: float,
        backoff_multiplier: float,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self._rng = rng or random.Random()

    @classmethod
    def from_config(
        cls, config: RetryConfig, rng: Optional[random.Random] = None
    ) -> BackoffPolicy:
        return cls(
            base_delay=config.base_delay,
            max_delay=config.max_delay,
            backoff_multiplier=config.backoff_multiplier,
            rng=rng,
        )

    def raw_delay(self, attempt: int) -> float:
        """Un-jittered, uncapped delay for *attempt*."""
        return self.base_delay * self.backoff_multiplier**attempt

    def delay(self, attempt: int) -> float:
        """Jittered delay for *attempt*, capped at :attr:`max_delay`."""
        raw = self.raw_delay(attempt)
        jitter = self._rng.uniform(0, JITTER_RATIO) * raw
        return min(raw + jitter, self.max_delay)
