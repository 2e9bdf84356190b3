"""
Retry Backoff

Exponential backoff used between attempts of a failed extraction job.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from loguru import logger


@dataclass
class ExponentialBackoff:
    """
    Exponential backoff configuration.

    Calculates the wait after failed attempt N (1-indexed) as:
        base_delay * multiplier ^ (N - 1)

    so with the defaults attempt 1 waits base_delay, attempt 2 waits
    2 * base_delay, attempt 3 waits 4 * base_delay.
    """

    base_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: Optional[float] = None
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def delay_for(self, attempt: int) -> float:
        """
        Delay after a failed attempt.

        Args:
            attempt: Attempt number that just failed (1-indexed)

        Returns:
            Delay in seconds
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")

        delay = self.base_delay * (self.multiplier ** (attempt - 1))
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return max(0.0, delay)

    def delays(self, max_attempts: int) -> Iterator[float]:
        """Waits between `max_attempts` attempts (one fewer than attempts)."""
        for attempt in range(1, max_attempts):
            yield self.delay_for(attempt)

    def wait(self, attempt: int) -> float:
        """Block for the delay after `attempt` and return it."""
        delay = self.delay_for(attempt)
        logger.debug(f"Backing off {delay:.2f}s after attempt {attempt}")
        self.sleep(delay)
        return delay
