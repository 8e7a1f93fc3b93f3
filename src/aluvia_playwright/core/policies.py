"""Backoff policy between navigation attempts."""

import asyncio
import logging
import random
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class BackoffPolicy:
    """Exponential backoff with bounded additive jitter.

    ``delay(i) = base_delay_ms * 2**(i - 1) + uniform(0, jitter_ms)``,
    returned in seconds.
    """

    base_delay_ms: float = 300.0
    jitter_ms: float = 100.0
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def delay(self, attempt: int) -> float:
        """Return the wait before ``attempt`` in seconds.

        Args:
            attempt: 1-based attempt index

        Raises:
            ValueError: If attempt is below 1
        """
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")

        exponential = self.base_delay_ms * (2 ** (attempt - 1))
        jitter = self.rng.uniform(0, self.jitter_ms) if self.jitter_ms > 0 else 0.0
        return (exponential + jitter) / 1000

    async def wait(self, attempt: int) -> float:
        """Suspend the calling task for ``delay(attempt)`` and return it."""
        delay = self.delay(attempt)
        logger.debug(f"Backing off {delay:.3f}s before attempt {attempt}")
        await asyncio.sleep(delay)
        return delay
