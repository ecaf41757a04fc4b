"""Retry policy for classifier calls."""

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable

Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class RetryPolicy:
    """
    Linear, capped backoff with optional jitter.

    Attempt ``n`` (1-based) waits ``min(max_delay, base_delay * n)`` seconds,
    plus up to ``jitter`` extra seconds. There is no attempt limit: callers
    that need a deadline wrap the whole operation in their own timeout.
    """

    base_delay: float = 1.0
    max_delay: float = 5.0
    jitter: float = 0.0
    sleep: Sleeper = field(default=asyncio.sleep, repr=False)
    _random: random.Random = field(default_factory=random.Random, init=False, repr=False)

    def __post_init__(self):
        if self.base_delay < 0 or self.max_delay < 0 or self.jitter < 0:
            raise ValueError("Retry delays must be non-negative")
        if self.max_delay < self.base_delay:
            self.max_delay = self.base_delay

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number ``attempt``."""
        delay = min(self.max_delay, self.base_delay * max(1, attempt))
        if self.jitter:
            delay += self._random.uniform(0, self.jitter)
        return delay
