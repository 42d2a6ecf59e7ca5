# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Retry Policy — Bounded attempt budgets for polling loops.

A multiplier of 1.0 gives a fixed inter-attempt delay, which is what
readiness polling uses.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

logger = logging.getLogger("orchestrator.retry")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behavior."""
    max_attempts: int = 30
    backoff_base: float = 5.0        # seconds
    backoff_multiplier: float = 1.0  # 1.0 = fixed delay
    max_backoff: float = 60.0        # cap

    @classmethod
    def fixed(cls, max_attempts: int, delay: float) -> RetryPolicy:
        return cls(max_attempts=max_attempts, backoff_base=delay, max_backoff=max(delay, 0.0))

    def next_delay(self, attempt: int) -> float:
        """Delay after `attempt` (1-based) before the next one."""
        delay = self.backoff_base * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff)

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    @property
    def budget_seconds(self) -> float:
        """Total time spent sleeping across a full run of attempts."""
        return sum(self.next_delay(a) for a in range(1, self.max_attempts))

    async def wait(self, attempt: int) -> None:
        delay = self.next_delay(attempt)
        if delay > 0:
            logger.debug("Retry: waiting %.1fs before attempt %d", delay, attempt + 1)
        await asyncio.sleep(delay)
