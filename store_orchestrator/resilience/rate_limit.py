# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Rate Window — Fixed-window request counting keyed by client origin.

Two interchangeable backends:
  - InMemoryRateWindow: per-process counters
  - RedisRateWindow:    INCR + EXPIRE on orch:ratelimit:{origin}:{window}
Both answer `hit(origin)` with a RateDecision. The Redis window fails
open: when Redis cannot be reached the request is allowed, a warning is
logged and `rate_window_errors` is incremented. Capacity and concurrency
limits still apply.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Protocol, Tuple

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from store_orchestrator.core.metrics import orchestrator_metrics

logger = logging.getLogger("orchestrator.rate_limit")

RATE_WINDOW_ERRORS = "rate_window_errors"


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    count: int
    retry_after: int = 0


class RateWindow(Protocol):
    async def hit(self, origin: str) -> RateDecision:
        ...


def _window_bounds(now: float, window_seconds: int) -> Tuple[int, int]:
    """Return (window index, seconds until the window closes)."""
    index = int(now // window_seconds)
    remaining = (index + 1) * window_seconds - now
    return index, max(1, math.ceil(remaining))


class InMemoryRateWindow:
    """Fixed window counters held in this process."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._limit = limit
        self._window = window_seconds
        self._clock = clock
        self._counts: Dict[str, Tuple[int, int]] = {}

    async def hit(self, origin: str) -> RateDecision:
        index, retry_after = _window_bounds(self._clock(), self._window)
        window_index, count = self._counts.get(origin, (index, 0))
        if window_index != index:
            count = 0
        count += 1
        self._counts[origin] = (index, count)
        self._prune(index)

        if count > self._limit:
            return RateDecision(allowed=False, count=count, retry_after=retry_after)
        return RateDecision(allowed=True, count=count)

    def _prune(self, current_index: int) -> None:
        stale = [o for o, (i, _c) in self._counts.items() if i != current_index]
        for origin in stale:
            del self._counts[origin]


class RedisRateWindow:
    """Fixed window counters shared through Redis."""

    def __init__(
        self,
        redis: aioredis.Redis,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis
        self._limit = limit
        self._window = window_seconds
        self._clock = clock

    async def hit(self, origin: str) -> RateDecision:
        index, retry_after = _window_bounds(self._clock(), self._window)
        key = f"orch:ratelimit:{origin}:{index}"
        try:
            count = int(await self._redis.incr(key))
            if count == 1:
                await self._redis.expire(key, self._window)
        except RedisError as e:
            orchestrator_metrics.inc(RATE_WINDOW_ERRORS)
            logger.warning("Rate window unavailable, admitting %s: %s", origin, e)
            return RateDecision(allowed=True, count=0)

        if count > self._limit:
            return RateDecision(allowed=False, count=count, retry_after=retry_after)
        return RateDecision(allowed=True, count=count)
