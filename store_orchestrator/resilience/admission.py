# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Admission Controller — Gate creation requests.

Checks, in order:
  1. tenant count below MAX_STORES           -> CapacityExceeded
  2. in-flight pipelines below the ceiling   -> ConcurrencyExceeded
  3. origin's rate window not exhausted      -> RateLimited (retry_after)

An accepted request holds an AdmissionSlot for the duration of its
pipeline run. The slot is released on every exit path because it is
only handed out through the `admit()` async context manager.

Counters are not linearizable across awaits: a brief over-admission
under heavy concurrent load is tolerated.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from store_orchestrator.core.metrics import ADMISSION_REJECTED, orchestrator_metrics
from store_orchestrator.kernel.registry import TenantRegistry
from store_orchestrator.resilience.rate_limit import RateWindow

logger = logging.getLogger("orchestrator.admission")


class AdmissionRejected(Exception):
    """Base class: the request was not admitted. Callers may retry later."""

    code = "ADMISSION_REJECTED"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CapacityExceeded(AdmissionRejected):
    code = "CAPACITY_EXCEEDED"


class ConcurrencyExceeded(AdmissionRejected):
    code = "CONCURRENCY_EXCEEDED"


class RateLimited(AdmissionRejected):
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: int):
        self.retry_after = retry_after
        super().__init__(message)


class AdmissionSlot:
    """One admitted request's claim on capacity and concurrency."""

    def __init__(self, controller: AdmissionController, origin: str) -> None:
        self._controller = controller
        self.origin = origin
        self._registered = False

    def mark_registered(self) -> None:
        """The tenant is now in the registry, which counts it from here on."""
        if not self._registered:
            self._registered = True
            self._controller._pending -= 1

    def _release(self) -> None:
        self.mark_registered()
        self._controller._in_flight -= 1


class AdmissionController:
    """Capacity, concurrency and rate gate in front of the pipeline."""

    def __init__(
        self,
        registry: TenantRegistry,
        max_stores: int,
        max_concurrent: int,
        rate_window: RateWindow,
    ) -> None:
        self._registry = registry
        self._max_stores = max_stores
        self._max_concurrent = max_concurrent
        self._rate_window = rate_window
        self._in_flight = 0
        self._pending = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    @property
    def max_stores(self) -> int:
        return self._max_stores

    @property
    def max_concurrent(self) -> int:
        return self._max_concurrent

    def committed_count(self) -> int:
        """Tenants in the registry plus admitted requests not registered yet."""
        return len(self._registry) + self._pending

    async def check(self, origin: str) -> None:
        """Raise the first applicable AdmissionRejected, if any."""
        if self.committed_count() >= self._max_stores:
            self._reject("capacity")
            raise CapacityExceeded(f"Store limit reached ({self._max_stores})")

        if self._in_flight >= self._max_concurrent:
            self._reject("concurrency")
            raise ConcurrencyExceeded(
                f"Too many stores provisioning at once ({self._max_concurrent})"
            )

        decision = await self._rate_window.hit(origin)
        if not decision.allowed:
            self._reject("rate")
            raise RateLimited(
                f"Rate limit exceeded for {origin}; retry in {decision.retry_after}s",
                retry_after=decision.retry_after,
            )

    @asynccontextmanager
    async def admit(self, origin: str) -> AsyncIterator[AdmissionSlot]:
        """Check limits and hold a slot for the body of the `async with`."""
        await self.check(origin)
        slot = AdmissionSlot(self, origin)
        self._in_flight += 1
        self._pending += 1
        orchestrator_metrics.set_gauge("in_flight", self._in_flight)
        try:
            yield slot
        finally:
            slot._release()
            orchestrator_metrics.set_gauge("in_flight", self._in_flight)

    def _reject(self, reason: str) -> None:
        orchestrator_metrics.inc(ADMISSION_REJECTED, reason)
        logger.warning(
            "Admission rejected (%s): stores=%d in_flight=%d",
            reason, self.committed_count(), self._in_flight,
        )
