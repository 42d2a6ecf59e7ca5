# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Readiness Monitor — Converge a Provisioning store to Ready or Failed.

One bounded polling task per store, launched detached from the request
that created it. Each attempt reads both workloads; the store is Ready
once the database and the application each report a ready replica.

Rules:
  - substrate read errors are retried on the next attempt, never fatal
  - before every mutation the store is re-read; if it is gone or no
    longer Provisioning the monitor stops without touching it
  - the Deletion Workflow cancels a store's monitor cooperatively
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from store_orchestrator.core import metrics
from store_orchestrator.core.metrics import orchestrator_metrics
from store_orchestrator.core.tenant import TenantStatus
from store_orchestrator.kernel.registry import TenantRegistry
from store_orchestrator.provisioning.engines import EngineDefinition, EngineCatalog, UnsupportedEngineError
from store_orchestrator.resilience.retry import RetryPolicy
from store_orchestrator.substrate.base import Substrate, SubstrateError, WorkloadStatus

logger = logging.getLogger("orchestrator.monitor")

DATABASE_KIND = "StatefulSet"
APPLICATION_KIND = "Deployment"


async def probe_workloads(
    substrate: Substrate, namespace: str, engine: EngineDefinition
) -> Tuple[WorkloadStatus, WorkloadStatus]:
    """Read (database, application) workload status. Raises SubstrateError."""
    db = await substrate.read_workload_status(namespace, DATABASE_KIND, engine.database.name)
    app = await substrate.read_workload_status(namespace, APPLICATION_KIND, engine.application.name)
    return db, app


def describe_workloads(engine: EngineDefinition, db: WorkloadStatus, app: WorkloadStatus) -> str:
    return (
        f"{engine.database.name} {db.ready}/{db.desired} ready, "
        f"{engine.application.name} {app.ready}/{app.desired} ready"
    )


class ReadinessMonitor:
    """Supervised set of per-store readiness polling tasks."""

    def __init__(
        self,
        registry: TenantRegistry,
        substrate: Substrate,
        catalog: EngineCatalog,
        policy: RetryPolicy,
    ) -> None:
        self._registry = registry
        self._substrate = substrate
        self._catalog = catalog
        self._policy = policy
        self._tasks: Dict[str, asyncio.Task] = {}

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    # ── Supervision ─────────────────────────────────────────────

    def launch(self, store_id: str) -> asyncio.Task:
        """Start watching a store (idempotent while a watch is running)."""
        existing = self._tasks.get(store_id)
        if existing is not None and not existing.done():
            return existing

        task = asyncio.create_task(self.watch(store_id), name=f"readiness:{store_id}")
        self._tasks[store_id] = task
        task.add_done_callback(lambda t, sid=store_id: self._forget(sid, t))
        return task

    def _forget(self, store_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(store_id) is task:
            del self._tasks[store_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "Readiness monitor for %s crashed: %s", store_id, task.exception(),
                extra={"store_id": store_id},
            )

    def cancel(self, store_id: str) -> bool:
        """Request cancellation of a store's monitor. True if one was running."""
        task = self._tasks.get(store_id)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Readiness monitor cancelled for %s", store_id, extra={"store_id": store_id})
        return True

    async def join(self, store_id: str) -> None:
        """Wait for a store's monitor to finish (no-op if none is running)."""
        task = self._tasks.get(store_id)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def active(self) -> List[str]:
        return [sid for sid, t in self._tasks.items() if not t.done()]

    async def shutdown(self) -> None:
        """Cancel every running monitor and wait for them to unwind."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ── Polling ─────────────────────────────────────────────────

    def _still_provisioning(self, store_id: str) -> bool:
        tenant = self._registry.get(store_id)
        return tenant is not None and tenant.status == TenantStatus.PROVISIONING

    async def watch(self, store_id: str) -> Optional[TenantStatus]:
        """
        Poll until both workloads are ready or the attempt budget is spent.

        Returns the store's status when the watch ended, or None if the
        store was removed in the meantime.
        """
        tenant = self._registry.get(store_id)
        if tenant is None or tenant.status != TenantStatus.PROVISIONING:
            return tenant.status if tenant else None

        try:
            engine = self._catalog.get(tenant.engine)
        except UnsupportedEngineError as e:
            return self._fail(store_id, f"cannot watch readiness: {e}")

        max_attempts = self._policy.max_attempts
        last_error: Optional[SubstrateError] = None
        last_seen: Optional[str] = None
        successful_reads = 0

        for attempt in range(1, max_attempts + 1):
            if not self._still_provisioning(store_id):
                return self._current_status(store_id)

            try:
                db, app = await probe_workloads(self._substrate, tenant.namespace, engine)
            except SubstrateError as e:
                last_error = e
                logger.warning(
                    "Readiness read failed for %s (attempt %d/%d): %s",
                    store_id, attempt, max_attempts, e,
                    extra={"store_id": store_id},
                )
            else:
                successful_reads += 1
                last_seen = describe_workloads(engine, db, app)
                if db.is_ready and app.is_ready:
                    updated = self._registry.transition(
                        store_id, TenantStatus.READY, expected=[TenantStatus.PROVISIONING],
                    )
                    if updated is None:
                        return self._current_status(store_id)
                    orchestrator_metrics.inc(metrics.READINESS_READY)
                    logger.info(
                        "Store %s ready after %d attempt(s)", store_id, attempt,
                        extra={"store_id": store_id},
                    )
                    return TenantStatus.READY

            if self._policy.should_retry(attempt):
                await self._policy.wait(attempt)

        if successful_reads == 0:
            reason = (
                f"status could not be determined after {max_attempts} attempts: {last_error}"
            )
        else:
            reason = f"workloads never reported ready after {max_attempts} attempts ({last_seen})"
        return self._fail(store_id, reason)

    def _fail(self, store_id: str, reason: str) -> Optional[TenantStatus]:
        updated = self._registry.transition(
            store_id, TenantStatus.FAILED, failure_reason=reason,
            expected=[TenantStatus.PROVISIONING],
        )
        if updated is None:
            return self._current_status(store_id)
        orchestrator_metrics.inc(metrics.READINESS_FAILED)
        logger.error("Store %s failed: %s", store_id, reason, extra={"store_id": store_id})
        return TenantStatus.FAILED

    def _current_status(self, store_id: str) -> Optional[TenantStatus]:
        tenant = self._registry.get(store_id)
        return tenant.status if tenant else None
