# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Orchestrator Context — Singleton that holds all core component references.

Initialized at startup, looked up by API routes.
"""

from __future__ import annotations

from typing import Optional

from store_orchestrator.core.config import OrchestratorSettings
from store_orchestrator.kernel.activity import ActivityLog
from store_orchestrator.kernel.registry import TenantRegistry
from store_orchestrator.provisioning.engines import EngineCatalog
from store_orchestrator.provisioning.pipeline import ProvisioningPipeline, registered_steps
from store_orchestrator.resilience.admission import AdmissionController
from store_orchestrator.resilience.rate_limit import InMemoryRateWindow, RateWindow
from store_orchestrator.resilience.retry import RetryPolicy
from store_orchestrator.runtime.monitor import ReadinessMonitor
from store_orchestrator.runtime.orchestrator import StoreOrchestrator
from store_orchestrator.runtime.reconciler import ReconcileReport, Reconciler
from store_orchestrator.substrate.base import Substrate


class OrchestratorContext:
    """
    Holds all runtime references for the process.
    Created once at startup, used by all API handlers.
    """

    def __init__(
        self,
        settings: OrchestratorSettings,
        substrate: Substrate,
        rate_window: Optional[RateWindow] = None,
        catalog: Optional[EngineCatalog] = None,
    ) -> None:
        self.settings = settings
        self.substrate = substrate
        self.registry = TenantRegistry()
        self.activity = ActivityLog(limit=settings.ACTIVITY_LOG_LIMIT)

        if catalog is None:
            catalog = EngineCatalog()
            catalog.load_directory(registered_steps=registered_steps())
        self.catalog = catalog

        self.rate_window = rate_window or InMemoryRateWindow(
            limit=settings.RATE_LIMIT_REQUESTS,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
        )
        self.admission = AdmissionController(
            self.registry,
            max_stores=settings.MAX_STORES,
            max_concurrent=settings.MAX_CONCURRENT_PROVISIONS,
            rate_window=self.rate_window,
        )
        self.monitor = ReadinessMonitor(
            self.registry,
            substrate,
            self.catalog,
            RetryPolicy.fixed(settings.READINESS_MAX_ATTEMPTS, settings.READINESS_POLL_INTERVAL),
        )
        self.pipeline = ProvisioningPipeline(substrate, settings)
        self.orchestrator = StoreOrchestrator(
            registry=self.registry,
            substrate=substrate,
            catalog=self.catalog,
            admission=self.admission,
            pipeline=self.pipeline,
            monitor=self.monitor,
            activity_log=self.activity,
            settings=settings,
        )
        self.reconciler = Reconciler(
            self.registry, substrate, self.catalog, self.monitor, self.activity, settings,
        )
        self.last_reconcile: Optional[ReconcileReport] = None

    async def reconcile(self) -> ReconcileReport:
        self.last_reconcile = await self.reconciler.reconcile()
        return self.last_reconcile

    async def shutdown(self) -> None:
        await self.monitor.shutdown()
        await self.substrate.close()


# ── Global singleton ────────────────────────────────────────

_ctx: Optional[OrchestratorContext] = None


def init_orchestrator_context(
    settings: OrchestratorSettings,
    substrate: Substrate,
    rate_window: Optional[RateWindow] = None,
    catalog: Optional[EngineCatalog] = None,
) -> OrchestratorContext:
    global _ctx
    _ctx = OrchestratorContext(settings, substrate, rate_window=rate_window, catalog=catalog)
    return _ctx


def get_orchestrator_context() -> OrchestratorContext:
    if _ctx is None:
        raise RuntimeError("OrchestratorContext not initialized. Call init_orchestrator_context() first.")
    return _ctx
