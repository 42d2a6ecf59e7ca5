# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Reconciler — Rebuild the tenant registry from the substrate.

Runs once at startup, before the API serves traffic. Nothing local is
consulted: every tenant is rediscovered from namespaces carrying the
ownership label, and its status is read synchronously from its
workloads.

Status assignment per namespace:
  - both workloads ready                         -> Ready
  - a workload cannot be read                    -> Failed (undetermined)
  - workloads not ready, namespace still young   -> Provisioning (+ monitor)
  - workloads not ready, readiness budget spent  -> Failed
  - namespace Terminating                        -> skipped

If the substrate cannot be listed the pass fails as a whole: it is
logged, the registry is left empty and the process keeps running.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from store_orchestrator.core.config import OrchestratorSettings
from store_orchestrator.core.metrics import orchestrator_metrics
from store_orchestrator.core.tenant import Tenant, TenantStatus, utcnow
from store_orchestrator.kernel import activity
from store_orchestrator.kernel.activity import ActivityLog
from store_orchestrator.kernel.namespace import (
    ENGINE_LABEL,
    STORE_ID_LABEL,
    ownership_selector,
    store_id_from_namespace,
    url_for,
)
from store_orchestrator.kernel.registry import TenantRegistry
from store_orchestrator.provisioning.engines import EngineCatalog, UnsupportedEngineError
from store_orchestrator.runtime.monitor import ReadinessMonitor, describe_workloads, probe_workloads
from store_orchestrator.substrate.base import NamespaceInfo, Substrate, SubstrateError

logger = logging.getLogger("orchestrator.reconciler")


@dataclass
class ReconcileReport:
    ok: bool = True
    error: Optional[str] = None
    discovered: int = 0
    skipped: List[str] = field(default_factory=list)
    tenants: List[Tenant] = field(default_factory=list)
    finished_at: Optional[datetime] = None

    def count(self, status: TenantStatus) -> int:
        return sum(1 for t in self.tenants if t.status == status)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error": self.error,
            "discovered": self.discovered,
            "skipped": list(self.skipped),
            "ready": self.count(TenantStatus.READY),
            "failed": self.count(TenantStatus.FAILED),
            "provisioning": self.count(TenantStatus.PROVISIONING),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }


class Reconciler:
    """Derives the registry's contents from authoritative substrate state."""

    def __init__(
        self,
        registry: TenantRegistry,
        substrate: Substrate,
        catalog: EngineCatalog,
        monitor: ReadinessMonitor,
        activity_log: ActivityLog,
        settings: OrchestratorSettings,
    ) -> None:
        self._registry = registry
        self._substrate = substrate
        self._catalog = catalog
        self._monitor = monitor
        self._activity = activity_log
        self._settings = settings

    async def reconcile(self) -> ReconcileReport:
        report = ReconcileReport()
        try:
            namespaces = await self._substrate.list_namespaces(ownership_selector())
        except SubstrateError as e:
            report.ok = False
            report.error = f"substrate unreachable: {e}"
            report.finished_at = utcnow()
            orchestrator_metrics.inc("reconcile_failures")
            logger.error("Reconciliation failed, starting with an empty registry: %s", e)
            return report

        tenants: List[Tenant] = []
        for ns in namespaces:
            if ns.terminating:
                report.skipped.append(ns.name)
                continue
            tenant = await self._rebuild(ns)
            if tenant is None:
                report.skipped.append(ns.name)
                continue
            tenants.append(tenant)

        self._registry.replace_all(tenants)
        report.discovered = len(tenants)
        report.tenants = tenants
        report.finished_at = utcnow()

        for tenant in tenants:
            self._activity.record(activity.RECONCILE, tenant.id, tenant.namespace, tenant.engine)
            if tenant.status == TenantStatus.PROVISIONING:
                self._monitor.launch(tenant.id)

        orchestrator_metrics.set_gauge("reconciled_stores", len(tenants))
        logger.info(
            "Reconciled %d store(s): ready=%d failed=%d provisioning=%d skipped=%d",
            len(tenants),
            report.count(TenantStatus.READY),
            report.count(TenantStatus.FAILED),
            report.count(TenantStatus.PROVISIONING),
            len(report.skipped),
        )
        return report

    async def _rebuild(self, ns: NamespaceInfo) -> Optional[Tenant]:
        store_id = ns.labels.get(STORE_ID_LABEL) or store_id_from_namespace(ns.name)
        if not store_id or store_id_from_namespace(ns.name) != store_id:
            logger.warning("Skipping namespace %s: cannot derive a store id", ns.name)
            return None

        engine_name = ns.labels.get(ENGINE_LABEL) or self._settings.DEFAULT_ENGINE
        tenant = Tenant(
            id=store_id,
            namespace=ns.name,
            engine=engine_name,
            url=url_for(ns.name, self._settings.STORE_BASE_DOMAIN, self._settings.STORE_URL_SCHEME),
            created_at=ns.created_at or utcnow(),
        )

        try:
            engine = self._catalog.get(engine_name)
        except UnsupportedEngineError as e:
            return tenant.with_status(TenantStatus.FAILED, f"reconciled with unknown engine: {e}")

        try:
            db, app = await probe_workloads(self._substrate, ns.name, engine)
        except SubstrateError as e:
            return tenant.with_status(
                TenantStatus.FAILED, f"status could not be determined at reconciliation: {e}",
            )

        if db.is_ready and app.is_ready:
            return tenant.with_status(TenantStatus.READY)

        if self._within_readiness_budget(ns):
            return tenant

        return tenant.with_status(
            TenantStatus.FAILED,
            f"workloads not ready at reconciliation ({describe_workloads(engine, db, app)})",
        )

    def _within_readiness_budget(self, ns: NamespaceInfo) -> bool:
        if ns.created_at is None:
            return False
        budget = timedelta(seconds=self._monitor.policy.budget_seconds)
        return utcnow() - ns.created_at < budget
