# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Store Orchestrator — Creation and deletion workflows.

Creation:
    admission slot -> pipeline -> registry insert (Provisioning, as soon
    as the namespace exists) -> readiness monitor launched detached
Deletion:
    status Deleting -> cancel monitor -> one cascading namespace delete
    -> registry removal (only once the delete is confirmed)

Pipeline failures are handled here according to ROLLBACK_ON_FAILURE.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from store_orchestrator.core.config import OrchestratorSettings
from store_orchestrator.core import metrics
from store_orchestrator.core.metrics import orchestrator_metrics
from store_orchestrator.core.tenant import Tenant, TenantStatus
from store_orchestrator.kernel import activity
from store_orchestrator.kernel.activity import ActivityLog
from store_orchestrator.kernel.namespace import new_store_id, url_for
from store_orchestrator.kernel.registry import TenantRegistry
from store_orchestrator.provisioning.engines import EngineCatalog
from store_orchestrator.provisioning.pipeline import ConflictExistsError, PipelineStepFailed, ProvisioningPipeline
from store_orchestrator.resilience.admission import AdmissionController
from store_orchestrator.runtime.monitor import ReadinessMonitor
from store_orchestrator.substrate.base import NamespaceInfo, ResourceNotFound, Substrate, SubstrateError

logger = logging.getLogger("orchestrator.stores")


class StoreNotFoundError(Exception):
    code = "STORE_NOT_FOUND"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Store '{store_id}' not found")


class CreationInterrupted(Exception):
    """The store was deleted before its pipeline finished."""

    code = "CREATION_INTERRUPTED"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Store {store_id} was deleted while it was being provisioned")


class DeletionFailed(Exception):
    """Teardown failed for a reason other than absence; the store stays Deleting."""

    code = "DELETION_FAILED"

    def __init__(self, store_id: str, cause: Exception):
        self.store_id = store_id
        self.cause = cause
        super().__init__(f"Failed to delete store {store_id}: {cause}")


@dataclass(frozen=True)
class DeleteResult:
    store_id: str
    already_deleted: bool = False


class StoreOrchestrator:
    """Owns the create/delete workflows over one shared registry."""

    def __init__(
        self,
        registry: TenantRegistry,
        substrate: Substrate,
        catalog: EngineCatalog,
        admission: AdmissionController,
        pipeline: ProvisioningPipeline,
        monitor: ReadinessMonitor,
        activity_log: ActivityLog,
        settings: OrchestratorSettings,
    ) -> None:
        self._registry = registry
        self._substrate = substrate
        self._catalog = catalog
        self._admission = admission
        self._pipeline = pipeline
        self._monitor = monitor
        self._activity = activity_log
        self._settings = settings

    # ── Queries ─────────────────────────────────────────────────

    def list_stores(self) -> List[Tenant]:
        return self._registry.list()

    def get_store(self, store_id: str) -> Tenant:
        tenant = self._registry.get(store_id)
        if tenant is None:
            raise StoreNotFoundError(store_id)
        return tenant

    def summary(self) -> Dict[str, Any]:
        counts = self._registry.count_by_status()
        return {
            "total": len(self._registry),
            "ready": counts[TenantStatus.READY],
            "failed": counts[TenantStatus.FAILED],
            "provisioning": counts[TenantStatus.PROVISIONING],
            "deleting": counts[TenantStatus.DELETING],
            "totalCreated": orchestrator_metrics.get_counter(metrics.STORES_CREATED),
            "totalFailed": orchestrator_metrics.get_counter(metrics.STORES_FAILED),
            "totalDeleted": orchestrator_metrics.get_counter(metrics.STORES_DELETED),
            "failuresByStep": orchestrator_metrics.breakdown(metrics.PIPELINE_FAILURES),
            "rejections": orchestrator_metrics.breakdown(metrics.ADMISSION_REJECTED),
            "inFlight": self._admission.in_flight,
            "capacity": self._admission.max_stores,
        }

    # ── Creation ────────────────────────────────────────────────

    def _allocate_store_id(self) -> str:
        store_id = new_store_id()
        while self._registry.is_known(store_id):
            store_id = new_store_id()
        return store_id

    async def create_store(self, engine_name: Optional[str], origin: str) -> Tenant:
        """
        Admit and provision one store. Returns the Provisioning record.

        Raises:
            UnsupportedEngineError, AdmissionRejected, ConflictExistsError,
            PipelineStepFailed, CreationInterrupted
        """
        engine = self._catalog.get(engine_name or self._settings.DEFAULT_ENGINE)

        async with self._admission.admit(origin) as slot:
            store_id = self._allocate_store_id()

            def register(ns: NamespaceInfo) -> None:
                tenant = Tenant(
                    id=store_id,
                    namespace=ns.name,
                    engine=engine.name,
                    url=url_for(ns.name, self._settings.STORE_BASE_DOMAIN, self._settings.STORE_URL_SCHEME),
                )
                self._registry.put(tenant)
                slot.mark_registered()
                self._activity.record(activity.CREATE, store_id, ns.name, engine.name)

            try:
                with orchestrator_metrics.timer("pipeline_latency_ms"):
                    await self._pipeline.run(store_id, engine, on_namespace_created=register)
            except ConflictExistsError:
                orchestrator_metrics.inc(metrics.STORES_FAILED)
                raise
            except PipelineStepFailed as e:
                orchestrator_metrics.inc(metrics.STORES_FAILED)
                orchestrator_metrics.inc(metrics.PIPELINE_FAILURES, e.step)
                await self._handle_pipeline_failure(e)
                raise

        created = self._registry.get(store_id)
        if created is None or created.status == TenantStatus.DELETING:
            logger.warning(
                "Store %s was deleted before provisioning finished", store_id,
                extra={"store_id": store_id},
            )
            raise CreationInterrupted(store_id)
        orchestrator_metrics.inc(metrics.STORES_CREATED)
        self._monitor.launch(store_id)
        return created

    async def _handle_pipeline_failure(self, error: PipelineStepFailed) -> None:
        tenant = self._registry.get(error.store_id)
        if tenant is None or tenant.status == TenantStatus.DELETING:
            # Never registered, or the Deletion Workflow owns it now.
            return

        if self._settings.ROLLBACK_ON_FAILURE:
            try:
                await self._substrate.delete_namespace(tenant.namespace)
            except ResourceNotFound:
                pass
            except SubstrateError as rollback_error:
                logger.error(
                    "Rollback of %s failed: %s", tenant.id, rollback_error,
                    extra={"store_id": tenant.id, "namespace": tenant.namespace},
                )
                self._registry.transition(
                    tenant.id, TenantStatus.FAILED,
                    failure_reason=f"{error.reason}; rollback failed: {rollback_error}",
                    expected=[TenantStatus.PROVISIONING],
                )
                return
            self._registry.delete(tenant.id)
            self._activity.record(activity.DELETE, tenant.id, tenant.namespace, tenant.engine)
            error.rolled_back = True
            logger.warning(
                "Rolled back %s after %s", tenant.id, error.reason,
                extra={"store_id": tenant.id, "namespace": tenant.namespace},
            )
            return

        self._registry.transition(
            tenant.id, TenantStatus.FAILED, failure_reason=error.reason,
            expected=[TenantStatus.PROVISIONING],
        )

    # ── Deletion ────────────────────────────────────────────────

    async def delete_store(self, store_id: str) -> DeleteResult:
        """
        Tear a store down.

        Deleting an id retired earlier in this process succeeds again.

        Raises:
            StoreNotFoundError: the id was never known to this process.
            DeletionFailed: the substrate refused; the store stays Deleting.
        """
        tenant = self._registry.get(store_id)
        if tenant is None:
            if self._registry.is_retired(store_id):
                return DeleteResult(store_id, already_deleted=True)
            raise StoreNotFoundError(store_id)

        self._registry.transition(store_id, TenantStatus.DELETING)
        self._monitor.cancel(store_id)

        already_gone = False
        try:
            await self._substrate.delete_namespace(tenant.namespace)
        except ResourceNotFound:
            already_gone = True
        except SubstrateError as e:
            orchestrator_metrics.inc(metrics.DELETION_FAILURES)
            logger.error(
                "Delete of %s failed: %s", store_id, e,
                extra={"store_id": store_id, "namespace": tenant.namespace},
            )
            raise DeletionFailed(store_id, e) from e

        self._registry.delete(store_id)
        self._activity.record(activity.DELETE, store_id, tenant.namespace, tenant.engine)
        orchestrator_metrics.inc(metrics.STORES_DELETED)
        return DeleteResult(store_id, already_deleted=already_gone)
