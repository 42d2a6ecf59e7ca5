# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Provisioning Pipeline — Build one tenant's resource bundle.

Every engine shares the same prologue:
  1. duplicate check   (the target namespace must not exist)
  2. namespace         (labelled for reconciliation)
followed by the engine's own ordered step list, resolved by name from
STEP_REGISTRY. Built-in steps, in the order the bundled engine uses:

  isolation          quota, limit range, deny-all + app->db network policies
  credentials        random per-tenant credential stored as a Secret
  database_service   headless service for the database
  database_workload  single-replica StatefulSet with a storage claim
  application        application Service + Deployment
  ingress            public route under the tenant's hostname

The first failing step aborts the run with PipelineStepFailed. The
pipeline itself never deletes anything; rollback is the caller's call.
"""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from store_orchestrator.core.config import OrchestratorSettings
from store_orchestrator.kernel.namespace import host_for, namespace_for, namespace_labels
from store_orchestrator.provisioning import manifests
from store_orchestrator.provisioning.engines import EngineDefinition
from store_orchestrator.substrate.base import (
    NamespaceInfo,
    ResourceConflict,
    Substrate,
    SubstrateError,
)

logger = logging.getLogger("orchestrator.pipeline")

DUPLICATE_CHECK = "duplicate_check"
NAMESPACE = "namespace"


class PipelineError(Exception):
    code = "PIPELINE_ERROR"


class ConflictExistsError(PipelineError):
    """The tenant's namespace already exists in the substrate."""

    code = "CONFLICT_EXISTS"

    def __init__(self, namespace: str):
        self.namespace = namespace
        super().__init__(f"Namespace '{namespace}' already exists")


class PipelineStepFailed(PipelineError):
    """A pipeline step failed; later steps were not attempted."""

    code = "PIPELINE_STEP_FAILED"

    def __init__(self, step: str, engine: str, store_id: str, cause: Exception):
        self.step = step
        self.engine = engine
        self.store_id = store_id
        self.cause = cause
        self.rolled_back = False
        super().__init__(f"Step '{step}' failed for store {store_id} ({engine}): {cause}")

    @property
    def reason(self) -> str:
        return f"step '{self.step}' failed: {self.cause}"


class PlaintextCredentialError(Exception):
    """A non-Secret manifest embedded a generated credential."""

    def __init__(self, kind: str, name: str):
        super().__init__(f"{kind}/{name} embeds a credential in plaintext; use a secretKeyRef")


@dataclass
class StepContext:
    """Everything a step needs, plus a log of what it created."""

    substrate: Substrate
    engine: EngineDefinition
    store_id: str
    namespace: str
    host: str
    ingress_class: str
    credentials: Dict[str, str] = field(default_factory=dict)
    created: List[Tuple[str, str]] = field(default_factory=list)

    async def apply(self, manifest: Dict[str, Any]) -> Dict[str, Any]:
        """Submit one manifest after checking it keeps credentials by reference."""
        kind = manifest["kind"]
        name = manifest["metadata"]["name"]
        if kind != "Secret" and self.credentials:
            secret_values = {v for k, v in self.credentials.items() if k.endswith("password")}
            if manifests.contains_value(manifest, secret_values):
                raise PlaintextCredentialError(kind, name)
        result = await self.substrate.create_namespaced_object(self.namespace, kind, manifest)
        self.created.append((kind, name))
        return result


StepFn = Callable[[StepContext], Awaitable[None]]

STEP_REGISTRY: Dict[str, StepFn] = {}


def step(name: str) -> Callable[[StepFn], StepFn]:
    """Register a pipeline step under a name engines can reference."""

    def decorator(fn: StepFn) -> StepFn:
        STEP_REGISTRY[name] = fn
        return fn

    return decorator


def registered_steps() -> set:
    return set(STEP_REGISTRY)


def generate_credentials(engine: EngineDefinition) -> Dict[str, str]:
    """Fresh random credentials for one tenant's database."""
    return {
        "root-password": secrets.token_urlsafe(24),
        "password": secrets.token_urlsafe(24),
        "username": engine.database.db_user or "store",
        "database": engine.database.db_name or "store",
    }


# ── Built-in steps ──────────────────────────────────────────

@step("isolation")
async def create_isolation(ctx: StepContext) -> None:
    # Installed before any workload exists.
    await ctx.apply(manifests.resource_quota(ctx.engine, ctx.store_id))
    await ctx.apply(manifests.limit_range(ctx.engine, ctx.store_id))
    await ctx.apply(manifests.deny_all_policy(ctx.store_id))
    await ctx.apply(manifests.allow_app_to_database_policy(ctx.engine, ctx.store_id))


@step("credentials")
async def create_credentials(ctx: StepContext) -> None:
    ctx.credentials = generate_credentials(ctx.engine)
    await ctx.apply(manifests.credential_secret(ctx.engine, ctx.store_id, ctx.credentials))


@step("database_service")
async def create_database_service(ctx: StepContext) -> None:
    await ctx.apply(manifests.database_service(ctx.engine, ctx.store_id))


@step("database_workload")
async def create_database_workload(ctx: StepContext) -> None:
    await ctx.apply(manifests.database_statefulset(ctx.engine, ctx.store_id))


@step("application")
async def create_application(ctx: StepContext) -> None:
    await ctx.apply(manifests.application_service(ctx.engine, ctx.store_id))
    await ctx.apply(manifests.application_deployment(ctx.engine, ctx.store_id))


@step("ingress")
async def create_ingress(ctx: StepContext) -> None:
    await ctx.apply(manifests.allow_public_to_app_policy(ctx.engine, ctx.store_id))
    await ctx.apply(manifests.ingress(ctx.engine, ctx.store_id, ctx.host, ctx.ingress_class))


# ── Runner ──────────────────────────────────────────────────

class ProvisioningPipeline:
    """Runs the prologue and an engine's step list against the substrate."""

    def __init__(self, substrate: Substrate, settings: OrchestratorSettings) -> None:
        self._substrate = substrate
        self._settings = settings

    async def run(
        self,
        store_id: str,
        engine: EngineDefinition,
        on_namespace_created: Optional[Callable[[NamespaceInfo], None]] = None,
    ) -> StepContext:
        """
        Create the whole bundle for `store_id`.

        `on_namespace_created` is invoked synchronously right after the
        namespace exists, before any other resource is created.

        Raises:
            ConflictExistsError: the namespace already exists.
            PipelineStepFailed: any substrate call failed.
        """
        namespace = namespace_for(store_id)
        ctx = StepContext(
            substrate=self._substrate,
            engine=engine,
            store_id=store_id,
            namespace=namespace,
            host=host_for(namespace, self._settings.STORE_BASE_DOMAIN),
            ingress_class=self._settings.INGRESS_CLASS,
        )
        start = time.time()

        try:
            existing = await self._substrate.read_namespace(namespace)
        except SubstrateError as e:
            raise PipelineStepFailed(DUPLICATE_CHECK, engine.name, store_id, e) from e
        if existing is not None:
            raise ConflictExistsError(namespace)

        try:
            info = await self._substrate.create_namespace(
                namespace, namespace_labels(store_id, engine.name)
            )
        except ResourceConflict:
            raise ConflictExistsError(namespace) from None
        except SubstrateError as e:
            raise PipelineStepFailed(NAMESPACE, engine.name, store_id, e) from e
        ctx.created.append(("Namespace", namespace))

        if on_namespace_created is not None:
            on_namespace_created(info)

        for step_name in engine.steps:
            step_fn = STEP_REGISTRY[step_name]
            try:
                await step_fn(ctx)
            except (SubstrateError, PlaintextCredentialError) as e:
                logger.error(
                    "Pipeline step %s failed for %s: %s", step_name, store_id, e,
                    extra={"store_id": store_id, "namespace": namespace, "step": step_name, "engine": engine.name},
                )
                raise PipelineStepFailed(step_name, engine.name, store_id, e) from e
            logger.debug("Pipeline step %s done for %s", step_name, store_id)

        logger.info(
            "Pipeline complete for %s (%s): %d resources in %.0fms",
            store_id, engine.name, len(ctx.created), (time.time() - start) * 1000,
            extra={"store_id": store_id, "namespace": namespace},
        )
        return ctx
