# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Shared test fixtures for all Store Orchestrator tests.
"""

import pytest

from store_orchestrator.core.config import OrchestratorSettings
from store_orchestrator.core.context import init_orchestrator_context
from store_orchestrator.core.metrics import orchestrator_metrics
from store_orchestrator.core.tenant import Tenant
from store_orchestrator.kernel.namespace import namespace_for, url_for
from store_orchestrator.substrate.memory import InMemorySubstrate


def make_settings(**overrides) -> OrchestratorSettings:
    """Fast, deterministic settings: no real cluster, no sleeping."""
    values = dict(
        _env_file=None,
        SUBSTRATE_BACKEND="memory",
        KUBE_API_URL="",
        KUBE_IN_CLUSTER=None,
        KUBECONFIG="",
        KUBE_CONTEXT="",
        MAX_STORES=20,
        MAX_CONCURRENT_PROVISIONS=5,
        RATE_LIMIT_REQUESTS=1000,
        RATE_LIMIT_WINDOW_SECONDS=60,
        READINESS_MAX_ATTEMPTS=3,
        READINESS_POLL_INTERVAL=0.0,
        ROLLBACK_ON_FAILURE=True,
    )
    values.update(overrides)
    return OrchestratorSettings(**values)


def make_tenant(store_id: str = "a1b2c3d4", **kwargs) -> Tenant:
    namespace = namespace_for(store_id)
    return Tenant(
        id=store_id,
        namespace=namespace,
        engine=kwargs.pop("engine", "woocommerce"),
        url=url_for(namespace, "127.0.0.1.nip.io"),
        **kwargs,
    )


@pytest.fixture(autouse=True)
def reset_metrics():
    orchestrator_metrics.reset()
    yield


@pytest.fixture
def test_settings() -> OrchestratorSettings:
    return make_settings()


@pytest.fixture
def substrate() -> InMemorySubstrate:
    """An in-memory cluster whose workloads are ready on first read."""
    return InMemorySubstrate(ready_after_reads=1)


@pytest.fixture
def ctx(test_settings, substrate):
    """Initialize the global OrchestratorContext (as main.py startup does)."""
    return init_orchestrator_context(test_settings, substrate)
