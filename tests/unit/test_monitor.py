# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for ReadinessMonitor."""

import asyncio

import pytest

from store_orchestrator.core.context import init_orchestrator_context
from store_orchestrator.core.metrics import orchestrator_metrics
from store_orchestrator.core.tenant import TenantStatus
from store_orchestrator.substrate.memory import InMemorySubstrate

from conftest import make_settings, make_tenant

STORE_ID = "a1b2c3d4"
NAMESPACE = "store-a1b2c3d4"


async def provision(ctx, store_id=STORE_ID, **tenant_kwargs):
    """Create the bundle and register the tenant without launching a monitor."""
    await ctx.pipeline.run(store_id, ctx.catalog.get("woocommerce"))
    return ctx.registry.put(make_tenant(store_id, **tenant_kwargs))


class TestReadinessMonitor:
    @pytest.mark.asyncio
    async def test_ready(self, ctx):
        await provision(ctx)
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.READY
        assert ctx.registry.get(STORE_ID).status == TenantStatus.READY
        assert orchestrator_metrics.get_counter("readiness_ready") == 1

    @pytest.mark.asyncio
    async def test_requires_both_workloads(self, ctx, substrate):
        await provision(ctx)
        substrate.set_workload_ready(NAMESPACE, "Deployment", "wordpress", 0)
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.FAILED

    @pytest.mark.asyncio
    async def test_never_ready_after_exact_attempts(self, ctx, substrate):
        await provision(ctx)
        substrate.set_workload_ready(NAMESPACE, "StatefulSet", "mysql", 0)
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.FAILED
        assert substrate.read_count(NAMESPACE, "StatefulSet", "mysql") == 3
        reason = ctx.registry.get(STORE_ID).failure_reason
        assert "never reported ready after 3 attempts" in reason
        assert "mysql 0/1 ready" in reason

    @pytest.mark.asyncio
    async def test_read_errors_are_retried(self, ctx, substrate):
        await provision(ctx)
        substrate.fail_reads()
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.FAILED
        reason = ctx.registry.get(STORE_ID).failure_reason
        assert reason.startswith("status could not be determined after 3 attempts")

    @pytest.mark.asyncio
    async def test_transient_read_error_then_ready(self, ctx, substrate):
        await provision(ctx)
        substrate.fail_reads()
        original = substrate.read_workload_status
        calls = {"n": 0}

        async def flaky(namespace, kind, name):
            calls["n"] += 1
            if calls["n"] == 2:
                substrate.fail_reads(False)
            return await original(namespace, kind, name)

        substrate.read_workload_status = flaky
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.READY

    @pytest.mark.asyncio
    async def test_no_op_when_not_provisioning(self, ctx, substrate):
        await provision(ctx, status=TenantStatus.READY)
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.READY
        assert substrate.read_count(NAMESPACE, "StatefulSet", "mysql") == 0

    @pytest.mark.asyncio
    async def test_missing_store(self, ctx):
        assert await ctx.monitor.watch("ffffffff") is None

    @pytest.mark.asyncio
    async def test_stops_when_deleting_mid_poll(self, ctx, substrate):
        await provision(ctx)
        substrate.set_workload_ready(NAMESPACE, "StatefulSet", "mysql", 0)
        original = substrate.read_workload_status

        async def read_then_delete(namespace, kind, name):
            status = await original(namespace, kind, name)
            ctx.registry.transition(STORE_ID, TenantStatus.DELETING)
            return status

        substrate.read_workload_status = read_then_delete
        assert await ctx.monitor.watch(STORE_ID) == TenantStatus.DELETING
        assert ctx.registry.get(STORE_ID).failure_reason is None
        assert orchestrator_metrics.get_counter("readiness_failed") == 0

    @pytest.mark.asyncio
    async def test_launch_is_idempotent(self, ctx):
        await provision(ctx)
        first = ctx.monitor.launch(STORE_ID)
        assert ctx.monitor.launch(STORE_ID) is first
        await ctx.monitor.join(STORE_ID)
        assert ctx.monitor.active() == []
        assert ctx.registry.get(STORE_ID).status == TenantStatus.READY

    @pytest.mark.asyncio
    async def test_cancel(self):
        slow = init_orchestrator_context(
            make_settings(READINESS_POLL_INTERVAL=30.0),
            InMemorySubstrate(ready_after_reads=None),
        )
        await provision(slow)
        slow.monitor.launch(STORE_ID)
        await asyncio.sleep(0)
        assert slow.monitor.cancel(STORE_ID) is True
        await slow.monitor.join(STORE_ID)
        assert slow.registry.get(STORE_ID).status == TenantStatus.PROVISIONING
        assert slow.monitor.cancel(STORE_ID) is False

    @pytest.mark.asyncio
    async def test_shutdown_cancels_all(self):
        slow = init_orchestrator_context(
            make_settings(READINESS_POLL_INTERVAL=30.0),
            InMemorySubstrate(ready_after_reads=None),
        )
        await provision(slow, "aaaa0001")
        await provision(slow, "aaaa0002")
        slow.monitor.launch("aaaa0001")
        slow.monitor.launch("aaaa0002")
        await asyncio.sleep(0)
        assert sorted(slow.monitor.active()) == ["aaaa0001", "aaaa0002"]
        await slow.monitor.shutdown()
        assert slow.monitor.active() == []
