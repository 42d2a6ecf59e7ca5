# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for InMemorySubstrate."""

import pytest

from store_orchestrator.substrate.base import (
    NamespaceInfo,
    ResourceConflict,
    ResourceNotFound,
    SubstrateUnreachable,
)
from store_orchestrator.substrate.memory import InMemorySubstrate

STATEFULSET = {"kind": "StatefulSet", "metadata": {"name": "mysql"}, "spec": {"replicas": 1}}


class TestInMemorySubstrate:
    @pytest.mark.asyncio
    async def test_namespace_lifecycle(self):
        sub = InMemorySubstrate()
        await sub.create_namespace("store-1", {"a": "b"})
        assert (await sub.read_namespace("store-1")).labels == {"a": "b"}
        with pytest.raises(ResourceConflict):
            await sub.create_namespace("store-1", {})
        await sub.delete_namespace("store-1")
        assert await sub.read_namespace("store-1") is None

    @pytest.mark.asyncio
    async def test_delete_cascades(self):
        sub = InMemorySubstrate()
        await sub.create_namespace("store-1", {})
        await sub.create_namespaced_object("store-1", "StatefulSet", STATEFULSET)
        await sub.delete_namespace("store-1")
        assert sub.objects("store-1") == {}
        with pytest.raises(ResourceNotFound):
            await sub.delete_namespace("store-1")

    @pytest.mark.asyncio
    async def test_object_requires_namespace(self):
        with pytest.raises(ResourceNotFound):
            await InMemorySubstrate().create_namespaced_object("nope", "StatefulSet", STATEFULSET)

    @pytest.mark.asyncio
    async def test_readiness_after_reads(self):
        sub = InMemorySubstrate(ready_after_reads=2)
        await sub.create_namespace("store-1", {})
        await sub.create_namespaced_object("store-1", "StatefulSet", STATEFULSET)
        assert not (await sub.read_workload_status("store-1", "StatefulSet", "mysql")).is_ready
        assert (await sub.read_workload_status("store-1", "StatefulSet", "mysql")).is_ready
        assert sub.read_count("store-1", "StatefulSet", "mysql") == 2

    @pytest.mark.asyncio
    async def test_never_ready_override(self):
        sub = InMemorySubstrate(ready_after_reads=1)
        await sub.create_namespace("store-1", {})
        await sub.create_namespaced_object("store-1", "StatefulSet", STATEFULSET)
        sub.set_workload_ready("store-1", "StatefulSet", "mysql", 0)
        assert not (await sub.read_workload_status("store-1", "StatefulSet", "mysql")).is_ready

    @pytest.mark.asyncio
    async def test_list_by_selector(self):
        sub = InMemorySubstrate()
        sub.add_namespace(NamespaceInfo(name="store-1", labels={"owner": "us", "x": "1"}))
        sub.add_namespace(NamespaceInfo(name="kube-system", labels={}))
        names = [ns.name for ns in await sub.list_namespaces("owner=us")]
        assert names == ["store-1"]

    @pytest.mark.asyncio
    async def test_unreachable(self):
        sub = InMemorySubstrate()
        sub.unreachable = True
        with pytest.raises(SubstrateUnreachable):
            await sub.ping()
