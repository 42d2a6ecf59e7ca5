# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""Unit tests for KubeClient — Kubernetes REST substrate adapter."""

from unittest.mock import AsyncMock

import httpx
import pytest

from store_orchestrator.substrate.base import (
    ResourceConflict,
    ResourceNotFound,
    SubstrateError,
    SubstrateUnreachable,
)
from store_orchestrator.substrate.kube_client import KubeClient, collection_path


def make_client(*responses):
    client = KubeClient("https://kube.test:6443", token="t0ken")
    client._client.request = AsyncMock(side_effect=list(responses))
    return client


class TestCollectionPath:
    def test_core_kind(self):
        assert collection_path("store-1", "Secret") == "/api/v1/namespaces/store-1/secrets"

    def test_group_kind(self):
        assert collection_path("store-1", "StatefulSet") == "/apis/apps/v1/namespaces/store-1/statefulsets"

    def test_unknown_kind(self):
        with pytest.raises(SubstrateError):
            collection_path("store-1", "CronTab")


class TestKubeClient:
    @pytest.mark.asyncio
    async def test_auth_header(self):
        client = KubeClient("https://kube.test:6443", token="t0ken")
        assert client._client.headers["Authorization"] == "Bearer t0ken"
        await client.close()

    @pytest.mark.asyncio
    async def test_read_namespace(self):
        client = make_client(httpx.Response(200, json={
            "metadata": {
                "name": "store-a1b2c3d4",
                "labels": {"store-orchestrator.io/store-id": "a1b2c3d4"},
                "creationTimestamp": "2026-01-02T03:04:05Z",
            },
            "status": {"phase": "Active"},
        }))
        info = await client.read_namespace("store-a1b2c3d4")
        assert info.name == "store-a1b2c3d4"
        assert info.created_at.year == 2026
        assert not info.terminating
        args = client._client.request.call_args[0]
        assert args == ("GET", "/api/v1/namespaces/store-a1b2c3d4")

    @pytest.mark.asyncio
    async def test_read_missing_namespace(self):
        client = make_client(httpx.Response(404, json={"message": "not found"}))
        assert await client.read_namespace("store-gone0000") is None

    @pytest.mark.asyncio
    async def test_create_namespace_posts_labels(self):
        client = make_client(httpx.Response(201, json={"metadata": {"name": "store-a1b2c3d4"}}))
        await client.create_namespace("store-a1b2c3d4", {"k": "v"})
        call = client._client.request.call_args
        assert call[0] == ("POST", "/api/v1/namespaces")
        assert call[1]["json"]["metadata"]["labels"] == {"k": "v"}

    @pytest.mark.asyncio
    async def test_create_object_routes_by_kind(self):
        client = make_client(httpx.Response(201, json={}))
        manifest = {"kind": "Ingress", "metadata": {"name": "wordpress"}}
        await client.create_namespaced_object("store-a1b2c3d4", "Ingress", manifest)
        call = client._client.request.call_args
        assert call[0][1] == "/apis/networking.k8s.io/v1/namespaces/store-a1b2c3d4/ingresses"
        assert call[1]["json"] is manifest

    @pytest.mark.asyncio
    async def test_conflict(self):
        client = make_client(httpx.Response(409, json={"message": "exists"}))
        with pytest.raises(ResourceConflict):
            await client.create_namespace("store-a1b2c3d4", {})

    @pytest.mark.asyncio
    async def test_server_error(self):
        client = make_client(httpx.Response(500, json={"message": "etcd timeout"}))
        with pytest.raises(SubstrateError) as exc_info:
            await client.create_namespaced_object("store-1", "Secret", {"kind": "Secret"})
        assert exc_info.value.status_code == 500
        assert "etcd timeout" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_is_unreachable(self):
        client = make_client(httpx.ConnectError("connection refused"))
        with pytest.raises(SubstrateUnreachable):
            await client.ping()

    @pytest.mark.asyncio
    async def test_workload_status(self):
        client = make_client(httpx.Response(200, json={
            "spec": {"replicas": 1},
            "status": {"readyReplicas": 1},
        }))
        status = await client.read_workload_status("store-1", "StatefulSet", "mysql")
        assert status.desired == 1
        assert status.is_ready

    @pytest.mark.asyncio
    async def test_workload_status_not_ready(self):
        client = make_client(httpx.Response(200, json={"spec": {"replicas": 1}, "status": {}}))
        status = await client.read_workload_status("store-1", "Deployment", "wordpress")
        assert not status.is_ready

    @pytest.mark.asyncio
    async def test_list_namespaces_selector(self):
        client = make_client(httpx.Response(200, json={"items": [
            {"metadata": {"name": "store-aaaa0001"}},
            {"metadata": {"name": "store-aaaa0002"}, "status": {"phase": "Terminating"}},
        ]}))
        items = await client.list_namespaces("app.kubernetes.io/managed-by=store-orchestrator")
        assert [i.name for i in items] == ["store-aaaa0001", "store-aaaa0002"]
        assert items[1].terminating
        call = client._client.request.call_args
        assert call[1]["params"] == {"labelSelector": "app.kubernetes.io/managed-by=store-orchestrator"}

    @pytest.mark.asyncio
    async def test_delete_namespace(self):
        client = make_client(httpx.Response(200, json={"status": {"phase": "Terminating"}}))
        await client.delete_namespace("store-a1b2c3d4")
        call = client._client.request.call_args
        assert call[0] == ("DELETE", "/api/v1/namespaces/store-a1b2c3d4")
        assert call[1]["json"] == {"propagationPolicy": "Background"}

    @pytest.mark.asyncio
    async def test_delete_missing_namespace(self):
        client = make_client(httpx.Response(404, json={}))
        with pytest.raises(ResourceNotFound):
            await client.delete_namespace("store-a1b2c3d4")

    @pytest.mark.asyncio
    async def test_delete_while_terminating(self):
        client = make_client(
            httpx.Response(409, json={"message": "namespace is being terminated"}),
            httpx.Response(200, json={
                "metadata": {"name": "store-a1b2c3d4"},
                "status": {"phase": "Terminating"},
            }),
        )
        await client.delete_namespace("store-a1b2c3d4")
        assert client._client.request.call_args[0] == ("GET", "/api/v1/namespaces/store-a1b2c3d4")

    @pytest.mark.asyncio
    async def test_delete_conflict_then_gone(self):
        client = make_client(
            httpx.Response(409, json={"message": "conflict"}),
            httpx.Response(404, json={}),
        )
        with pytest.raises(ResourceNotFound):
            await client.delete_namespace("store-a1b2c3d4")

    @pytest.mark.asyncio
    async def test_delete_conflict_on_active_namespace(self):
        client = make_client(
            httpx.Response(409, json={"message": "conflict"}),
            httpx.Response(200, json={"metadata": {"name": "store-a1b2c3d4"}, "status": {"phase": "Active"}}),
        )
        with pytest.raises(ResourceConflict):
            await client.delete_namespace("store-a1b2c3d4")
