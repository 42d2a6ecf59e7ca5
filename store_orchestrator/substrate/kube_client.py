# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Kubernetes Client — Substrate adapter over the Kubernetes REST API.

Talks to the API server directly with httpx. Only the handful of
resource kinds the provisioning pipeline creates are routed.

Usage:
    client = KubeClient.from_settings(settings)
    await client.create_namespace("store-1a2b3c4d", labels)
"""

from __future__ import annotations

import logging
import ssl
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import httpx

from store_orchestrator.core.config import OrchestratorSettings
from store_orchestrator.substrate.base import (
    NamespaceInfo,
    ResourceConflict,
    ResourceNotFound,
    SubstrateError,
    SubstrateUnreachable,
    WorkloadStatus,
)
from store_orchestrator.substrate.kubeconfig import resolve_connection

logger = logging.getLogger("orchestrator.kube_client")

# kind -> (api prefix, plural resource name)
KIND_ROUTES: Dict[str, tuple[str, str]] = {
    "Secret": ("/api/v1", "secrets"),
    "Service": ("/api/v1", "services"),
    "ConfigMap": ("/api/v1", "configmaps"),
    "ResourceQuota": ("/api/v1", "resourcequotas"),
    "LimitRange": ("/api/v1", "limitranges"),
    "PersistentVolumeClaim": ("/api/v1", "persistentvolumeclaims"),
    "NetworkPolicy": ("/apis/networking.k8s.io/v1", "networkpolicies"),
    "Ingress": ("/apis/networking.k8s.io/v1", "ingresses"),
    "StatefulSet": ("/apis/apps/v1", "statefulsets"),
    "Deployment": ("/apis/apps/v1", "deployments"),
}


def collection_path(namespace: str, kind: str) -> str:
    try:
        prefix, plural = KIND_ROUTES[kind]
    except KeyError:
        raise SubstrateError(f"Unsupported resource kind: {kind}") from None
    return f"{prefix}/namespaces/{namespace}/{plural}"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _to_namespace_info(body: Dict[str, Any]) -> NamespaceInfo:
    metadata = body.get("metadata", {})
    return NamespaceInfo(
        name=metadata.get("name", ""),
        labels=metadata.get("labels") or {},
        created_at=_parse_timestamp(metadata.get("creationTimestamp")),
        phase=(body.get("status") or {}).get("phase", "Active"),
    )


class KubeClient:
    """Async Kubernetes API client implementing the Substrate primitives."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        verify: Union[bool, ssl.SSLContext] = True,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._base_url = base_url
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            verify=verify,
            timeout=timeout,
        )

    @classmethod
    def from_settings(cls, settings: OrchestratorSettings) -> KubeClient:
        connection = resolve_connection(settings)
        logger.info("Kubernetes API %s (%s)", connection.server, connection.source)
        return cls(
            base_url=connection.server,
            token=connection.token,
            verify=connection.verify,
            timeout=settings.KUBE_REQUEST_TIMEOUT,
        )

    # ── Transport ────────────────────────────────────────────

    async def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise SubstrateUnreachable(f"{method} {path}: {e}") from e

        if resp.status_code == 404:
            raise ResourceNotFound(f"{method} {path}: not found", status_code=404)
        if resp.status_code == 409:
            raise ResourceConflict(f"{method} {path}: already exists", status_code=409)
        if resp.status_code >= 400:
            raise SubstrateError(
                f"{method} {path}: HTTP {resp.status_code} {self._status_message(resp)}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        return resp.json()

    @staticmethod
    def _status_message(resp: httpx.Response) -> str:
        try:
            return resp.json().get("message", "")
        except ValueError:
            return resp.text[:200]

    # ── Primitives ───────────────────────────────────────────

    async def ping(self) -> None:
        await self._request("GET", "/version")

    async def read_namespace(self, name: str) -> Optional[NamespaceInfo]:
        try:
            body = await self._request("GET", f"/api/v1/namespaces/{name}")
        except ResourceNotFound:
            return None
        return _to_namespace_info(body)

    async def create_namespace(self, name: str, labels: Dict[str, str]) -> NamespaceInfo:
        body = await self._request(
            "POST",
            "/api/v1/namespaces",
            json={
                "apiVersion": "v1",
                "kind": "Namespace",
                "metadata": {"name": name, "labels": labels},
            },
        )
        return _to_namespace_info(body)

    async def create_namespaced_object(
        self, namespace: str, kind: str, manifest: Dict[str, Any]
    ) -> Dict[str, Any]:
        return await self._request("POST", collection_path(namespace, kind), json=manifest)

    async def read_workload_status(self, namespace: str, kind: str, name: str) -> WorkloadStatus:
        body = await self._request("GET", f"{collection_path(namespace, kind)}/{name}")
        spec = body.get("spec") or {}
        status = body.get("status") or {}
        return WorkloadStatus(
            desired=int(spec.get("replicas", 1)),
            ready=int(status.get("readyReplicas") or 0),
        )

    async def list_namespaces(self, label_selector: str) -> List[NamespaceInfo]:
        body = await self._request(
            "GET", "/api/v1/namespaces", params={"labelSelector": label_selector},
        )
        return [_to_namespace_info(item) for item in body.get("items", [])]

    async def delete_namespace(self, name: str) -> None:
        # Background propagation: the API server garbage-collects every
        # namespaced object once the namespace is gone.
        try:
            await self._request(
                "DELETE",
                f"/api/v1/namespaces/{name}",
                json={"propagationPolicy": "Background"},
            )
        except ResourceConflict:
            # 409 while an earlier delete is still purging the namespace.
            info = await self.read_namespace(name)
            if info is None:
                raise ResourceNotFound(f"DELETE namespace {name}: already gone", status_code=404) from None
            if not info.terminating:
                raise
            logger.info("Namespace already terminating: %s", name, extra={"namespace": name})
            return
        logger.info("Namespace delete issued: %s", name, extra={"namespace": name})

    async def close(self) -> None:
        await self._client.aclose()
