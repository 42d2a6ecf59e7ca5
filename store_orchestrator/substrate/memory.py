# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
In-Memory Substrate — A process-local stand-in for the cluster.

Used for local runs (SUBSTRATE_BACKEND=memory) and for testing. It keeps
namespaces and their objects in dicts, deletes namespaces with
cascading semantics, and simulates workload readiness.

Readiness simulation: a workload reports one ready replica after it has
been read `ready_after_reads` times, unless overridden with
`set_workload_ready()`. `ready_after_reads=None` means never ready.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Set, Tuple

from store_orchestrator.core.tenant import utcnow
from store_orchestrator.substrate.base import (
    NamespaceInfo,
    ResourceConflict,
    ResourceNotFound,
    SubstrateError,
    SubstrateUnreachable,
    WorkloadStatus,
)

logger = logging.getLogger("orchestrator.memory_substrate")

WORKLOAD_KINDS = ("StatefulSet", "Deployment")


def _matches(labels: Dict[str, str], selector: str) -> bool:
    for term in filter(None, (s.strip() for s in selector.split(","))):
        key, _, value = term.partition("=")
        if labels.get(key) != value:
            return False
    return True


class InMemorySubstrate:
    """Dict-backed implementation of the Substrate primitives."""

    def __init__(self, ready_after_reads: Optional[int] = 1) -> None:
        self._namespaces: Dict[str, NamespaceInfo] = {}
        self._objects: Dict[str, Dict[Tuple[str, str], Dict[str, Any]]] = defaultdict(dict)
        self._reads: Dict[Tuple[str, str, str], int] = defaultdict(int)
        self._ready_overrides: Dict[Tuple[str, str, str], int] = {}
        self._fail_kinds: Set[str] = set()
        self._fail_deletes: bool = False
        self._fail_reads: bool = False
        self.ready_after_reads = ready_after_reads
        self.unreachable = False
        self.calls: List[Tuple[str, ...]] = []

    # ── Fault injection / inspection ──────────────────────────

    def fail_on_kind(self, kind: str) -> None:
        """Make create_namespaced_object() fail for this kind."""
        self._fail_kinds.add(kind)

    def fail_deletes(self, enabled: bool = True) -> None:
        self._fail_deletes = enabled

    def fail_reads(self, enabled: bool = True) -> None:
        """Make read_workload_status() fail (substrate read errors)."""
        self._fail_reads = enabled

    def set_workload_ready(self, namespace: str, kind: str, name: str, ready: int) -> None:
        self._ready_overrides[(namespace, kind, name)] = ready

    def objects(self, namespace: str) -> Dict[Tuple[str, str], Dict[str, Any]]:
        return dict(self._objects.get(namespace, {}))

    def created_kinds(self, namespace: str) -> List[str]:
        return [kind for (kind, _name) in self._objects.get(namespace, {})]

    def read_count(self, namespace: str, kind: str, name: str) -> int:
        return self._reads.get((namespace, kind, name), 0)

    def has_namespace(self, name: str) -> bool:
        return name in self._namespaces

    def add_namespace(self, info: NamespaceInfo) -> None:
        """Seed a namespace directly (e.g. to simulate state left by a previous process)."""
        self._namespaces[info.name] = info

    def _check_reachable(self) -> None:
        if self.unreachable:
            raise SubstrateUnreachable("substrate unreachable")

    # ── Primitives ───────────────────────────────────────────

    async def ping(self) -> None:
        self._check_reachable()

    async def read_namespace(self, name: str) -> Optional[NamespaceInfo]:
        self._check_reachable()
        self.calls.append(("read_namespace", name))
        return self._namespaces.get(name)

    async def create_namespace(self, name: str, labels: Dict[str, str]) -> NamespaceInfo:
        self._check_reachable()
        self.calls.append(("create_namespace", name))
        if "Namespace" in self._fail_kinds:
            raise SubstrateError(f"injected failure creating namespace {name}", status_code=500)
        if name in self._namespaces:
            raise ResourceConflict(f"namespace {name} already exists", status_code=409)
        info = NamespaceInfo(name=name, labels=dict(labels), created_at=utcnow())
        self._namespaces[name] = info
        return info

    async def create_namespaced_object(
        self, namespace: str, kind: str, manifest: Dict[str, Any]
    ) -> Dict[str, Any]:
        self._check_reachable()
        name = manifest.get("metadata", {}).get("name", "")
        self.calls.append(("create", namespace, kind, name))
        if namespace not in self._namespaces:
            raise ResourceNotFound(f"namespace {namespace} not found", status_code=404)
        if kind in self._fail_kinds:
            raise SubstrateError(f"injected failure creating {kind}/{name}", status_code=500)
        key = (kind, name)
        if key in self._objects[namespace]:
            raise ResourceConflict(f"{kind}/{name} already exists", status_code=409)
        stored = copy.deepcopy(manifest)
        self._objects[namespace][key] = stored
        return stored

    async def read_workload_status(self, namespace: str, kind: str, name: str) -> WorkloadStatus:
        self._check_reachable()
        if self._fail_reads:
            raise SubstrateError(f"injected failure reading {kind}/{name}", status_code=500)
        manifest = self._objects.get(namespace, {}).get((kind, name))
        if manifest is None:
            raise ResourceNotFound(f"{kind}/{name} not found in {namespace}", status_code=404)

        desired = int(manifest.get("spec", {}).get("replicas", 1))
        key = (namespace, kind, name)
        self._reads[key] += 1
        if key in self._ready_overrides:
            ready = self._ready_overrides[key]
        elif self.ready_after_reads is not None and self._reads[key] >= self.ready_after_reads:
            ready = desired
        else:
            ready = 0
        return WorkloadStatus(desired=desired, ready=ready)

    async def list_namespaces(self, label_selector: str) -> List[NamespaceInfo]:
        self._check_reachable()
        return [ns for ns in self._namespaces.values() if _matches(ns.labels, label_selector)]

    async def delete_namespace(self, name: str) -> None:
        self._check_reachable()
        self.calls.append(("delete_namespace", name))
        if self._fail_deletes:
            raise SubstrateError(f"injected failure deleting namespace {name}", status_code=500)
        if name not in self._namespaces:
            raise ResourceNotFound(f"namespace {name} not found", status_code=404)
        del self._namespaces[name]
        self._objects.pop(name, None)
        for key in [k for k in self._reads if k[0] == name]:
            del self._reads[key]
        logger.info("Namespace deleted (cascade): %s", name, extra={"namespace": name})

    async def close(self) -> None:
        return None
