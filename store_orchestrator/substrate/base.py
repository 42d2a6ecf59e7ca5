# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Substrate Contract — The primitives the orchestrator consumes.

The orchestrator only ever issues declarative intents through this
interface; scheduling, storage and policy enforcement are the
substrate's business.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol


class SubstrateError(Exception):
    """A substrate call failed."""

    code = "SUBSTRATE_ERROR"

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class ResourceNotFound(SubstrateError):
    code = "RESOURCE_NOT_FOUND"


class ResourceConflict(SubstrateError):
    code = "RESOURCE_CONFLICT"


class SubstrateUnreachable(SubstrateError):
    """Transport-level failure: the control plane could not be reached."""
    code = "SUBSTRATE_UNREACHABLE"


@dataclass(frozen=True)
class WorkloadStatus:
    desired: int
    ready: int

    @property
    def is_ready(self) -> bool:
        return self.ready >= 1


@dataclass(frozen=True)
class NamespaceInfo:
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    phase: str = "Active"

    @property
    def terminating(self) -> bool:
        return self.phase == "Terminating"


class Substrate(Protocol):
    """Cluster control-plane primitives used by the orchestrator."""

    async def ping(self) -> None:
        ...

    async def read_namespace(self, name: str) -> Optional[NamespaceInfo]:
        ...

    async def create_namespace(self, name: str, labels: Dict[str, str]) -> NamespaceInfo:
        ...

    async def create_namespaced_object(
        self, namespace: str, kind: str, manifest: Dict[str, Any]
    ) -> Dict[str, Any]:
        ...

    async def read_workload_status(self, namespace: str, kind: str, name: str) -> WorkloadStatus:
        ...

    async def list_namespaces(self, label_selector: str) -> List[NamespaceInfo]:
        ...

    async def delete_namespace(self, name: str) -> None:
        ...

    async def close(self) -> None:
        ...
