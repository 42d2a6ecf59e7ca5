# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Tenant Record — One customer's isolated store and its lifecycle state.

Records are immutable snapshots. Every status change produces a new
record via `with_status()`; the registry swaps it in atomically.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class TenantStatus(str, Enum):
    PROVISIONING = "Provisioning"
    READY = "Ready"
    FAILED = "Failed"
    DELETING = "Deleting"


# Allowed (from -> to) status changes. Removal after DELETING is not a
# status change and is handled by the registry directly.
VALID_TRANSITIONS = {
    TenantStatus.PROVISIONING: {TenantStatus.READY, TenantStatus.FAILED, TenantStatus.DELETING},
    TenantStatus.READY: {TenantStatus.DELETING},
    TenantStatus.FAILED: {TenantStatus.DELETING},
    TenantStatus.DELETING: {TenantStatus.DELETING},
}


def can_transition(current: TenantStatus, target: TenantStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, set())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Tenant:
    """Immutable tenant snapshot held by the registry."""

    id: str
    namespace: str
    engine: str
    url: str
    status: TenantStatus = TenantStatus.PROVISIONING
    failure_reason: Optional[str] = None
    created_at: datetime = dataclasses.field(default_factory=utcnow)

    def __post_init__(self):
        if not self.id:
            raise ValueError("tenant id must not be empty")
        if self.status != TenantStatus.FAILED and self.failure_reason:
            raise ValueError("failure_reason is only valid on Failed tenants")

    def with_status(
        self,
        status: TenantStatus,
        failure_reason: Optional[str] = None,
    ) -> Tenant:
        """Return a copy with a new status; failure_reason kept only for Failed."""
        reason = failure_reason if status == TenantStatus.FAILED else None
        return dataclasses.replace(self, status=status, failure_reason=reason)

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation served by the store API."""
        return {
            "id": self.id,
            "namespace": self.namespace,
            "engine": self.engine,
            "status": self.status.value,
            "failureReason": self.failure_reason,
            "url": self.url,
            "createdAt": self.created_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"Tenant(id={self.id!r}, status={self.status.value})"
