# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Tenant Registry — In-memory directory of tenant records.

The registry is this process's only view of the world. It is not
durable: after a restart it is rebuilt wholesale by the Reconciler.

Every operation is synchronous, so each call is atomic with respect to
the event loop. Callers never see the underlying dict.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from store_orchestrator.core.tenant import Tenant, TenantStatus, can_transition

logger = logging.getLogger("orchestrator.registry")


class RegistryError(Exception):
    """Base class for registry errors."""
    code = "REGISTRY_ERROR"


class DuplicateTenantError(RegistryError):
    code = "DUPLICATE_TENANT"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Tenant '{store_id}' already registered")


class InvalidTransitionError(RegistryError):
    code = "INVALID_TRANSITION"

    def __init__(self, store_id: str, current: TenantStatus, target: TenantStatus):
        self.store_id = store_id
        self.current = current
        self.target = target
        super().__init__(
            f"Tenant '{store_id}' cannot move from {current.value} to {target.value}"
        )


class TenantRegistry:
    """
    Owns the tenant map and enforces its invariants.

      - ids are unique, and an id retired by deletion is never reissued
      - one namespace per tenant
      - status only moves along VALID_TRANSITIONS
    """

    def __init__(self) -> None:
        self._tenants: Dict[str, Tenant] = {}
        self._retired: Set[str] = set()

    # ── Lookup ──────────────────────────────────────────────────

    def get(self, store_id: str) -> Optional[Tenant]:
        return self._tenants.get(store_id)

    def list(self) -> List[Tenant]:
        """Snapshot of all tenants, oldest first."""
        return sorted(self._tenants.values(), key=lambda t: t.created_at)

    def count_by_status(self) -> Dict[TenantStatus, int]:
        counts = {status: 0 for status in TenantStatus}
        for tenant in self._tenants.values():
            counts[tenant.status] += 1
        return counts

    def is_retired(self, store_id: str) -> bool:
        return store_id in self._retired

    def is_known(self, store_id: str) -> bool:
        """True for live ids and for ids retired during this process lifetime."""
        return store_id in self._tenants or store_id in self._retired

    # ── Mutation ────────────────────────────────────────────────

    def put(self, tenant: Tenant) -> Tenant:
        """Insert a new tenant. Raises DuplicateTenantError on id or namespace reuse."""
        if self.is_known(tenant.id):
            raise DuplicateTenantError(tenant.id)
        for existing in self._tenants.values():
            if existing.namespace == tenant.namespace:
                raise DuplicateTenantError(tenant.id)
        self._tenants[tenant.id] = tenant
        logger.info(
            "Registered store %s (%s)", tenant.id, tenant.status.value,
            extra={"store_id": tenant.id, "namespace": tenant.namespace},
        )
        return tenant

    def transition(
        self,
        store_id: str,
        target: TenantStatus,
        failure_reason: Optional[str] = None,
        expected: Optional[Iterable[TenantStatus]] = None,
    ) -> Optional[Tenant]:
        """
        Replace a tenant's record with one in the target status.

        Returns the new record, or None when the tenant is gone or its
        current status is not in `expected` (check-then-no-op). Raises
        InvalidTransitionError for transitions the state machine forbids.
        """
        current = self._tenants.get(store_id)
        if current is None:
            return None
        if expected is not None and current.status not in set(expected):
            return None
        if not can_transition(current.status, target):
            raise InvalidTransitionError(store_id, current.status, target)

        updated = current.with_status(target, failure_reason)
        self._tenants[store_id] = updated
        if current.status != target:
            logger.info(
                "Store %s: %s -> %s", store_id, current.status.value, target.value,
                extra={"store_id": store_id},
            )
        return updated

    def delete(self, store_id: str) -> Optional[Tenant]:
        """Remove a tenant and retire its id. Returns the removed record."""
        tenant = self._tenants.pop(store_id, None)
        if tenant is not None:
            self._retired.add(store_id)
            logger.info("Removed store %s", store_id, extra={"store_id": store_id})
        return tenant

    def replace_all(self, tenants: Iterable[Tenant]) -> None:
        """Overwrite the directory with reconciled records."""
        self._tenants = {t.id: t for t in tenants}
        self._retired -= set(self._tenants)

    def __contains__(self, store_id: str) -> bool:
        return store_id in self._tenants

    def __len__(self) -> int:
        return len(self._tenants)
