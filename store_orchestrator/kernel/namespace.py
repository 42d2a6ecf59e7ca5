# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Namespace Helper — Deterministic naming for tenant resources.

Every tenant lives in exactly one substrate namespace:
    store-{store_id}
The namespace name and the public URL are pure functions of the id,
which is what lets the reconciler recover identity after a restart.
"""

from __future__ import annotations

import re
import uuid
from typing import Dict, Optional

NAMESPACE_PREFIX = "store-"

# Labels stamped on every tenant namespace. The managed-by label is
# the reconciler's discovery key.
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "store-orchestrator"
STORE_ID_LABEL = "store-orchestrator.io/store-id"
ENGINE_LABEL = "store-orchestrator.io/engine"

_STORE_ID_RE = re.compile(r"^[a-z0-9]{8}$")


def new_store_id() -> str:
    """Generate a short opaque id (8 lowercase hex chars, DNS-label safe)."""
    return uuid.uuid4().hex[:8]


def is_valid_store_id(store_id: str) -> bool:
    return bool(_STORE_ID_RE.match(store_id or ""))


def namespace_for(store_id: str) -> str:
    """
    Build the namespace name for a store.

    Examples:
        namespace_for("1a2b3c4d") -> "store-1a2b3c4d"
    """
    return f"{NAMESPACE_PREFIX}{store_id}"


def store_id_from_namespace(namespace: str) -> Optional[str]:
    """Inverse of namespace_for(); None for names we do not own."""
    if not namespace.startswith(NAMESPACE_PREFIX):
        return None
    store_id = namespace[len(NAMESPACE_PREFIX):]
    return store_id if is_valid_store_id(store_id) else None


def host_for(namespace: str, base_domain: str) -> str:
    """
    Build the public hostname for a store.

    Example:
        host_for("store-1a2b3c4d", "127.0.0.1.nip.io") -> "store-1a2b3c4d.127.0.0.1.nip.io"
    """
    return f"{namespace}.{base_domain}"


def url_for(namespace: str, base_domain: str, scheme: str = "http") -> str:
    return f"{scheme}://{host_for(namespace, base_domain)}"


def namespace_labels(store_id: str, engine: str) -> Dict[str, str]:
    return {
        MANAGED_BY_LABEL: MANAGED_BY_VALUE,
        STORE_ID_LABEL: store_id,
        ENGINE_LABEL: engine,
    }


def ownership_selector() -> str:
    """Label selector matching every namespace this orchestrator created."""
    return f"{MANAGED_BY_LABEL}={MANAGED_BY_VALUE}"
