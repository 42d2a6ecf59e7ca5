# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Activity Log — Append-only record of create/delete actions.

Held in memory with bounded retention; oldest entries fall off first.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from store_orchestrator.core.tenant import utcnow

CREATE = "create"
DELETE = "delete"
RECONCILE = "reconcile"


@dataclass(frozen=True)
class ActivityEntry:
    action: str
    store_id: str
    namespace: str
    engine: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "storeId": self.store_id,
            "namespace": self.namespace,
            "engine": self.engine,
            "timestamp": self.timestamp.isoformat(),
        }


class ActivityLog:
    def __init__(self, limit: int = 500) -> None:
        self._entries: deque[ActivityEntry] = deque(maxlen=limit)

    def record(
        self,
        action: str,
        store_id: str,
        namespace: str,
        engine: Optional[str] = None,
    ) -> ActivityEntry:
        entry = ActivityEntry(action=action, store_id=store_id, namespace=namespace, engine=engine)
        self._entries.append(entry)
        return entry

    def entries(self) -> List[ActivityEntry]:
        """Newest first."""
        return list(reversed(self._entries))

    def __len__(self) -> int:
        return len(self._entries)
