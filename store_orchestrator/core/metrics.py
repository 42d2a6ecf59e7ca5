# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Metrics — In-memory counters for orchestrator observability.

Counters survive only as long as the process; tenant counts are
always recomputed from the registry.

Labelled counters are stored flat as "<name>:<label>", e.g.
`admission_rejected:rate` or `pipeline_failures:ingress`, and can be
read back per name with `breakdown()`.
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

# Counter names
STORES_CREATED = "stores_created"
STORES_FAILED = "stores_failed"
STORES_DELETED = "stores_deleted"
PIPELINE_FAILURES = "pipeline_failures"
DELETION_FAILURES = "deletion_failures"
ADMISSION_REJECTED = "admission_rejected"
READINESS_READY = "readiness_ready"
READINESS_FAILED = "readiness_failed"

HISTORY_LIMIT = 1000


class Metrics:
    """In-memory counters, gauges and latency histograms."""

    def __init__(self):
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._histograms: Dict[str, List[float]] = defaultdict(list)
        self._start_time = time.time()

    @staticmethod
    def _key(name: str, label: Optional[str]) -> str:
        return f"{name}:{label}" if label else name

    # ── Counters ────────────────────────────────────────────────

    def inc(self, name: str, label: Optional[str] = None, amount: int = 1) -> None:
        self._counters[self._key(name, label)] += amount

    def get_counter(self, name: str, label: Optional[str] = None) -> int:
        return self._counters.get(self._key(name, label), 0)

    def breakdown(self, name: str) -> Dict[str, int]:
        """Per-label values of a labelled counter, e.g. failures by step."""
        prefix = f"{name}:"
        return {
            key[len(prefix):]: value
            for key, value in self._counters.items()
            if key.startswith(prefix)
        }

    # ── Gauges ──────────────────────────────────────────────────

    def set_gauge(self, name: str, value: float) -> None:
        self._gauges[name] = value

    def get_gauge(self, name: str) -> float:
        return self._gauges.get(name, 0.0)

    # ── Latency ─────────────────────────────────────────────────

    def observe(self, name: str, value: float) -> None:
        """Record one latency sample in ms."""
        samples = self._histograms[name]
        samples.append(value)
        if len(samples) > HISTORY_LIMIT:
            del samples[:-HISTORY_LIMIT]

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Observe the wall time of the block, only when it completes."""
        start = time.time()
        yield
        self.observe(name, (time.time() - start) * 1000)

    def reset(self) -> None:
        self._counters.clear()
        self._gauges.clear()
        self._histograms.clear()

    # ── Export ──────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        result = {
            "uptime_seconds": round(time.time() - self._start_time, 1),
            "counters": dict(self._counters),
            "gauges": dict(self._gauges),
        }
        for name, values in self._histograms.items():
            if values:
                ordered = sorted(values)
                result[f"histogram_{name}"] = {
                    "count": len(values),
                    "avg": round(sum(values) / len(values), 2),
                    "p95": round(ordered[int(0.95 * (len(ordered) - 1))], 2),
                    "max": round(ordered[-1], 2),
                    "min": round(ordered[0], 2),
                }
        return result


# Global singleton
orchestrator_metrics = Metrics()
