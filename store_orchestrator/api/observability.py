# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Observability API — Health check, aggregate metrics, activity log.
"""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter

from store_orchestrator.core.context import get_orchestrator_context
from store_orchestrator.core.metrics import orchestrator_metrics

router = APIRouter(tags=["observability"])


@router.get("/health")
async def health_check():
    """Liveness plus the outcome of the startup reconciliation."""
    ctx = get_orchestrator_context()
    report = ctx.last_reconcile
    return {
        "status": "ok",
        "version": "0.1.0",
        "substrate": ctx.settings.SUBSTRATE_BACKEND,
        "reconciliation": "degraded" if report is not None and not report.ok else "ok",
        "reconcile": report.to_dict() if report is not None else None,
    }


@router.get("/metrics")
async def get_metrics() -> Dict[str, Any]:
    """Aggregate store counts plus process counters."""
    ctx = get_orchestrator_context()
    summary = ctx.orchestrator.summary()
    summary["process"] = orchestrator_metrics.snapshot()
    return summary


@router.get("/activity")
async def get_activity() -> List[Dict[str, Any]]:
    """Create/delete actions, newest first."""
    ctx = get_orchestrator_context()
    return [entry.to_dict() for entry in ctx.activity.entries()]
