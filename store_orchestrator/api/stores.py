# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Stores API — Create, list, inspect and delete tenant stores.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from store_orchestrator.api.deps import get_client_origin
from store_orchestrator.core.context import get_orchestrator_context

logger = logging.getLogger("orchestrator.api.stores")

router = APIRouter(tags=["stores"])


# ── Request / Response Models ───────────────────────────────

class CreateStoreRequest(BaseModel):
    engine: Optional[str] = None

class DeleteStoreResponse(BaseModel):
    id: str
    message: str
    alreadyDeleted: bool = False


# ── Endpoints ───────────────────────────────────────────────

@router.get("/stores")
async def list_stores() -> List[Dict[str, Any]]:
    """Current registry snapshot."""
    ctx = get_orchestrator_context()
    return [t.to_dict() for t in ctx.orchestrator.list_stores()]


@router.get("/stores/{store_id}")
async def get_store(store_id: str) -> Dict[str, Any]:
    ctx = get_orchestrator_context()
    return ctx.orchestrator.get_store(store_id).to_dict()


@router.post("/stores", status_code=201)
async def create_store(
    req: Optional[CreateStoreRequest] = None,
    origin: str = Depends(get_client_origin),
) -> Dict[str, Any]:
    """Admission-gated creation. Returns as soon as the pipeline has run."""
    ctx = get_orchestrator_context()
    engine = req.engine if req else None
    tenant = await ctx.orchestrator.create_store(engine, origin)
    logger.info(
        "Store %s accepted for %s", tenant.id, origin,
        extra={"store_id": tenant.id, "namespace": tenant.namespace},
    )
    return tenant.to_dict()


@router.delete("/stores/{store_id}", response_model=DeleteStoreResponse)
async def delete_store(store_id: str):
    ctx = get_orchestrator_context()
    result = await ctx.orchestrator.delete_store(store_id)
    return DeleteStoreResponse(
        id=store_id,
        message="Store already deleted" if result.already_deleted else "Store deleted",
        alreadyDeleted=result.already_deleted,
    )


@router.get("/engines")
async def list_engines() -> List[Dict[str, Any]]:
    """Engines a store can be created with."""
    ctx = get_orchestrator_context()
    return [ctx.catalog.get(name).to_dict() for name in ctx.catalog.names()]
