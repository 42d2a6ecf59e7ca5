# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Store Orchestrator Application Entry Point.

FastAPI app with lifespan, middleware and API routers. The registry is
rebuilt from the substrate before the first request is served.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from store_orchestrator.core.config import OrchestratorSettings, settings
from store_orchestrator.core.context import init_orchestrator_context
from store_orchestrator.core.logging import setup_logging
from store_orchestrator.api.errors import APIError, DOMAIN_EXCEPTIONS, api_error_handler, domain_error_handler
from store_orchestrator.api.middleware import TraceMiddleware
from store_orchestrator.api.stores import router as stores_router
from store_orchestrator.api.observability import router as observability_router
from store_orchestrator.kernel.redis_client import close_redis_pool, get_redis_pool
from store_orchestrator.resilience.rate_limit import RateWindow, RedisRateWindow
from store_orchestrator.substrate.base import Substrate
from store_orchestrator.substrate.kube_client import KubeClient
from store_orchestrator.substrate.memory import InMemorySubstrate

logger = logging.getLogger("orchestrator.main")


def build_substrate(cfg: OrchestratorSettings) -> Substrate:
    """Select the substrate adapter named by SUBSTRATE_BACKEND."""
    backend = cfg.SUBSTRATE_BACKEND.lower()
    if backend == "kubernetes":
        return KubeClient.from_settings(cfg)
    if backend == "memory":
        logger.warning("Using the in-memory substrate: nothing is provisioned for real")
        return InMemorySubstrate()
    raise ValueError(f"Unknown SUBSTRATE_BACKEND: {cfg.SUBSTRATE_BACKEND}")


async def build_rate_window(cfg: OrchestratorSettings) -> RateWindow | None:
    if not cfg.RATE_LIMIT_REDIS_URL:
        return None
    redis = await get_redis_pool(cfg.RATE_LIMIT_REDIS_URL)
    return RedisRateWindow(
        redis,
        limit=cfg.RATE_LIMIT_REQUESTS,
        window_seconds=cfg.RATE_LIMIT_WINDOW_SECONDS,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage startup/shutdown of orchestrator resources."""
    # Startup
    setup_logging(settings.LOG_LEVEL)
    substrate = build_substrate(settings)
    ctx = init_orchestrator_context(settings, substrate, rate_window=await build_rate_window(settings))
    logger.info("Engines loaded: %s", ", ".join(ctx.catalog.names()) or "none")

    report = await ctx.reconcile()
    if not report.ok:
        logger.error("[orchestrator] Starting degraded: %s", report.error)
    logger.info("[orchestrator] Ready (%d stores reconciled)", report.discovered)
    yield
    # Shutdown
    await ctx.shutdown()
    await close_redis_pool()
    logger.info("[orchestrator] Shutdown complete")


app = FastAPI(
    title="Store Orchestrator",
    description="Per-tenant store provisioning on a shared cluster",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware ───────────────────────────────────────────────
app.add_middleware(TraceMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Error Handlers ──────────────────────────────────────────
app.add_exception_handler(APIError, api_error_handler)
for exc_class in DOMAIN_EXCEPTIONS:
    app.add_exception_handler(exc_class, domain_error_handler)

# ── Routes ──────────────────────────────────────────────────
app.include_router(stores_router)
app.include_router(stores_router, prefix="/api", include_in_schema=False)
app.include_router(observability_router)
