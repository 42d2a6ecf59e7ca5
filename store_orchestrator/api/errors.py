# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
API Error Handling — Unified error structure.

Domain exceptions raised by the orchestrator are translated here into
APIError responses:

    CapacityExceeded, UnsupportedEngine     -> 400
    StoreNotFound                           -> 404
    ConflictExists, CreationInterrupted     -> 409
    ConcurrencyExceeded, RateLimited        -> 429 (+ Retry-After)
    PipelineStepFailed, DeletionFailed      -> 500
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from store_orchestrator.core.metrics import orchestrator_metrics
from store_orchestrator.provisioning.engines import UnsupportedEngineError
from store_orchestrator.provisioning.pipeline import ConflictExistsError, PipelineStepFailed
from store_orchestrator.resilience.admission import (
    AdmissionRejected,
    CapacityExceeded,
    RateLimited,
)
from store_orchestrator.runtime.orchestrator import CreationInterrupted, DeletionFailed, StoreNotFoundError


class APIError(Exception):
    """Base API error with structured response."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Dict[str, Any]] = None,
        trace_id: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.trace_id = trace_id or str(uuid.uuid4())
        self.headers = headers or {}
        super().__init__(message)


class StoreNotFoundAPIError(APIError):
    def __init__(self, store_id: str, trace_id: str = None):
        super().__init__(
            code="STORE_NOT_FOUND",
            message=f"Store '{store_id}' not found",
            status_code=404,
            trace_id=trace_id,
        )


class PipelineFailedAPIError(APIError):
    def __init__(self, error: PipelineStepFailed, trace_id: str = None):
        super().__init__(
            code=error.code,
            message="Failed to provision store",
            status_code=500,
            details={
                "storeId": error.store_id,
                "engine": error.engine,
                "step": error.step,
                "cause": str(error.cause),
                "rolledBack": error.rolled_back,
            },
            trace_id=trace_id,
        )


def to_api_error(exc: Exception, trace_id: Optional[str] = None) -> APIError:
    """Translate a domain exception into an APIError."""
    if isinstance(exc, APIError):
        return exc
    if isinstance(exc, StoreNotFoundError):
        return StoreNotFoundAPIError(exc.store_id, trace_id=trace_id)
    if isinstance(exc, UnsupportedEngineError):
        return APIError(
            code=exc.code, message=str(exc), status_code=400,
            details={"available": exc.available}, trace_id=trace_id,
        )
    if isinstance(exc, CapacityExceeded):
        return APIError(code=exc.code, message=exc.message, status_code=400, trace_id=trace_id)
    if isinstance(exc, RateLimited):
        return APIError(
            code=exc.code, message=exc.message, status_code=429,
            details={"retryAfter": exc.retry_after}, trace_id=trace_id,
            headers={"Retry-After": str(exc.retry_after)},
        )
    if isinstance(exc, AdmissionRejected):
        return APIError(code=exc.code, message=exc.message, status_code=429, trace_id=trace_id)
    if isinstance(exc, ConflictExistsError):
        return APIError(
            code=exc.code, message=str(exc), status_code=409,
            details={"namespace": exc.namespace}, trace_id=trace_id,
        )
    if isinstance(exc, CreationInterrupted):
        return APIError(
            code=exc.code, message=str(exc), status_code=409,
            details={"storeId": exc.store_id}, trace_id=trace_id,
        )
    if isinstance(exc, PipelineStepFailed):
        return PipelineFailedAPIError(exc, trace_id=trace_id)
    if isinstance(exc, DeletionFailed):
        return APIError(
            code=exc.code, message="Failed to delete store", status_code=500,
            details={"storeId": exc.store_id, "cause": str(exc.cause)}, trace_id=trace_id,
        )
    raise TypeError(f"No API mapping for {type(exc).__name__}")


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Global exception handler for APIError."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "code": exc.code,
            "message": exc.message,
            "trace_id": exc.trace_id,
            "details": exc.details,
        },
        headers=exc.headers,
    )


async def domain_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for orchestrator domain exceptions."""
    orchestrator_metrics.inc("api_errors", getattr(exc, "code", type(exc).__name__))
    trace_id = getattr(request.state, "trace_id", None)
    return await api_error_handler(request, to_api_error(exc, trace_id=trace_id))


DOMAIN_EXCEPTIONS = (
    StoreNotFoundError,
    UnsupportedEngineError,
    AdmissionRejected,
    ConflictExistsError,
    CreationInterrupted,
    PipelineStepFailed,
    DeletionFailed,
)
