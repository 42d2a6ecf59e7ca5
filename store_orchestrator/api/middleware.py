# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
API Middleware — Trace ID propagation and request logging.

Every response carries X-Trace-Id (taken from the request or freshly
generated). Requests addressing one store are logged with its id so a
store's API traffic can be followed next to its pipeline and monitor
log lines.
"""

from __future__ import annotations

import re
import time
import uuid
import logging
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from store_orchestrator.core.metrics import orchestrator_metrics

logger = logging.getLogger("orchestrator.api")

_STORE_PATH_RE = re.compile(r"^(?:/api)?/stores/([^/]+)")


def store_id_from_path(path: str) -> Optional[str]:
    match = _STORE_PATH_RE.match(path)
    return match.group(1) if match else None


class TraceMiddleware(BaseHTTPMiddleware):
    """Propagates X-Trace-Id, counts responses by status class, logs duration."""

    async def dispatch(self, request: Request, call_next):
        trace_id = request.headers.get("X-Trace-Id") or str(uuid.uuid4())
        request.state.trace_id = trace_id

        start = time.time()
        response: Response = await call_next(request)
        elapsed = (time.time() - start) * 1000

        response.headers["X-Trace-Id"] = trace_id
        orchestrator_metrics.inc("http_responses", f"{response.status_code // 100}xx")

        extra = {"trace_id": trace_id}
        store_id = store_id_from_path(request.url.path)
        if store_id:
            extra["store_id"] = store_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level, "[api] %s %s → %d (%.0fms)",
            request.method, request.url.path, response.status_code, elapsed,
            extra=extra,
        )
        return response
