# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
API Dependencies — FastAPI dependency injection.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Header, Request


async def get_client_origin(
    request: Request,
    x_forwarded_for: Optional[str] = Header(None, alias="X-Forwarded-For"),
) -> str:
    """
    Identify the caller for rate limiting.

    The first X-Forwarded-For hop wins (the dashboard sits behind an
    ingress); otherwise the socket peer address.
    """
    if x_forwarded_for:
        first_hop = x_forwarded_for.split(",")[0].strip()
        if first_hop:
            return first_hop
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
