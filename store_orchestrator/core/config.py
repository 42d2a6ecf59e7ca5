# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Orchestrator Configuration — Environment-driven settings.

All configuration is loaded from environment variables (or .env file).
"""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class OrchestratorSettings(BaseSettings):
    """Process-wide configuration loaded from environment."""

    # --- Admission ---
    MAX_STORES: int = Field(
        default=20,
        description="Ceiling on the number of tenants held in the registry",
    )
    MAX_CONCURRENT_PROVISIONS: int = Field(
        default=5,
        description="Ceiling on pipelines executing at the same time",
    )
    RATE_LIMIT_REQUESTS: int = Field(
        default=10,
        description="Creation requests allowed per origin per window",
    )
    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=60,
        description="Fixed rate-limit window length in seconds",
    )
    RATE_LIMIT_REDIS_URL: str = Field(
        default="",
        description="Redis URL for a shared rate window (empty = in-process window)",
    )

    # --- Readiness ---
    READINESS_MAX_ATTEMPTS: int = Field(
        default=30,
        description="Polls before a provisioning store is marked Failed",
    )
    READINESS_POLL_INTERVAL: float = Field(
        default=5.0,
        description="Seconds between readiness polls",
    )

    # --- Pipeline ---
    DEFAULT_ENGINE: str = Field(default="woocommerce")
    ROLLBACK_ON_FAILURE: bool = Field(
        default=True,
        description="Delete the namespace of a store whose pipeline failed midway",
    )
    STORE_BASE_DOMAIN: str = Field(
        default="127.0.0.1.nip.io",
        description="Domain under which store hostnames are published",
    )
    STORE_URL_SCHEME: str = Field(default="http")
    INGRESS_CLASS: str = Field(default="nginx")

    # --- Substrate ---
    SUBSTRATE_BACKEND: str = Field(
        default="kubernetes",
        description="Substrate adapter: kubernetes | memory",
    )
    KUBE_API_URL: str = Field(
        default="",
        description="API server base URL; empty resolves in-cluster or from kubeconfig",
    )
    KUBE_IN_CLUSTER: Optional[bool] = Field(
        default=None,
        description="Use the mounted service account; unset detects KUBERNETES_SERVICE_HOST",
    )
    KUBECONFIG: str = Field(
        default="",
        description="Kubeconfig path (default ~/.kube/config)",
    )
    KUBE_CONTEXT: str = Field(
        default="",
        description="Kubeconfig context; empty uses current-context",
    )
    KUBE_TOKEN: str = Field(
        default="",
        description="Bearer token for the API server (server-side only)",
    )
    KUBE_CA_CERT: str = Field(
        default="",
        description="Path to the API server CA bundle",
    )
    KUBE_VERIFY_TLS: bool = Field(default=True)
    KUBE_REQUEST_TIMEOUT: float = Field(
        default=10.0,
        description="Per-request timeout for substrate calls in seconds",
    )

    # --- Platform ---
    LOG_LEVEL: str = Field(default="INFO")
    ORCH_ENV: str = Field(
        default="dev",
        description="Environment: dev | prod",
    )
    ACTIVITY_LOG_LIMIT: int = Field(
        default=500,
        description="Activity entries retained in memory",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
    }


# Global singleton
settings = OrchestratorSettings()
