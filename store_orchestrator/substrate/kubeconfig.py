# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Kube Connection — Where the API server is and how to authenticate.

Resolution order (first match wins):
  1. KUBE_API_URL set        explicit URL with KUBE_TOKEN / KUBE_CA_CERT
  2. running in a pod        mounted service account token and CA; chosen
                             when KUBE_IN_CLUSTER is true, or when it is
                             unset and KUBERNETES_SERVICE_HOST is present
  3. kubeconfig              KUBECONFIG setting, then $KUBECONFIG, then
                             ~/.kube/config; the current (or KUBE_CONTEXT)
                             context's cluster and user

Kubeconfig users may authenticate with a bearer token (`token` or
`tokenFile`) or a client certificate (`client-certificate[-data]` +
`client-key[-data]`). Exec and auth-provider plugins are not supported.
"""

from __future__ import annotations

import base64
import logging
import os
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from store_orchestrator.core.config import OrchestratorSettings

logger = logging.getLogger("orchestrator.kubeconfig")

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
DEFAULT_KUBECONFIG = Path("~/.kube/config")


class KubeConfigError(ValueError):
    """No usable cluster connection could be resolved."""


@dataclass(frozen=True)
class KubeConnection:
    server: str
    token: str = ""
    verify: Union[bool, ssl.SSLContext] = True
    source: str = ""


def _tls_context(
    ca_file: Optional[Path] = None,
    ca_data: Optional[bytes] = None,
    cert_file: Optional[Path] = None,
    key_file: Optional[Path] = None,
    cert_data: Optional[bytes] = None,
    key_data: Optional[bytes] = None,
) -> ssl.SSLContext:
    context = ssl.create_default_context(
        cafile=str(ca_file) if ca_file else None,
        cadata=ca_data.decode("ascii") if ca_data else None,
    )
    if not ((cert_file or cert_data) and (key_file or key_data)):
        return context
    # load_cert_chain only reads files; inline data lives on disk for this block only.
    with tempfile.TemporaryDirectory() as tmp:
        if cert_data:
            cert_file = Path(tmp) / "client.crt"
            cert_file.write_bytes(cert_data)
        if key_data:
            key_file = Path(tmp) / "client.key"
            key_file.write_bytes(key_data)
        context.load_cert_chain(cert_file, key_file)
    return context


# ── In-cluster ───────────────────────────────────────────────


def running_in_cluster(settings: OrchestratorSettings, environ: Mapping[str, str]) -> bool:
    if settings.KUBE_IN_CLUSTER is not None:
        return settings.KUBE_IN_CLUSTER
    return bool(environ.get("KUBERNETES_SERVICE_HOST"))


def in_cluster_connection(
    environ: Mapping[str, str],
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> KubeConnection:
    host = environ.get("KUBERNETES_SERVICE_HOST") or "kubernetes.default.svc"
    port = environ.get("KUBERNETES_SERVICE_PORT", "443")
    if ":" in host:
        host = f"[{host}]"
    server = f"https://{host}:{port}"

    token_path = service_account_dir / "token"
    try:
        token = token_path.read_text(encoding="utf-8").strip()
    except OSError as e:
        raise KubeConfigError(f"Service account token unreadable at {token_path}: {e}") from e

    ca_path = service_account_dir / "ca.crt"
    verify: Union[bool, ssl.SSLContext] = _tls_context(ca_file=ca_path) if ca_path.exists() else True
    return KubeConnection(server=server, token=token, verify=verify, source="in-cluster")


# ── Kubeconfig ───────────────────────────────────────────────


def kubeconfig_path(settings: OrchestratorSettings, environ: Mapping[str, str]) -> Path:
    value = settings.KUBECONFIG or environ.get("KUBECONFIG", "")
    # Only the first file of a merged KUBECONFIG list is read.
    first = next((p for p in value.split(os.pathsep) if p), "")
    if first:
        return Path(first).expanduser()
    return DEFAULT_KUBECONFIG.expanduser()


def _named(entries: Any, name: str, section: str, path: Path) -> Dict[str, Any]:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry.get(section) or {}
    raise KubeConfigError(f"{path}: no {section} named '{name}'")


def _data(entry: Dict[str, Any], key: str) -> Optional[bytes]:
    value = entry.get(f"{key}-data")
    return base64.b64decode(value) if value else None


def _file(entry: Dict[str, Any], key: str, base_dir: Path) -> Optional[Path]:
    value = entry.get(key)
    if not value:
        return None
    path = Path(value).expanduser()
    return path if path.is_absolute() else base_dir / path


def load_kubeconfig(path: Path, context_name: str = "") -> KubeConnection:
    """Resolve the server and credentials of one kubeconfig context."""
    try:
        with open(path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except OSError as e:
        raise KubeConfigError(f"Kubeconfig unreadable at {path}: {e}") from e
    except yaml.YAMLError as e:
        raise KubeConfigError(f"Kubeconfig {path} is not valid YAML: {e}") from e

    name = context_name or config.get("current-context")
    if not name:
        raise KubeConfigError(f"{path}: no current-context and KUBE_CONTEXT is unset")
    context = _named(config.get("contexts"), name, "context", path)
    cluster = _named(config.get("clusters"), context.get("cluster", ""), "cluster", path)
    user = _named(config.get("users"), context.get("user", ""), "user", path) if context.get("user") else {}

    server = cluster.get("server")
    if not server:
        raise KubeConfigError(f"{path}: cluster for context '{name}' has no server")

    base_dir = path.parent
    insecure = bool(cluster.get("insecure-skip-tls-verify"))
    try:
        token = user.get("token", "")
        token_file = _file(user, "tokenFile", base_dir)
        if not token and token_file:
            token = token_file.read_text(encoding="utf-8").strip()

        verify = _tls_context(
            ca_file=None if insecure else _file(cluster, "certificate-authority", base_dir),
            ca_data=None if insecure else _data(cluster, "certificate-authority"),
            cert_file=_file(user, "client-certificate", base_dir),
            key_file=_file(user, "client-key", base_dir),
            cert_data=_data(user, "client-certificate"),
            key_data=_data(user, "client-key"),
        )
    except (OSError, ValueError) as e:
        raise KubeConfigError(f"{path}: credentials for context '{name}' unusable: {e}") from e

    if insecure:
        logger.warning("Context '%s' skips API server certificate verification", name)
        verify.check_hostname = False
        verify.verify_mode = ssl.CERT_NONE

    return KubeConnection(server=server, token=token, verify=verify, source=f"kubeconfig:{name}")


# ── Resolution ───────────────────────────────────────────────


def resolve_connection(
    settings: OrchestratorSettings,
    environ: Optional[Mapping[str, str]] = None,
    service_account_dir: Path = SERVICE_ACCOUNT_DIR,
) -> KubeConnection:
    environ = os.environ if environ is None else environ

    if settings.KUBE_API_URL:
        verify: Union[bool, ssl.SSLContext] = settings.KUBE_VERIFY_TLS
        if settings.KUBE_CA_CERT:
            verify = _tls_context(ca_file=Path(settings.KUBE_CA_CERT))
        return KubeConnection(
            server=settings.KUBE_API_URL, token=settings.KUBE_TOKEN,
            verify=verify, source="settings",
        )

    if running_in_cluster(settings, environ):
        return in_cluster_connection(environ, service_account_dir)

    return load_kubeconfig(kubeconfig_path(settings, environ), settings.KUBE_CONTEXT)
