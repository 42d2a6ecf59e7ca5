# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Manifest Builders — Declarative resource intents for one tenant.

Pure functions: engine definition (+ identity) in, manifest dict out.
Nothing here talks to the substrate.

Credentials only ever appear inside the Secret manifest. Workloads
reference them through `secretKeyRef`.
"""

from __future__ import annotations

from typing import Any, Dict, List

from store_orchestrator.kernel.namespace import MANAGED_BY_LABEL, MANAGED_BY_VALUE, STORE_ID_LABEL
from store_orchestrator.provisioning.engines import ComponentSpec, EngineDefinition

COMPONENT_LABEL = "app.kubernetes.io/component"
APP_LABEL = "app"


def _metadata(name: str, store_id: str, component: str = "") -> Dict[str, Any]:
    labels = {MANAGED_BY_LABEL: MANAGED_BY_VALUE, STORE_ID_LABEL: store_id}
    if component:
        labels[COMPONENT_LABEL] = component
    return {"name": name, "labels": labels}


def _selector(component: ComponentSpec) -> Dict[str, str]:
    return {APP_LABEL: component.name}


def _secret_env(component: ComponentSpec, secret_name: str) -> List[Dict[str, Any]]:
    return [
        {
            "name": env_name,
            "valueFrom": {"secretKeyRef": {"name": secret_name, "key": key}},
        }
        for env_name, key in component.secret_env.items()
    ]


# ── Isolation ───────────────────────────────────────────────

def resource_quota(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "ResourceQuota",
        "metadata": _metadata("store-quota", store_id),
        "spec": {"hard": dict(engine.quota)},
    }


def limit_range(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    limit = {"type": "Container"}
    limit.update(engine.limits)
    return {
        "apiVersion": "v1",
        "kind": "LimitRange",
        "metadata": _metadata("store-limits", store_id),
        "spec": {"limits": [limit]},
    }


def deny_all_policy(store_id: str) -> Dict[str, Any]:
    """Baseline: no pod in the namespace accepts traffic unless allowed."""
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": _metadata("default-deny-all", store_id),
        "spec": {"podSelector": {}, "policyTypes": ["Ingress"]},
    }


def allow_app_to_database_policy(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    """Only the application workload may reach the database port."""
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": _metadata(f"allow-{engine.application.name}-to-{engine.database.name}", store_id),
        "spec": {
            "podSelector": {"matchLabels": _selector(engine.database)},
            "policyTypes": ["Ingress"],
            "ingress": [{
                "from": [{"podSelector": {"matchLabels": _selector(engine.application)}}],
                "ports": [{"protocol": "TCP", "port": engine.database.port}],
            }],
        },
    }


def allow_public_to_app_policy(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    """Lets the ingress controller (any namespace) reach the application port."""
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "NetworkPolicy",
        "metadata": _metadata(f"allow-public-to-{engine.application.name}", store_id),
        "spec": {
            "podSelector": {"matchLabels": _selector(engine.application)},
            "policyTypes": ["Ingress"],
            "ingress": [{
                "from": [{"namespaceSelector": {}}],
                "ports": [{"protocol": "TCP", "port": engine.application.port}],
            }],
        },
    }


# ── Credentials ─────────────────────────────────────────────

def credential_secret(
    engine: EngineDefinition, store_id: str, credentials: Dict[str, str]
) -> Dict[str, Any]:
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": _metadata(engine.secret_name, store_id),
        "type": "Opaque",
        "stringData": dict(credentials),
    }


# ── Database ────────────────────────────────────────────────

def database_service(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    """Headless, cluster-local service giving the database a stable DNS name."""
    db = engine.database
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(db.name, store_id, "database"),
        "spec": {
            "clusterIP": "None",
            "selector": _selector(db),
            "ports": [{"name": db.name, "port": db.port, "targetPort": db.port}],
        },
    }


def database_statefulset(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    db = engine.database
    return {
        "apiVersion": "apps/v1",
        "kind": "StatefulSet",
        "metadata": _metadata(db.name, store_id, "database"),
        "spec": {
            "serviceName": db.name,
            "replicas": 1,
            "selector": {"matchLabels": _selector(db)},
            "template": {
                "metadata": {"labels": _selector(db)},
                "spec": {
                    "containers": [{
                        "name": db.name,
                        "image": db.image,
                        "env": _secret_env(db, engine.secret_name),
                        "ports": [{"containerPort": db.port}],
                        "readinessProbe": {
                            "tcpSocket": {"port": db.port},
                            "initialDelaySeconds": 10,
                            "periodSeconds": 5,
                        },
                        "volumeMounts": [{"name": "data", "mountPath": db.data_path}],
                    }],
                },
            },
            "volumeClaimTemplates": [{
                "metadata": {"name": "data"},
                "spec": {
                    "accessModes": ["ReadWriteOnce"],
                    "resources": {"requests": {"storage": db.storage}},
                },
            }],
        },
    }


# ── Application ─────────────────────────────────────────────

def application_service(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    app = engine.application
    return {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": _metadata(app.name, store_id, "application"),
        "spec": {
            "type": "ClusterIP",
            "selector": _selector(app),
            "ports": [{"name": "http", "port": app.port, "targetPort": app.port}],
        },
    }


def application_deployment(engine: EngineDefinition, store_id: str) -> Dict[str, Any]:
    app = engine.application
    db = engine.database
    env = []
    if app.database_host_env:
        env.append({"name": app.database_host_env, "value": f"{db.name}:{db.port}"})
    env.extend(_secret_env(app, engine.secret_name))
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": _metadata(app.name, store_id, "application"),
        "spec": {
            "replicas": app.replicas,
            "selector": {"matchLabels": _selector(app)},
            "template": {
                "metadata": {"labels": _selector(app)},
                "spec": {
                    "containers": [{
                        "name": app.name,
                        "image": app.image,
                        "env": env,
                        "ports": [{"containerPort": app.port}],
                        "readinessProbe": {
                            "tcpSocket": {"port": app.port},
                            "initialDelaySeconds": 5,
                            "periodSeconds": 5,
                        },
                    }],
                },
            },
        },
    }


def ingress(
    engine: EngineDefinition, store_id: str, host: str, ingress_class: str
) -> Dict[str, Any]:
    app = engine.application
    return {
        "apiVersion": "networking.k8s.io/v1",
        "kind": "Ingress",
        "metadata": _metadata(app.name, store_id, "application"),
        "spec": {
            "ingressClassName": ingress_class,
            "rules": [{
                "host": host,
                "http": {
                    "paths": [{
                        "path": "/",
                        "pathType": "Prefix",
                        "backend": {"service": {"name": app.name, "port": {"number": app.port}}},
                    }],
                },
            }],
        },
    }


def contains_value(obj: Any, needles: set) -> bool:
    """True if any string leaf of a manifest equals one of `needles`."""
    if isinstance(obj, str):
        return obj in needles
    if isinstance(obj, dict):
        return any(contains_value(v, needles) for v in obj.values())
    if isinstance(obj, (list, tuple)):
        return any(contains_value(v, needles) for v in obj)
    return False
