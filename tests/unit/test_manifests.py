# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for manifest builders."""

import pytest

from store_orchestrator.kernel.namespace import STORE_ID_LABEL
from store_orchestrator.provisioning import manifests
from store_orchestrator.provisioning.engines import ENGINES_DIR, load_engine_from_yaml


@pytest.fixture
def engine():
    return load_engine_from_yaml(ENGINES_DIR / "woocommerce.yaml")


class TestIsolation:
    def test_quota(self, engine):
        quota = manifests.resource_quota(engine, "a1b2c3d4")
        assert quota["kind"] == "ResourceQuota"
        assert quota["spec"]["hard"]["limits.memory"] == "4Gi"
        assert quota["metadata"]["labels"][STORE_ID_LABEL] == "a1b2c3d4"

    def test_deny_all(self):
        policy = manifests.deny_all_policy("a1b2c3d4")
        assert policy["spec"]["podSelector"] == {}
        assert "ingress" not in policy["spec"]

    def test_app_to_database(self, engine):
        policy = manifests.allow_app_to_database_policy(engine, "a1b2c3d4")
        spec = policy["spec"]
        assert spec["podSelector"]["matchLabels"] == {"app": "mysql"}
        rule = spec["ingress"][0]
        assert rule["from"][0]["podSelector"]["matchLabels"] == {"app": "wordpress"}
        assert rule["ports"][0]["port"] == 3306


class TestWorkloads:
    def test_database_service_headless(self, engine):
        svc = manifests.database_service(engine, "a1b2c3d4")
        assert svc["spec"]["clusterIP"] == "None"

    def test_statefulset_single_replica_with_storage(self, engine):
        sts = manifests.database_statefulset(engine, "a1b2c3d4")
        assert sts["spec"]["replicas"] == 1
        claim = sts["spec"]["volumeClaimTemplates"][0]
        assert claim["spec"]["resources"]["requests"]["storage"] == "1Gi"

    def test_credentials_by_reference(self, engine):
        sts = manifests.database_statefulset(engine, "a1b2c3d4")
        env = sts["spec"]["template"]["spec"]["containers"][0]["env"]
        assert all("value" not in e for e in env)
        refs = {e["name"]: e["valueFrom"]["secretKeyRef"] for e in env}
        assert refs["MYSQL_PASSWORD"] == {"name": "mysql-credentials", "key": "password"}

    def test_application_database_host(self, engine):
        deploy = manifests.application_deployment(engine, "a1b2c3d4")
        env = deploy["spec"]["template"]["spec"]["containers"][0]["env"]
        assert {"name": "WORDPRESS_DB_HOST", "value": "mysql:3306"} in env

    def test_ingress_host(self, engine):
        ing = manifests.ingress(engine, "a1b2c3d4", "store-a1b2c3d4.example.com", "nginx")
        rule = ing["spec"]["rules"][0]
        assert rule["host"] == "store-a1b2c3d4.example.com"
        assert rule["http"]["paths"][0]["backend"]["service"]["name"] == "wordpress"
        assert ing["spec"]["ingressClassName"] == "nginx"


class TestContainsValue:
    def test_nested(self):
        obj = {"a": [{"b": "hunter2"}], "c": 3}
        assert manifests.contains_value(obj, {"hunter2"})
        assert not manifests.contains_value(obj, {"other"})
