# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.
"""Unit tests for the engine catalog and YAML loader."""

import pytest

from store_orchestrator.provisioning.engines import (
    ENGINES_DIR,
    EngineCatalog,
    UnsupportedEngineError,
    load_engine_from_string,
    load_engine_from_yaml,
    validate_engine,
)
from store_orchestrator.provisioning.pipeline import registered_steps

MINIMAL_ENGINE = """
name: medusa
database:
  name: postgres
  image: postgres:16
  port: 5432
  storage: 1Gi
  data_path: /var/lib/postgresql/data
  db_name: medusa
  db_user: medusa
  secret_env:
    POSTGRES_PASSWORD: password
application:
  name: medusa
  image: medusajs/medusa:latest
  port: 9000
steps: [isolation, credentials, database_service, database_workload, application, ingress]
"""


class TestEngineLoader:
    def test_bundled_woocommerce(self):
        engine = load_engine_from_yaml(ENGINES_DIR / "woocommerce.yaml")
        assert engine.name == "woocommerce"
        assert engine.database.image == "mysql:8.0"
        assert engine.application.database_host_env == "WORDPRESS_DB_HOST"
        assert engine.secret_name == "mysql-credentials"
        assert engine.steps[0] == "isolation"
        assert validate_engine(engine, registered_steps()) == []

    def test_load_from_string(self):
        engine = load_engine_from_string(MINIMAL_ENGINE)
        assert engine.name == "medusa"
        assert engine.database.port == 5432
        assert engine.application.replicas == 1
        assert validate_engine(engine, registered_steps()) == []


class TestValidateEngine:
    def test_missing_fields(self):
        errors = validate_engine(load_engine_from_string("name: ''"))
        assert "Engine must have a name" in errors
        assert "Engine must declare at least one step" in errors
        assert any("database.image" in e for e in errors)

    def test_unregistered_step(self):
        engine = load_engine_from_string(MINIMAL_ENGINE.replace("ingress]", "dns]"))
        errors = validate_engine(engine, registered_steps())
        assert "Step 'dns' is not registered" in errors

    def test_repeated_step(self):
        engine = load_engine_from_string(MINIMAL_ENGINE.replace("ingress]", "ingress, ingress]"))
        assert "Engine steps must not repeat" in validate_engine(engine)

    def test_unknown_credential_key(self):
        engine = load_engine_from_string(MINIMAL_ENGINE.replace(": password", ": token"))
        errors = validate_engine(engine)
        assert any("unknown credential key 'token'" in e for e in errors)


class TestEngineCatalog:
    def test_load_directory(self):
        catalog = EngineCatalog()
        assert catalog.load_directory(registered_steps=registered_steps()) >= 1
        assert "woocommerce" in catalog
        assert catalog.get("woocommerce").name == "woocommerce"

    def test_invalid_engine_not_registered(self):
        catalog = EngineCatalog()
        errors = catalog.register(load_engine_from_string("name: broken"))
        assert errors
        assert "broken" not in catalog
        assert len(catalog) == 0

    def test_directory_skips_invalid(self, tmp_path):
        (tmp_path / "good.yaml").write_text(MINIMAL_ENGINE)
        (tmp_path / "bad.yaml").write_text("name: bad\nsteps: [teleport]\n")
        catalog = EngineCatalog()
        assert catalog.load_directory(tmp_path, registered_steps()) == 1
        assert catalog.names() == ["medusa"]

    def test_unsupported(self):
        catalog = EngineCatalog()
        catalog.register(load_engine_from_string(MINIMAL_ENGINE))
        with pytest.raises(UnsupportedEngineError) as exc_info:
            catalog.get("magento")
        assert exc_info.value.available == ["medusa"]
