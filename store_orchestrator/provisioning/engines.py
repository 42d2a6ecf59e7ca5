# Copyright (c) 2026 Store Orchestrator Contributors. All Rights Reserved.

"""
Engine Catalog — Load and validate YAML store engine definitions.

An engine describes one application stack variant: the database and
application components, the tenant's resource bounds, and the ordered
list of pipeline steps that build it. Adding an engine means adding a
YAML file under `engines/`, not writing a new pipeline.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

import yaml

logger = logging.getLogger("orchestrator.engines")

ENGINES_DIR = Path(__file__).parent.parent / "engines"

# Keys held in every tenant's credential secret.
CREDENTIAL_KEYS = ("root-password", "password", "username", "database")


class UnsupportedEngineError(Exception):
    """Raised when a creation request names an engine that is not loaded."""

    code = "UNSUPPORTED_ENGINE"

    def __init__(self, engine: str, available: List[str]):
        self.engine = engine
        self.available = available
        super().__init__(f"Unsupported engine '{engine}' (available: {', '.join(available) or 'none'})")


@dataclass
class ComponentSpec:
    """One workload of the stack (database or application)."""

    name: str
    image: str
    port: int
    replicas: int = 1
    storage: Optional[str] = None
    data_path: Optional[str] = None
    db_name: Optional[str] = None
    db_user: Optional[str] = None
    database_host_env: Optional[str] = None
    secret_env: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> ComponentSpec:
        return cls(
            name=config.get("name", ""),
            image=config.get("image", ""),
            port=int(config.get("port", 0)),
            replicas=int(config.get("replicas", 1)),
            storage=config.get("storage"),
            data_path=config.get("data_path"),
            db_name=config.get("db_name"),
            db_user=config.get("db_user"),
            database_host_env=config.get("database_host_env"),
            secret_env=dict(config.get("secret_env") or {}),
        )


class EngineDefinition:
    """Parsed engine definition."""

    def __init__(self, config: Dict[str, Any]) -> None:
        self.name: str = config.get("name", "")
        self.description: str = config.get("description", "")
        self.database = ComponentSpec.from_dict(config.get("database") or {})
        self.application = ComponentSpec.from_dict(config.get("application") or {})
        self.quota: Dict[str, str] = {k: str(v) for k, v in (config.get("quota") or {}).items()}
        self.limits: Dict[str, Dict[str, str]] = config.get("limits") or {}
        self.steps: List[str] = list(config.get("steps") or [])
        self.raw_config = config

    @property
    def secret_name(self) -> str:
        return f"{self.database.name}-credentials"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "database": self.database.image,
            "application": self.application.image,
            "steps": list(self.steps),
        }


def load_engine_from_yaml(path: str | Path) -> EngineDefinition:
    """Load an engine definition from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        config = yaml.safe_load(f)
    return EngineDefinition(config or {})


def load_engine_from_string(yaml_content: str) -> EngineDefinition:
    return EngineDefinition(yaml.safe_load(yaml_content) or {})


def validate_engine(
    engine: EngineDefinition,
    registered_steps: Optional[Set[str]] = None,
) -> List[str]:
    """
    Validate an engine definition. Returns list of error messages (empty = valid).

    Checks:
      1. name, database and application images and ports are present
      2. the database declares storage, a data path, db name and user
      3. at least one step, no duplicates, all registered (if provided)
      4. secret_env values only reference known credential keys
    """
    errors = []

    if not engine.name:
        errors.append("Engine must have a name")

    for role, component in (("database", engine.database), ("application", engine.application)):
        if not component.name:
            errors.append(f"{role}.name is required")
        if not component.image:
            errors.append(f"{role}.image is required")
        if component.port <= 0:
            errors.append(f"{role}.port must be a positive integer")
        for env_name, key in component.secret_env.items():
            if key not in CREDENTIAL_KEYS:
                errors.append(f"{role}.secret_env.{env_name} references unknown credential key '{key}'")

    db = engine.database
    if not (db.storage and db.data_path and db.db_name and db.db_user):
        errors.append("database requires storage, data_path, db_name and db_user")

    if not engine.steps:
        errors.append("Engine must declare at least one step")
    if len(set(engine.steps)) != len(engine.steps):
        errors.append("Engine steps must not repeat")
    if registered_steps is not None:
        for step_name in engine.steps:
            if step_name not in registered_steps:
                errors.append(f"Step '{step_name}' is not registered")

    return errors


class EngineCatalog:
    """Loaded, validated engine definitions keyed by name."""

    def __init__(self) -> None:
        self._engines: Dict[str, EngineDefinition] = {}

    def register(self, engine: EngineDefinition, registered_steps: Optional[Set[str]] = None) -> List[str]:
        """Register an engine. Returns validation errors (empty = ok)."""
        errors = validate_engine(engine, registered_steps)
        if not errors:
            self._engines[engine.name] = engine
            logger.info("Registered engine: %s (%d steps)", engine.name, len(engine.steps))
        return errors

    def load_directory(self, directory: Path = ENGINES_DIR, registered_steps: Optional[Set[str]] = None) -> int:
        loaded = 0
        for yaml_file in sorted(directory.glob("*.yaml")):
            engine = load_engine_from_yaml(yaml_file)
            errors = self.register(engine, registered_steps)
            if errors:
                logger.error("Engine %s rejected: %s", yaml_file.name, "; ".join(errors))
                continue
            loaded += 1
        return loaded

    def get(self, name: str) -> EngineDefinition:
        engine = self._engines.get(name)
        if engine is None:
            raise UnsupportedEngineError(name, self.names())
        return engine

    def names(self) -> List[str]:
        return sorted(self._engines)

    def __contains__(self, name: str) -> bool:
        return name in self._engines

    def __len__(self) -> int:
        return len(self._engines)
