"""
Config system - declarative service configuration and its loader.

A ServiceConfig is the shape the service manager consumes: names mapped to
producer kinds, with delegators as an ordered list per name. ConfigLoader
builds one from YAML/JSON files, a .env file, the environment and manual
overrides, merged in that order.
"""

from typing import Any, Dict, List, Mapping, Optional
from dataclasses import dataclass, field, fields
from pathlib import Path
import json
import logging
import os

import yaml
from dotenv import dotenv_values

from .errors import ConfigError

logger = logging.getLogger("tessera.config")

# Top-level key that may wrap the sections inside a larger config file.
ROOT_KEY = "service_manager"

_MAPPING_SECTIONS = ("services", "factories", "invokables", "aliases", "delegators", "shared")
_LIST_SECTIONS = ("abstract_factories", "initializers", "lazy_services")
_FLAG_SECTIONS = ("shared_by_default", "allow_override")


@dataclass
class ServiceConfig:
    """
    Declarative service configuration.

    Producers may be callables, classes or ``"package.module:attr"``
    references; references are imported lazily on first use.
    """
    services: Dict[str, Any] = field(default_factory=dict)
    factories: Dict[str, Any] = field(default_factory=dict)
    invokables: Dict[str, Any] = field(default_factory=dict)
    abstract_factories: List[Any] = field(default_factory=list)
    aliases: Dict[str, str] = field(default_factory=dict)
    delegators: Dict[str, List[Any]] = field(default_factory=dict)
    initializers: List[Any] = field(default_factory=list)
    lazy_services: List[str] = field(default_factory=list)
    shared: Dict[str, bool] = field(default_factory=dict)
    shared_by_default: Optional[bool] = None
    allow_override: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]], source: Optional[str] = None) -> "ServiceConfig":
        """
        Build a config from a plain mapping, validating section names and types.

        The sections may sit at the top level or under ``service_manager``.

        Raises:
            ConfigError: Unknown section or a section of the wrong type
        """
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise ConfigError([f"expected a mapping, got {type(data).__name__}"], source)
        if ROOT_KEY in data:
            data = data[ROOT_KEY] or {}
            if not isinstance(data, Mapping):
                raise ConfigError([f"'{ROOT_KEY}' must be a mapping"], source)

        errors: List[str] = []
        kwargs: Dict[str, Any] = {}
        known = {f.name for f in fields(cls)}

        for key, value in data.items():
            if key not in known:
                errors.append(f"unknown section '{key}'")
                continue

            if key in _MAPPING_SECTIONS:
                if value is None:
                    value = {}
                if not isinstance(value, Mapping):
                    errors.append(f"section '{key}' must be a mapping")
                    continue
                value = dict(value)
            elif key in _LIST_SECTIONS:
                if value is None:
                    value = []
                if not isinstance(value, (list, tuple)):
                    errors.append(f"section '{key}' must be a list")
                    continue
                value = list(value)
            elif key in _FLAG_SECTIONS:
                if value is not None and not isinstance(value, bool):
                    errors.append(f"'{key}' must be a boolean")
                    continue

            kwargs[key] = value

        for name, chain in kwargs.get("delegators", {}).items():
            if not isinstance(chain, (list, tuple)):
                errors.append(f"delegators for '{name}' must be a list")
        for name, target in kwargs.get("aliases", {}).items():
            if not isinstance(target, str) or not target:
                errors.append(f"alias '{name}' must target a non-empty name")
        for name, flag in kwargs.get("shared", {}).items():
            if not isinstance(flag, bool):
                errors.append(f"shared flag for '{name}' must be a boolean")

        if errors:
            raise ConfigError(errors, source)

        if "delegators" in kwargs:
            kwargs["delegators"] = {name: list(chain) for name, chain in kwargs["delegators"].items()}
        return cls(**kwargs)

    def merge(self, other: "ServiceConfig") -> "ServiceConfig":
        """
        Combine two configs into a new one; ``other`` takes precedence.

        Mappings merge per key, delegator chains and the list sections are
        appended, policy flags come from ``other`` when it sets them.
        """
        delegators = {name: list(chain) for name, chain in self.delegators.items()}
        for name, chain in other.delegators.items():
            delegators.setdefault(name, []).extend(chain)

        lazy = list(self.lazy_services)
        lazy.extend(name for name in other.lazy_services if name not in lazy)

        return ServiceConfig(
            services={**self.services, **other.services},
            factories={**self.factories, **other.factories},
            invokables={**self.invokables, **other.invokables},
            abstract_factories=self.abstract_factories + other.abstract_factories,
            aliases={**self.aliases, **other.aliases},
            delegators=delegators,
            initializers=self.initializers + other.initializers,
            lazy_services=lazy,
            shared={**self.shared, **other.shared},
            shared_by_default=(
                other.shared_by_default
                if other.shared_by_default is not None
                else self.shared_by_default
            ),
            allow_override=(
                other.allow_override
                if other.allow_override is not None
                else self.allow_override
            ),
        )

    def summary(self) -> Dict[str, int]:
        """Number of entries per section."""
        return {
            "services": len(self.services),
            "factories": len(self.factories),
            "invokables": len(self.invokables),
            "abstract_factories": len(self.abstract_factories),
            "aliases": len(self.aliases),
            "delegators": sum(len(chain) for chain in self.delegators.values()),
            "initializers": len(self.initializers),
            "lazy_services": len(self.lazy_services),
            "shared": len(self.shared),
        }


class ConfigLoader:
    """
    Loads and merges service configuration from multiple sources.

    Precedence (later overrides earlier):
    1. Config files, in the order given (YAML or JSON)
    2. .env file (``<prefix>SHARED_BY_DEFAULT``, ``<prefix>ALLOW_OVERRIDE``)
    3. Environment variables with the same names
    4. Manual overrides
    """

    def __init__(self, env_prefix: str = "TESSERA_"):
        self.env_prefix = env_prefix
        self.config = ServiceConfig()
        self.sources: List[str] = []

    @classmethod
    def load(
        cls,
        paths: Optional[List[str]] = None,
        env_prefix: str = "TESSERA_",
        env_file: Optional[str] = None,
        overrides: Optional[Mapping[str, Any]] = None,
    ) -> ServiceConfig:
        """
        Load configuration from files, .env, environment and overrides.

        Args:
            paths: Config file paths (``.yaml``, ``.yml`` or ``.json``)
            env_prefix: Prefix for environment variables
            env_file: Path to a .env file
            overrides: Mapping in ServiceConfig shape (highest precedence)

        Returns:
            Merged ServiceConfig
        """
        loader = cls(env_prefix=env_prefix)

        for path in paths or []:
            loader.load_file(path)

        if env_file:
            loader._apply_flags(dotenv_values(env_file), f".env:{env_file}")

        loader._apply_flags(os.environ, "environment")

        if overrides:
            loader._merge(ServiceConfig.from_dict(overrides, source="overrides"), "overrides")

        return loader.config

    def load_file(self, path: str) -> None:
        """Merge one YAML or JSON file into the loaded config."""
        file_path = Path(path)
        if not file_path.exists():
            raise ConfigError([f"file not found: {path}"], path)

        if file_path.suffix in (".yaml", ".yml"):
            with open(file_path) as f:
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as e:
                    raise ConfigError([f"invalid YAML: {e}"], path)
        elif file_path.suffix == ".json":
            with open(file_path) as f:
                try:
                    data = json.load(f)
                except json.JSONDecodeError as e:
                    raise ConfigError([f"invalid JSON: {e}"], path)
        else:
            raise ConfigError([f"unsupported config format '{file_path.suffix}'"], path)

        self._merge(ServiceConfig.from_dict(data, source=path), path)

    def _merge(self, config: ServiceConfig, source: str) -> None:
        self.config = self.config.merge(config)
        self.sources.append(source)
        logger.debug("Merged service config from %s: %s", source, config.summary())

    def _apply_flags(self, values: Mapping[str, Optional[str]], source: str) -> None:
        """Apply the policy flags found under the env prefix."""
        applied = False
        for flag in _FLAG_SECTIONS:
            raw = values.get(f"{self.env_prefix}{flag.upper()}")
            if raw is None:
                continue
            setattr(self.config, flag, self._parse_bool(flag, raw))
            applied = True

        if applied:
            self.sources.append(source)

    def _parse_bool(self, key: str, value: str) -> bool:
        """Parse an environment string to a boolean."""
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "1", "on"):
            return True
        if lowered in ("false", "no", "0", "off"):
            return False
        raise ConfigError([f"{self.env_prefix}{key.upper()} must be a boolean, got '{value}'"])
