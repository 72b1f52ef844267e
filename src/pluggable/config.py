"""Configuration for pluggable.

This module provides:
- RegistryConfig: How the global plugin registry discovers plugins,
  read from environment variables
- PluginSetConfig: A declarative plugin request loaded from a TOML,
  YAML or JSON file

Environment variables:
    PLUGGABLE_SEARCH_MODULES: Comma-separated packages searched for
        ``<package>.<plugin name>`` modules.
    PLUGGABLE_SCAN_ENTRYPOINTS: Set to 0/false/no/off to skip the
        ``pluggable.plugins`` entry point group.

Plugin set file (TOML):

    modules = ["myapp.plugins"]
    strict_options = false

    [plugins.cache]

    [plugins.fallbacks]
    default = ["en", "de"]

``plugins`` may also be a plain list of names.
"""

from __future__ import annotations

import importlib
import json
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from pluggable.plugins.base import PluginError

logger = logging.getLogger(__name__)

ENV_SEARCH_MODULES = "PLUGGABLE_SEARCH_MODULES"
ENV_SCAN_ENTRYPOINTS = "PLUGGABLE_SCAN_ENTRYPOINTS"

_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigError(PluginError):
    """Raised when a plugin set configuration is malformed."""

    pass


@dataclass
class RegistryConfig:
    """Configuration for the global plugin registry.

    Attributes:
        search_modules: Packages searched for plugin modules.
        scan_entrypoints: Whether to scan Python entry points.
    """

    search_modules: list[str] = field(default_factory=list)
    scan_entrypoints: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RegistryConfig":
        """Build configuration from environment variables."""
        env = os.environ if environ is None else environ

        raw_modules = env.get(ENV_SEARCH_MODULES, "")
        search_modules = [m.strip() for m in raw_modules.split(",") if m.strip()]

        raw_scan = env.get(ENV_SCAN_ENTRYPOINTS)
        scan_entrypoints = (
            True if raw_scan is None else raw_scan.strip().lower() not in _FALSE_VALUES
        )

        return cls(search_modules=search_modules, scan_entrypoints=scan_entrypoints)


@dataclass
class PluginSetConfig:
    """A plugin request read from a configuration file.

    Attributes:
        plugins: Plugin name to options (``default`` becomes a default).
        modules: Modules to import before resolving, so their plugins register.
        strict_options: Whether hosts built from this set reject unknown options.
    """

    plugins: dict[str, dict[str, Any]] = field(default_factory=dict)
    modules: list[str] = field(default_factory=list)
    strict_options: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PluginSetConfig":
        """Create a plugin set from parsed configuration data.

        Raises:
            ConfigError: If the data has the wrong shape.
        """
        if not isinstance(data, Mapping):
            raise ConfigError(f"Plugin set must be a mapping, got {type(data).__name__}")

        raw_plugins = data.get("plugins", {})
        plugins: dict[str, dict[str, Any]] = {}
        if isinstance(raw_plugins, Mapping):
            for name, options in raw_plugins.items():
                if options is None:
                    options = {}
                if not isinstance(options, Mapping):
                    raise ConfigError(
                        f"Options for plugin '{name}' must be a table, "
                        f"got {type(options).__name__}",
                        plugin_name=name,
                    )
                plugins[str(name)] = dict(options)
        elif isinstance(raw_plugins, list):
            for name in raw_plugins:
                if not isinstance(name, str):
                    raise ConfigError(f"Plugin names must be strings, got {name!r}")
                plugins[name] = {}
        else:
            raise ConfigError("'plugins' must be a table or a list of names")

        modules = data.get("modules", [])
        if isinstance(modules, str):
            modules = [modules]
        if not isinstance(modules, list) or not all(isinstance(m, str) for m in modules):
            raise ConfigError("'modules' must be a list of module names")

        return cls(
            plugins=plugins,
            modules=list(modules),
            strict_options=bool(data.get("strict_options", False)),
        )

    def import_modules(self) -> None:
        """Import the configured modules so their plugins register."""
        for module_name in self.modules:
            try:
                importlib.import_module(module_name)
            except ImportError as e:
                raise ConfigError(f"Could not import module {module_name}: {e}") from e
            logger.debug(f"Imported plugin module {module_name}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "plugins": {name: dict(options) for name, options in self.plugins.items()},
            "modules": list(self.modules),
            "strict_options": self.strict_options,
        }


def load_plugin_set(path: Path | str) -> PluginSetConfig:
    """Load a plugin set from a .toml, .yaml/.yml or .json file.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """
    path = Path(path)
    suffix = path.suffix.lower()

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read plugin set {path}: {e}") from e

    try:
        if suffix == ".toml":
            data = tomllib.loads(text)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text) or {}
        elif suffix == ".json":
            data = json.loads(text)
        else:
            raise ConfigError(f"Unsupported plugin set format: {path.suffix or path.name}")
    except (tomllib.TOMLDecodeError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot parse plugin set {path}: {e}") from e

    logger.debug(f"Loaded plugin set from {path}")
    return PluginSetConfig.from_dict(data)
