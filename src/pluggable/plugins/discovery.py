"""Plugin discovery mechanisms.

This module finds plugin classes by symbolic name:
- Entry point discovery (pip installed packages)
- Module search (``<package>.<name>`` under configured search packages)

Plugin packages should use the 'pluggable.plugins' entry point group:

    [project.entry-points."pluggable.plugins"]
    cache = "my_package.plugins.cache:Cache"
"""

from __future__ import annotations

import importlib
import importlib.metadata
import logging
import pkgutil
from types import ModuleType
from typing import Any, Iterable

from pluggable.plugins.base import Plugin, PluginLoadError, is_host_class

logger = logging.getLogger(__name__)

# Entry point group for pluggable plugins
ENTRY_POINT_GROUP = "pluggable.plugins"


class PluginDiscovery:
    """Discovers plugin classes from entry points and search packages.

    Discovery finds plugin classes but does not register them. Use
    PluginRegistry.load for lazy, load-once lookup.

    Example:
        >>> discovery = PluginDiscovery(search_modules=["myapp.plugins"])
        >>> discovery.find("cache")  # imports myapp.plugins.cache
        <class 'myapp.plugins.cache.Cache'>
    """

    def __init__(
        self,
        search_modules: Iterable[str] = (),
        scan_entrypoints: bool = True,
    ) -> None:
        """Initialize plugin discovery.

        Args:
            search_modules: Packages whose submodules are named after plugins.
            scan_entrypoints: Whether to scan Python entry points.
        """
        self._search_modules = list(search_modules)
        self._scan_entrypoints = scan_entrypoints

    def find(self, name: str) -> type[Plugin] | None:
        """Find the plugin class for a symbolic name.

        Args:
            name: Plugin name.

        Returns:
            Plugin class, or None if no source provides it.

        Raises:
            PluginLoadError: If a matching module exists but cannot be loaded.
        """
        if self._scan_entrypoints:
            for ep in self._entry_points():
                if ep.name == name:
                    return self._load_entry_point(ep)

        for package in self._search_modules:
            module = self._import_optional(f"{package}.{name}", name)
            if module is None:
                continue
            plugin_cls = self._plugin_from_module(module, name)
            if plugin_cls is not None:
                logger.debug(f"Discovered plugin '{name}' in module {module.__name__}")
                return plugin_cls

        return None

    def discover_all(self) -> dict[str, type[Plugin]]:
        """Discover plugins from all sources.

        Returns:
            Dict mapping plugin names to plugin classes.
        """
        discovered: dict[str, type[Plugin]] = {}

        if self._scan_entrypoints:
            for ep in self._entry_points():
                try:
                    discovered[ep.name] = self._load_entry_point(ep)
                except PluginLoadError as e:
                    logger.warning(str(e))

        for package in self._search_modules:
            discovered.update(self.discover_module(package))

        return discovered

    def discover_module(self, package_name: str) -> dict[str, type[Plugin]]:
        """Discover plugins from the submodules of a package.

        Args:
            package_name: Fully qualified package name.

        Returns:
            Dict mapping plugin names to plugin classes.
        """
        discovered: dict[str, type[Plugin]] = {}

        try:
            package = importlib.import_module(package_name)
        except ImportError as e:
            logger.error(f"Failed to import module {package_name}: {e}")
            return discovered

        for info in pkgutil.iter_modules(getattr(package, "__path__", [])):
            if info.name.startswith("_"):
                continue
            try:
                module = importlib.import_module(f"{package_name}.{info.name}")
            except ImportError as e:
                logger.error(f"Failed to import module {package_name}.{info.name}: {e}")
                continue
            plugin_cls = self._plugin_from_module(module, info.name)
            if plugin_cls is not None:
                discovered[info.name] = plugin_cls

        return discovered

    def load_plugin_from_module(
        self,
        module_name: str,
        class_name: str,
    ) -> type[Plugin]:
        """Load a specific plugin class from a module.

        Args:
            module_name: Fully qualified module name.
            class_name: Name of the plugin class.

        Returns:
            Plugin class.

        Raises:
            PluginLoadError: If the module or class cannot be loaded.
        """
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise PluginLoadError(f"Could not import module {module_name}: {e}") from e

        plugin_cls = getattr(module, class_name, None)
        if plugin_cls is None:
            raise PluginLoadError(f"Class {class_name} not found in {module_name}")
        if not is_plugin_class(plugin_cls):
            raise PluginLoadError(f"{module_name}.{class_name} is not a Plugin class")

        return plugin_cls

    def _entry_points(self) -> list[importlib.metadata.EntryPoint]:
        return list(importlib.metadata.entry_points(group=ENTRY_POINT_GROUP))

    def _load_entry_point(self, ep: importlib.metadata.EntryPoint) -> type[Plugin]:
        try:
            plugin_cls = ep.load()
        except Exception as e:
            dist = getattr(ep, "dist", None)
            pkg_info = f" (from {dist.name})" if dist else ""
            raise PluginLoadError(
                f"Failed to load plugin '{ep.name}'{pkg_info}: {e}",
                plugin_name=ep.name,
            ) from e

        if not is_plugin_class(plugin_cls):
            raise PluginLoadError(
                f"Entry point {ep.name} does not point to a Plugin class",
                plugin_name=ep.name,
            )
        logger.debug(f"Discovered plugin from entry point: {ep.name}")
        return plugin_cls

    def _import_optional(self, module_name: str, name: str) -> ModuleType | None:
        """Import a module, returning None only if the module itself is absent."""
        try:
            return importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            if e.name is not None and (
                module_name == e.name or module_name.startswith(e.name + ".")
            ):
                logger.debug(f"No module {module_name} for plugin '{name}'")
                return None
            raise PluginLoadError(
                f"Could not import module {module_name}: {e}",
                plugin_name=name,
            ) from e
        except ImportError as e:
            raise PluginLoadError(
                f"Could not import module {module_name}: {e}",
                plugin_name=name,
            ) from e

    def _plugin_from_module(self, module: ModuleType, name: str) -> type[Plugin] | None:
        candidates = [
            obj for obj in vars(module).values()
            if is_plugin_class(obj) and obj.__module__ == module.__name__
        ]
        for obj in candidates:
            if obj.plugin_name == name:
                return obj
        if len(candidates) == 1:
            return candidates[0]
        return None

    def add_search_module(self, package_name: str) -> None:
        """Search another package for plugin modules."""
        if package_name not in self._search_modules:
            self._search_modules.append(package_name)

    @property
    def search_modules(self) -> list[str]:
        """Get configured search packages."""
        return list(self._search_modules)

    def __repr__(self) -> str:
        return (
            f"<PluginDiscovery search_modules={self._search_modules!r} "
            f"entrypoints={self._scan_entrypoints}>"
        )


def is_plugin_class(obj: Any) -> bool:
    """Check if object is a Plugin subclass."""
    return (
        isinstance(obj, type)
        and issubclass(obj, Plugin)
        and obj is not Plugin
        and not is_host_class(obj)
    )

