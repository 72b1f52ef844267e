"""Plugin registry mapping symbolic names to plugin classes.

This module provides a thread-safe registry that allows:
- Plugin registration and lookup by name
- Inverse lookup of a plugin's name
- Lazy, load-once discovery of plugins that are not registered yet

Plugins are never removed from a registry once registered.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Iterator, overload

from pluggable.plugins.base import (
    Plugin,
    PluginError,
    PluginNotFoundError,
    validate_plugin_name,
)
from pluggable.plugins.discovery import PluginDiscovery, is_plugin_class

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Thread-safe registry for plugins.

    Example:
        >>> registry = PluginRegistry(search_modules=["myapp.plugins"])
        >>> registry.register("cache", Cache)
        >>> registry.load("cache")
        <class 'Cache'>
        >>> registry.load("fallbacks")  # imports myapp.plugins.fallbacks
        <class 'myapp.plugins.fallbacks.Fallbacks'>
        >>> registry.lookup_name(Cache)
        'cache'
    """

    def __init__(
        self,
        search_modules: Iterable[str] = (),
        scan_entrypoints: bool = True,
    ) -> None:
        """Initialize the registry.

        Args:
            search_modules: Packages searched for ``<package>.<name>`` modules.
            scan_entrypoints: Whether to look up unknown names in entry points.
        """
        self._plugins: dict[str, type[Plugin]] = {}
        self._names: dict[type[Plugin], str] = {}
        self._load_locks: dict[str, threading.Lock] = {}
        self._lock = threading.RLock()
        self._discovery = PluginDiscovery(
            search_modules=search_modules,
            scan_entrypoints=scan_entrypoints,
        )

    @property
    def discovery(self) -> PluginDiscovery:
        """Get the plugin discovery instance."""
        return self._discovery

    def register(self, name: str, plugin: type[Plugin]) -> type[Plugin]:
        """Register a plugin under a symbolic name.

        Args:
            name: Plugin name.
            plugin: Plugin class.

        Returns:
            The plugin class.

        Raises:
            ValueError: If the name is invalid or the plugin depends on itself.
            PluginError: If the name or the plugin is already bound elsewhere.
        """
        validate_plugin_name(name)
        if not is_plugin_class(plugin):
            raise PluginError(f"{plugin!r} is not a Plugin subclass", plugin_name=name)
        if name in plugin.dependencies:
            raise ValueError(f"Plugin '{name}' cannot depend on itself")

        with self._lock:
            existing = self._plugins.get(name)
            if existing is plugin:
                return plugin
            if existing is not None:
                raise PluginError(
                    f"Plugin '{name}' is already registered",
                    plugin_name=name,
                )

            bound = self._names.get(plugin) or plugin.plugin_name
            if bound is not None and bound != name:
                raise PluginError(
                    f"{plugin.__qualname__} is already registered as '{bound}'",
                    plugin_name=name,
                )

            self._plugins[name] = plugin
            self._names[plugin] = name
            plugin.plugin_name = name

        logger.debug(f"Registered plugin '{name}' ({plugin.__module__}.{plugin.__qualname__})")
        return plugin

    def get(self, name: str) -> type[Plugin]:
        """Get a registered plugin by name, without loading.

        Raises:
            PluginNotFoundError: If plugin is not registered.
        """
        with self._lock:
            if name not in self._plugins:
                raise PluginNotFoundError(
                    f"Plugin '{name}' not found. "
                    f"Available: {', '.join(sorted(self._plugins.keys()))}",
                    plugin_name=name,
                )
            return self._plugins[name]

    def get_or_none(self, name: str) -> type[Plugin] | None:
        """Get a plugin by name, returning None if not registered."""
        with self._lock:
            return self._plugins.get(name)

    def load(self, name: str) -> type[Plugin]:
        """Get a plugin by name, discovering it on first use.

        Concurrent first loads of the same name run discovery once.

        Args:
            name: Plugin name.

        Returns:
            The plugin class.

        Raises:
            PluginNotFoundError: If no registered or discoverable plugin has
                that name.
            PluginLoadError: If the plugin's module fails to import.
        """
        plugin = self.get_or_none(name)
        if plugin is not None:
            return plugin

        with self._lock:
            load_lock = self._load_locks.setdefault(name, threading.Lock())

        with load_lock:
            plugin = self.get_or_none(name)
            if plugin is not None:
                return plugin

            logger.debug(f"Loading plugin '{name}'")
            found = self._discovery.find(name)
            # The plugin module may have registered itself while importing
            plugin = self.get_or_none(name)
            if plugin is not None:
                return plugin
            if found is None:
                return self.get(name)
            return self.register(name, found)

    def lookup_name(self, plugin: type[Plugin]) -> str:
        """Get the name a plugin is registered under.

        Raises:
            PluginNotFoundError: If the plugin is not registered.
        """
        with self._lock:
            try:
                return self._names[plugin]
            except KeyError:
                raise PluginNotFoundError(
                    f"{getattr(plugin, '__qualname__', plugin)!r} is not a registered plugin"
                ) from None

    def list_all(self) -> dict[str, type[Plugin]]:
        """Get all registered plugins."""
        with self._lock:
            return dict(self._plugins)

    def list_names(self) -> list[str]:
        """Get names of all registered plugins."""
        with self._lock:
            return list(self._plugins.keys())

    def __len__(self) -> int:
        """Return number of registered plugins."""
        with self._lock:
            return len(self._plugins)

    def __iter__(self) -> Iterator[type[Plugin]]:
        """Iterate over registered plugins."""
        with self._lock:
            return iter(list(self._plugins.values()))

    def __contains__(self, name: object) -> bool:
        """Check if a plugin name is registered."""
        with self._lock:
            return name in self._plugins

    def __repr__(self) -> str:
        with self._lock:
            return f"<PluginRegistry total={len(self._plugins)} discovery={self._discovery!r}>"


# =============================================================================
# Global Registry
# =============================================================================

_default_registry: PluginRegistry | None = None
_default_registry_lock = threading.Lock()


def get_plugin_registry() -> PluginRegistry:
    """Get the process-wide plugin registry.

    Built on first use from ``RegistryConfig.from_env()``.
    """
    global _default_registry
    with _default_registry_lock:
        if _default_registry is None:
            from pluggable.config import RegistryConfig

            config = RegistryConfig.from_env()
            _default_registry = PluginRegistry(
                search_modules=config.search_modules,
                scan_entrypoints=config.scan_entrypoints,
            )
        return _default_registry


def reset_plugin_registry() -> None:
    """Reset the process-wide registry (mainly for testing)."""
    global _default_registry
    with _default_registry_lock:
        _default_registry = None


@overload
def register_plugin(
    name: str,
    plugin: None = None,
    *,
    registry: PluginRegistry | None = None,
) -> Callable[[type[Plugin]], type[Plugin]]: ...


@overload
def register_plugin(
    name: str,
    plugin: type[Plugin],
    *,
    registry: PluginRegistry | None = None,
) -> type[Plugin]: ...


def register_plugin(
    name: str,
    plugin: type[Plugin] | None = None,
    *,
    registry: PluginRegistry | None = None,
) -> Any:
    """Register a plugin, directly or as a class decorator.

    Example:
        >>> @register_plugin("cache")
        ... class Cache(Plugin):
        ...     pass
        >>> register_plugin("fallbacks", Fallbacks)
    """

    def decorator(cls: type[Plugin]) -> type[Plugin]:
        target = registry if registry is not None else get_plugin_registry()
        return target.register(name, cls)

    if plugin is not None:
        return decorator(plugin)
    return decorator
