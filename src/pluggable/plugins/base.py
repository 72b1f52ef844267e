"""Base classes and types for pluggable plugins.

This module defines the core abstractions for the plugin system:
- Plugin: Base class for all plugins (a mixin applied to a host class)
- DependencyOrder: Ordering tokens for plugin dependencies
- PluginError and friends: Exceptions raised while loading and resolving
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Any, ClassVar, Iterable, Mapping

from pluggable.plugins.hooks import Hook, HookType, collect_hooks, install_hook


PLUGIN_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9_]*$")


# =============================================================================
# Dependency Ordering
# =============================================================================


class DependencyOrder(str, Enum):
    """Relative position of a plugin and one of its dependencies."""

    NONE = "none"  # Dependency must be present, order unconstrained
    BEFORE = "before"  # Plugin comes before the dependency
    AFTER = "after"  # Plugin comes after the dependency

    @classmethod
    def parse(cls, value: "DependencyOrder | str | None") -> "DependencyOrder":
        """Convert a user supplied ordering token.

        Args:
            value: None, a DependencyOrder, or one of "none", "before", "after".

        Returns:
            DependencyOrder member.

        Raises:
            ValueError: If the token is not recognized.
        """
        if value is None:
            return cls.NONE
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.lower())
            except ValueError:
                pass
        raise ValueError(
            f"depends_on 'include' must be None, 'before' or 'after', got {value!r}"
        )


# =============================================================================
# Exceptions
# =============================================================================


class PluginError(Exception):
    """Base exception for plugin-related errors."""

    def __init__(self, message: str, plugin_name: str | None = None):
        self.plugin_name = plugin_name
        super().__init__(message)


class PluginLoadError(PluginError):
    """Raised when a plugin module exists but fails to import."""

    pass


class PluginNotFoundError(PluginError):
    """Raised when a requested plugin is not found."""

    pass


class PluginDependencyError(PluginError):
    """Raised when plugin dependencies cannot be satisfied."""

    pass


class DependencyConflict(PluginDependencyError):
    """Raised when an ordering requirement contradicts an applied plugin."""

    def __init__(
        self,
        message: str,
        plugin_name: str | None = None,
        dependency_name: str | None = None,
        host_name: str | None = None,
    ):
        self.dependency_name = dependency_name
        self.host_name = host_name
        super().__init__(message, plugin_name)


class CyclicDependency(DependencyConflict):
    """Raised when ordering requirements form a cycle."""

    def __init__(
        self,
        message: str,
        plugin_names: Iterable[str] = (),
        host_name: str | None = None,
    ):
        self.plugin_names = tuple(plugin_names)
        super().__init__(message, host_name=host_name)


class InvalidOptionKey(PluginError):
    """Raised when a host receives options no applied plugin understands."""

    def __init__(self, message: str, keys: Iterable[str] = ()):
        self.keys = tuple(keys)
        super().__init__(message)


# =============================================================================
# Plugin Base Class
# =============================================================================


def validate_plugin_name(name: str) -> str:
    """Check a symbolic plugin name.

    Names double as request attributes and hook keyword names, so they
    must be valid lowercase identifiers.
    """
    if not isinstance(name, str) or not name:
        raise ValueError("Plugin name cannot be empty")
    if not PLUGIN_NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid plugin name: {name}. "
            "Must start with lowercase letter and contain only "
            "lowercase letters, numbers, and underscores."
        )
    return name


def is_host_class(obj: Any) -> bool:
    """Check if a class is a host (a Pluggable subclass)."""
    return isinstance(obj, type) and getattr(obj, "_pluggable_host", False) is True


class Plugin:
    """Base class for all plugins.

    A plugin is a mixin class. Resolution layers plugin classes in front
    of a host's bases, so plugin methods delegate with ``super()`` to the
    plugins that follow them in the final order.

    Plugins may declare:
    - dependencies, via the ``depends_on`` class keyword or classmethod
    - an initialize hook, run after the host instance is constructed
    - an included hook, run after the host is included into a target

    Example:
        >>> class Cache(Plugin, depends_on={"reader": "after"}):
        ...     @initialize_hook
        ...     def setup_cache(self, *names, cache=None):
        ...         self.cache_store = {} if cache is not False else None
        ...
        >>> register_plugin("cache", Cache)
    """

    plugin_name: ClassVar[str | None] = None
    dependencies: ClassVar[dict[str, DependencyOrder]] = {}
    hooks: ClassVar[dict[HookType, Hook]] = {}

    def __init_subclass__(
        cls,
        depends_on: Mapping[str, DependencyOrder | str | None] | Iterable[str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)
        if is_host_class(cls):
            # Subclass of a host that has plugins applied
            return

        cls.plugin_name = None
        cls.dependencies = dict(cls.dependencies)
        cls.hooks = collect_hooks(cls)
        for hook in cls.hooks.values():
            install_hook(cls, hook)

        if isinstance(depends_on, Mapping):
            for name, include in depends_on.items():
                cls.depends_on(name, include=include)
        elif depends_on is not None:
            for name in depends_on:
                cls.depends_on(name)

    @classmethod
    def depends_on(
        cls,
        plugin: str,
        include: DependencyOrder | str | None = None,
    ) -> None:
        """Declare a dependency on another plugin.

        Args:
            plugin: Symbolic name of the dependency.
            include: None to only require presence, "before" to place this
                plugin before the dependency, "after" to place it after.

        Raises:
            ValueError: On an unknown ordering token or a self-dependency.
        """
        order = DependencyOrder.parse(include)
        if not isinstance(plugin, str) or not plugin:
            raise ValueError(f"depends_on expects a plugin name, got {plugin!r}")
        if cls.plugin_name is not None and plugin == cls.plugin_name:
            raise ValueError(f"Plugin '{plugin}' cannot depend on itself")
        cls.dependencies[plugin] = order
