"""Plugin architecture for pluggable.

Plugins are mixin classes composed onto a host class. Each plugin is
registered under a symbolic name, may depend on other plugins with an
ordering constraint, and may hook into host initialization and
inclusion.

Components:
    - base: Plugin base class, DependencyOrder, exceptions
    - hooks: Initialize and included hooks
    - registry: Name to plugin mapping with lazy loading
    - discovery: Entry point and search module lookup
    - dsl: The plugin request passed to configuration blocks
    - dependencies: Dependency graph and resolver

Example:
    >>> from pluggable.plugins import Plugin, register_plugin
    >>>
    >>> @register_plugin("reader")
    ... class Reader(Plugin):
    ...     pass
    >>>
    >>> @register_plugin("cache")
    ... class Cache(Plugin, depends_on={"reader": "after"}):
    ...     pass
"""

from __future__ import annotations

from pluggable.plugins.base import (
    CyclicDependency,
    DependencyConflict,
    DependencyOrder,
    InvalidOptionKey,
    Plugin,
    PluginDependencyError,
    PluginError,
    PluginLoadError,
    PluginNotFoundError,
    validate_plugin_name,
)
from pluggable.plugins.hooks import (
    Hook,
    HookType,
    included_hook,
    initialize_hook,
)
from pluggable.plugins.discovery import (
    ENTRY_POINT_GROUP,
    PluginDiscovery,
    is_plugin_class,
)
from pluggable.plugins.registry import (
    PluginRegistry,
    get_plugin_registry,
    register_plugin,
    reset_plugin_registry,
)
from pluggable.plugins.dsl import PluginRequest
from pluggable.plugins.dependencies import (
    DependencyGraph,
    DependencyResolver,
    ResolutionResult,
    configure,
)

__all__ = [
    # Base
    "Plugin",
    "DependencyOrder",
    "validate_plugin_name",
    # Exceptions
    "PluginError",
    "PluginLoadError",
    "PluginNotFoundError",
    "PluginDependencyError",
    "DependencyConflict",
    "CyclicDependency",
    "InvalidOptionKey",
    # Hooks
    "Hook",
    "HookType",
    "initialize_hook",
    "included_hook",
    # Registry and discovery
    "PluginRegistry",
    "PluginDiscovery",
    "ENTRY_POINT_GROUP",
    "get_plugin_registry",
    "reset_plugin_registry",
    "register_plugin",
    "is_plugin_class",
    # Resolution
    "PluginRequest",
    "DependencyGraph",
    "DependencyResolver",
    "ResolutionResult",
    "configure",
]
