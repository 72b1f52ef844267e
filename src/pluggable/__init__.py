"""pluggable - Dependency-resolved plugin composition for Python classes."""

from pluggable.plugins import (
    CyclicDependency,
    DependencyConflict,
    DependencyOrder,
    InvalidOptionKey,
    Plugin,
    PluginError,
    PluginLoadError,
    PluginNotFoundError,
    PluginRegistry,
    configure,
    get_plugin_registry,
    included_hook,
    initialize_hook,
    register_plugin,
)
from pluggable.pluggable import Pluggable

__version__ = "0.1.0"

__all__ = [
    "Pluggable",
    "Plugin",
    "DependencyOrder",
    "PluginRegistry",
    "configure",
    "get_plugin_registry",
    "register_plugin",
    "initialize_hook",
    "included_hook",
    "PluginError",
    "PluginLoadError",
    "PluginNotFoundError",
    "DependencyConflict",
    "CyclicDependency",
    "InvalidOptionKey",
]
