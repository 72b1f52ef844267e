"""Dependency resolver for plugins.

This module turns a plugin request into the order in which plugins are
applied to a host:

1. The request block is evaluated into a set of plugin names.
2. Each plugin is loaded and its dependencies are expanded transitively
   into a DependencyGraph, following the ordering tokens:

   - NONE:   the dependency is added, no ordering edge
   - BEFORE: edge plugin -> dependency
   - AFTER:  edge dependency -> plugin, unless the dependency is already
             applied to the host, which is a DependencyConflict

3. The graph is linearized; cycles become CyclicDependency errors.
4. The final order is applied to the host.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, MutableMapping, NoReturn, Protocol, Sequence, runtime_checkable

from pluggable.plugins.base import (
    CyclicDependency,
    DependencyConflict,
    DependencyOrder,
    Plugin,
)
from pluggable.plugins.dependencies.graph import DependencyGraph, GraphCycleError
from pluggable.plugins.dsl import PluginBlock, PluginRequest
from pluggable.plugins.registry import PluginRegistry, get_plugin_registry

logger = logging.getLogger(__name__)


@runtime_checkable
class HostProtocol(Protocol):
    """What the resolver needs from a host.

    ``display_name()`` is optional and used only in error messages.
    """

    def included_plugins(self) -> Sequence[type[Plugin]]:
        """Plugins already applied to the host."""
        ...

    def apply_plugins(self, order: Sequence[type[Plugin]]) -> None:
        """Incorporate plugins, first in ``order`` outermost."""
        ...


@dataclass
class ResolutionResult:
    """Result of dependency resolution.

    Attributes:
        requested: Plugin names named by the request, in request order
        graph: Resolved dependency graph
        order: Plugins to apply, in final order
        defaults: Updated defaults table
    """

    requested: list[str]
    graph: DependencyGraph[type[Plugin]]
    order: list[type[Plugin]] = field(default_factory=list)
    defaults: MutableMapping[str, Any] = field(default_factory=dict)


class DependencyResolver:
    """Resolves plugin dependencies for one host.

    Builds the dependency graph, detects conflicts with plugins already
    applied to the host, and determines the order to apply new plugins.

    Example:
        >>> resolver = DependencyResolver(TranslatedAttributes, defaults={})
        >>> resolver(lambda p: (p.cache(), p.fallbacks(default="en")))
        {'fallbacks': 'en'}
    """

    def __init__(
        self,
        host: HostProtocol,
        defaults: MutableMapping[str, Any] | None = None,
        registry: PluginRegistry | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            host: Host to configure
            defaults: Defaults table to update (a new dict if omitted)
            registry: Registry to load plugins from (the global one if omitted)
        """
        self.host = host
        self.defaults = defaults if defaults is not None else {}
        self.registry = registry if registry is not None else get_plugin_registry()

    def __call__(self, block: PluginBlock | None = None) -> MutableMapping[str, Any]:
        """Resolve the request and apply the result to the host.

        Args:
            block: Plugin request (see PluginRequest.evaluate)

        Returns:
            The updated defaults table

        Raises:
            PluginNotFoundError: If a requested or dependent plugin is unknown
            DependencyConflict: If an AFTER requirement targets an applied plugin
            CyclicDependency: If ordering requirements form a cycle
        """
        result = self.resolve(block)
        if result.order:
            self.host.apply_plugins(result.order)
            logger.info(
                f"Applied plugins {[self._name_of(p) for p in result.order]} "
                f"to {self.host_name or self.host!r}"
            )
        return result.defaults

    def resolve(self, block: PluginBlock | None = None) -> ResolutionResult:
        """Resolve the request without touching the host.

        Args:
            block: Plugin request (see PluginRequest.evaluate)

        Returns:
            ResolutionResult with graph and final order
        """
        names, defaults = PluginRequest.evaluate(self.defaults, block)
        graph = self.build_graph(names)

        try:
            order = graph.get_load_order()
        except GraphCycleError as e:
            self._raise_cyclic_dependency(e.cycle)

        return ResolutionResult(
            requested=names,
            graph=graph,
            order=order,
            defaults=defaults,
        )

    def build_graph(self, plugin_names: Sequence[str]) -> DependencyGraph[type[Plugin]]:
        """Build the dependency graph for a set of plugin names.

        Plugins already applied to the host are never added to the graph.

        Args:
            plugin_names: Requested plugin names

        Returns:
            DependencyGraph of plugin classes
        """
        graph: DependencyGraph[type[Plugin]] = DependencyGraph()
        applied = list(self.included_plugins())
        # Applied plugins had their dependencies resolved when they were applied
        visited: set[type[Plugin]] = set(applied)

        for plugin_name in plugin_names:
            plugin = self.registry.load(plugin_name)
            self._add_dependency(graph, plugin, plugin_name, visited, applied)

        self._add_inheritance_edges(graph)
        return graph

    def _add_inheritance_edges(self, graph: DependencyGraph[type[Plugin]]) -> None:
        """Order each derived plugin before the plugins it inherits from."""
        plugins = list(graph)
        for derived in plugins:
            for base in plugins:
                if base is not derived and issubclass(derived, base):
                    graph.add_edge(derived, base)

    def included_plugins(self) -> Sequence[type[Plugin]]:
        """Plugins already applied to the host."""
        return self.host.included_plugins()

    @property
    def host_name(self) -> str | None:
        """Display name of the host, if it has one."""
        display_name = getattr(self.host, "display_name", None)
        if callable(display_name):
            return display_name()
        return getattr(self.host, "__qualname__", None)

    def _add_dependency(
        self,
        graph: DependencyGraph[type[Plugin]],
        plugin: type[Plugin],
        plugin_name: str,
        visited: set[type[Plugin]],
        applied: Sequence[type[Plugin]],
    ) -> None:
        """Recursively add a plugin and its dependencies to the graph."""
        if plugin in visited:
            return
        visited.add(plugin)
        graph.add_node(plugin)

        for dep_name, load_order in plugin.dependencies.items():
            dep = self.registry.load(dep_name)

            if load_order is DependencyOrder.BEFORE:
                # Applied plugins already sit behind every new one
                if dep not in applied:
                    graph.add_edge(plugin, dep)
            elif load_order is DependencyOrder.AFTER:
                self._check_after_dependency(dep, dep_name, plugin_name, applied)
                graph.add_edge(dep, plugin)

            self._add_dependency(graph, dep, dep_name, visited, applied)

    def _check_after_dependency(
        self,
        dep: type[Plugin],
        dep_name: str,
        plugin_name: str,
        applied: Sequence[type[Plugin]],
    ) -> None:
        if dep in applied:
            message = (
                f"'{plugin_name}' plugin must come after '{dep_name}' plugin, "
                f"but '{dep_name}' is already applied"
            )
            raise DependencyConflict(
                self._append_host_name(message),
                plugin_name=plugin_name,
                dependency_name=dep_name,
                host_name=self.host_name,
            )

    def _raise_cyclic_dependency(self, cycle: Sequence[type[Plugin]]) -> NoReturn:
        names = sorted(self._name_of(plugin) for plugin in cycle)
        message = f"Dependencies cannot be resolved between: {', '.join(names)}"
        raise CyclicDependency(
            self._append_host_name(message),
            plugin_names=names,
            host_name=self.host_name,
        )

    def _name_of(self, plugin: type[Plugin]) -> str:
        return self.registry.lookup_name(plugin)

    def _append_host_name(self, message: str) -> str:
        host_name = self.host_name
        return f"{message} in {host_name}" if host_name else message


def configure(
    host: HostProtocol,
    defaults: MutableMapping[str, Any] | None = None,
    block: PluginBlock | None = None,
    *,
    registry: PluginRegistry | None = None,
) -> MutableMapping[str, Any]:
    """Configure a host with a set of plugins.

    Plugin dependencies are resolved before the plugins are applied.

    Args:
        host: Host to configure, usually a Pluggable subclass
        defaults: Plugin defaults table to update
        block: Plugin request (callable, mapping, or iterable of names)
        registry: Registry to load plugins from

    Returns:
        Updated plugin defaults

    Raises:
        CyclicDependency: If dependencies cannot be met

    Example:
        >>> def plugins(p):
        ...     p.cache()
        ...     p.fallbacks(default=["en", "de"])
        >>> configure(TranslatedAttributes, {}, plugins)
        {'fallbacks': ['en', 'de']}
    """
    return DependencyResolver(host, defaults, registry)(block)
