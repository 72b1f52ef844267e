"""Plugin dependency management module.

This module provides the dependency graph and the resolver that turns
a plugin request into the order plugins are applied to a host.

Components:
    - DependencyGraph: Ordering constraints between plugins
    - DependencyResolver: Expands dependencies and linearizes them
    - ResolutionResult: Graph and final order of one resolution

Example:
    >>> from pluggable.plugins.dependencies import DependencyResolver
    >>>
    >>> resolver = DependencyResolver(TranslatedAttributes)
    >>> result = resolver.resolve(["cache", "fallbacks"])
    >>> result.order
    [<class 'Cache'>, <class 'Fallbacks'>]
"""

from __future__ import annotations

from pluggable.plugins.dependencies.graph import (
    DependencyGraph,
    DependencyNode,
    GraphCycleError,
)
from pluggable.plugins.dependencies.resolver import (
    DependencyResolver,
    HostProtocol,
    ResolutionResult,
    configure,
)

__all__ = [
    "DependencyGraph",
    "DependencyNode",
    "GraphCycleError",
    "DependencyResolver",
    "HostProtocol",
    "ResolutionResult",
    "configure",
]
