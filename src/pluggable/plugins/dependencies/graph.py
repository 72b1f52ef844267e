"""Dependency graph for plugins.

This module provides a graph representation of plugin ordering
constraints with support for cycle detection and topological sorting.

An edge ``A -> B`` means A must come before B in the final order.
Adjacency is kept in insertion order, so the same sequence of
``add_node``/``add_edge`` calls always produces the same order.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, Iterator, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)


class GraphCycleError(ValueError):
    """Raised when the graph cannot be linearized.

    Attributes:
        cycle: Members of the strongly connected component holding the
            first detected cycle, in insertion order.
    """

    def __init__(self, message: str, cycle: list[Any]):
        self.cycle = cycle
        super().__init__(message)


@dataclass
class DependencyNode(Generic[K]):
    """Node in the dependency graph.

    Attributes:
        key: Node identity (a plugin class, or any hashable)
        successors: Nodes that must come after this one
        predecessors: Nodes that must come before this one
    """

    key: K
    successors: dict[K, None] = field(default_factory=dict)
    predecessors: dict[K, None] = field(default_factory=dict)


class DependencyGraph(Generic[K]):
    """Graph of "must precede" constraints between plugins.

    Provides operations for:
    - Adding nodes and edges
    - Cycle detection
    - Topological sorting (final order)

    Example:
        >>> graph = DependencyGraph()
        >>> graph.add_edge("cache", "backend")
        >>> graph.add_node("fallbacks")
        >>> graph.get_load_order()
        ['cache', 'backend', 'fallbacks']
    """

    def __init__(self) -> None:
        """Initialize empty dependency graph."""
        self._nodes: dict[K, DependencyNode[K]] = {}

    def add_node(self, key: K) -> DependencyNode[K]:
        """Add a node to the graph, or return the existing one.

        Args:
            key: Node identity

        Returns:
            DependencyNode for the key
        """
        node = self._nodes.get(key)
        if node is None:
            node = DependencyNode(key=key)
            self._nodes[key] = node
        return node

    def add_edge(self, before: K, after: K) -> None:
        """Require ``before`` to come before ``after``.

        Missing endpoints are added as nodes; duplicate edges are ignored.

        Raises:
            ValueError: If both endpoints are the same node.
        """
        if before == after:
            raise ValueError(f"Self-edge on {before!r} is not allowed")

        before_node = self.add_node(before)
        after_node = self.add_node(after)
        if after in before_node.successors:
            return

        before_node.successors[after] = None
        after_node.predecessors[before] = None
        logger.debug(f"Added ordering edge {before!r} -> {after!r}")

    def get_node(self, key: K) -> DependencyNode[K] | None:
        """Get a node by key."""
        return self._nodes.get(key)

    def has_node(self, key: K) -> bool:
        """Check if node exists."""
        return key in self._nodes

    def successors(self, key: K) -> list[K]:
        """Nodes that must come after ``key``."""
        node = self._nodes.get(key)
        return list(node.successors) if node else []

    def predecessors(self, key: K) -> list[K]:
        """Nodes that must come before ``key``."""
        node = self._nodes.get(key)
        return list(node.predecessors) if node else []

    def edges(self) -> list[tuple[K, K]]:
        """All edges, in insertion order."""
        return [
            (key, successor)
            for key, node in self._nodes.items()
            for successor in node.successors
        ]

    def detect_cycles(self) -> list[list[K]]:
        """Detect all cycles in the dependency graph.

        Uses DFS-based cycle detection.

        Returns:
            List of cycles, each cycle is a list of keys starting and
            ending with the same key
        """
        cycles: list[list[K]] = []
        visited: set[K] = set()
        rec_stack: set[K] = set()
        path: list[K] = []

        def dfs(key: K) -> None:
            visited.add(key)
            rec_stack.add(key)
            path.append(key)

            for successor in self._nodes[key].successors:
                if successor not in visited:
                    dfs(successor)
                elif successor in rec_stack:
                    cycle_start = path.index(successor)
                    cycles.append(path[cycle_start:] + [successor])

            path.pop()
            rec_stack.remove(key)

        for key in self._nodes:
            if key not in visited:
                dfs(key)

        return cycles

    def strongly_connected(self, key: K) -> list[K]:
        """Nodes on some cycle through ``key``, in insertion order.

        A node belongs to the component when it is both reachable from
        ``key`` and able to reach ``key``.
        """
        forward = self._reachable(key, lambda node: node.successors)
        backward = self._reachable(key, lambda node: node.predecessors)
        return [k for k in self._nodes if k in forward and k in backward]

    def _reachable(
        self,
        start: K,
        neighbours: Callable[[DependencyNode[K]], dict[K, None]],
    ) -> set[K]:
        seen: set[K] = {start}
        stack = [start]
        while stack:
            for neighbour in neighbours(self._nodes[stack.pop()]):
                if neighbour not in seen:
                    seen.add(neighbour)
                    stack.append(neighbour)
        return seen

    def get_load_order(self) -> list[K]:
        """Linearize the graph.

        Every edge ``A -> B`` yields A before B. Among nodes that are free
        at the same time, the one added first comes first.

        Returns:
            List of keys in final order

        Raises:
            GraphCycleError: If graph contains cycles
        """
        cycles = self.detect_cycles()
        if cycles:
            members = self.strongly_connected(cycles[0][0])
            cycle_str = " -> ".join(repr(key) for key in cycles[0])
            raise GraphCycleError(f"Circular dependency detected: {cycle_str}", members)

        # Kahn's algorithm for topological sort
        in_degree: dict[K, int] = {
            key: len(node.predecessors) for key, node in self._nodes.items()
        }
        position = {key: index for index, key in enumerate(self._nodes)}

        # Ties are broken by insertion position
        ready = [(position[key], key) for key, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        result: list[K] = []

        while ready:
            _, key = heapq.heappop(ready)
            result.append(key)

            for successor in self._nodes[key].successors:
                in_degree[successor] -= 1
                if in_degree[successor] == 0:
                    heapq.heappush(ready, (position[successor], successor))

        return result

    def validate(self) -> list[str]:
        """Validate the dependency graph.

        Returns:
            List of problems found (empty if valid)
        """
        errors: list[str] = []

        for key, node in self._nodes.items():
            for successor in node.successors:
                if successor not in self._nodes:
                    errors.append(f"Edge {key!r} -> {successor!r} has no target node")

        for cycle in self.detect_cycles():
            errors.append(
                f"Circular dependency: {' -> '.join(repr(key) for key in cycle)}"
            )

        return errors

    def __len__(self) -> int:
        """Get number of nodes."""
        return len(self._nodes)

    def __iter__(self) -> Iterator[K]:
        """Iterate over node keys in insertion order."""
        return iter(self._nodes)

    def __contains__(self, key: object) -> bool:
        """Check if key is in graph."""
        return key in self._nodes

    def to_dict(self, key: Callable[[K], str] = str) -> dict[str, Any]:
        """Convert graph to dictionary for serialization.

        Args:
            key: Function turning a node key into a string
        """
        return {
            "nodes": [key(k) for k in self._nodes],
            "edges": [[key(a), key(b)] for a, b in self.edges()],
        }

    def __repr__(self) -> str:
        return f"<DependencyGraph nodes={len(self._nodes)} edges={len(self.edges())}>"
