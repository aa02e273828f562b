"""Dependency graph between cells.

Nodes are keyed by opaque storage keys (``r{row}c{col}``).  Each node keeps
both edge directions -- the cells it reads (``dependencies``) and the cells
that read it (``dependents``) -- and every mutation updates both sides.

A node can exist purely as a placeholder: a cell that is referenced by some
formula but holds no formula of its own.

The graph has no internal locking.  The host applies one edit, including
its downstream recalculation, before issuing the next.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable


class GraphNode:
    """One cell in the graph with its outgoing and incoming edges."""

    __slots__ = ("key", "dependencies", "dependents")

    def __init__(self, key: str) -> None:
        self.key = key
        self.dependencies: set[str] = set()
        self.dependents: set[str] = set()

    def __repr__(self) -> str:
        return (
            f"GraphNode({self.key!r}, dependencies={sorted(self.dependencies)}, "
            f"dependents={sorted(self.dependents)})"
        )


class DependencyGraph:
    """Mutable directed graph tracking which cells read which others.

    Usage::

        graph = DependencyGraph()
        graph.update_cell("r0c2", ["r0c0", "r0c1"])
        order = graph.get_recalc_order(["r0c0"])  # ["r0c2"]
    """

    def __init__(self) -> None:
        self._nodes: dict[str, GraphNode] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __contains__(self, key: object) -> bool:
        return key in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def keys(self) -> list[str]:
        return list(self._nodes)

    def get_node(self, key: str) -> GraphNode | None:
        return self._nodes.get(key)

    def get_dependencies(self, key: str) -> set[str]:
        node = self._nodes.get(key)
        return set(node.dependencies) if node else set()

    def get_dependents(self, key: str) -> set[str]:
        node = self._nodes.get(key)
        return set(node.dependents) if node else set()

    def _ensure(self, key: str) -> GraphNode:
        node = self._nodes.get(key)
        if node is None:
            node = GraphNode(key)
            self._nodes[key] = node
        return node

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def update_cell(self, key: str, dependencies: Iterable[str]) -> None:
        """Replace the outgoing edges of *key*.

        Detaches *key* from its previous dependencies, attaches it to the
        new ones (creating placeholder nodes as needed) and keeps its
        existing dependents.
        """
        new_deps = set(dependencies)
        node = self._ensure(key)

        for dep in node.dependencies:
            dep_node = self._nodes.get(dep)
            if dep_node is not None:
                dep_node.dependents.discard(key)

        for dep in new_deps:
            self._ensure(dep).dependents.add(key)

        node.dependencies = new_deps

    def remove_cell(self, key: str) -> None:
        """Delete *key* and every edge touching it.  Unknown keys are ignored."""
        node = self._nodes.get(key)
        if node is None:
            return

        for dep in node.dependencies:
            dep_node = self._nodes.get(dep)
            if dep_node is not None:
                dep_node.dependents.discard(key)

        for dependent in node.dependents:
            dependent_node = self._nodes.get(dependent)
            if dependent_node is not None:
                dependent_node.dependencies.discard(key)

        del self._nodes[key]

    def clear(self) -> None:
        self._nodes.clear()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_affected_cells(self, key: str) -> set[str]:
        """Transitive dependents of *key* (breadth-first), excluding *key*.

        *key* itself only appears when it sits on a cycle back to itself.
        """
        affected: set[str] = set()
        visited: set[str] = set()
        queue: deque[str] = deque([key])

        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)

            node = self._nodes.get(current)
            if node is None:
                continue
            for dependent in node.dependents:
                affected.add(dependent)
                queue.append(dependent)

        return affected

    def has_cycle(self, key: str) -> bool:
        """Whether a cycle is reachable from *key* along dependency edges."""
        return self.find_cycle(key) is not None

    def find_cycle(self, key: str) -> list[str] | None:
        """Depth-first search for a back edge reachable from *key*.

        Returns:
            The DFS path from *key* to the node that closes the cycle, or
            ``None`` when no cycle is reachable.
        """
        visited: set[str] = {key}
        on_stack: set[str] = {key}
        path: list[str] = [key]
        # Each frame holds the iterator over one node's dependencies.
        stack = [iter(sorted(self.get_dependencies(key)))]

        while stack:
            dep = next(stack[-1], None)
            if dep is None:
                stack.pop()
                on_stack.discard(path.pop())
                continue
            if dep in on_stack:
                return path + [dep]
            if dep in visited:
                continue
            visited.add(dep)
            on_stack.add(dep)
            path.append(dep)
            stack.append(iter(sorted(self.get_dependencies(dep))))

        return None

    def get_all_cyclic_cells(self) -> set[str]:
        """Every known key from which a cycle is reachable."""
        return {key for key in self._nodes if self.has_cycle(key)}

    def get_topological_order(self, keys: Iterable[str]) -> list[str] | None:
        """Order *keys* so each comes after its dependencies (Kahn's algorithm).

        Only edges between members of *keys* are considered.

        Returns:
            The ordered keys, or ``None`` if the subset contains a cycle.
        """
        subset = set(keys)
        in_degree: dict[str, int] = {}
        queue: deque[str] = deque()

        for key in sorted(subset):
            node = self._nodes.get(key)
            degree = len(node.dependencies & subset) if node else 0
            in_degree[key] = degree
            if degree == 0:
                queue.append(key)

        order: list[str] = []
        while queue:
            current = queue.popleft()
            order.append(current)
            node = self._nodes.get(current)
            if node is None:
                continue
            for dependent in sorted(node.dependents & subset):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(order) != len(subset):
            return None
        return order

    def get_recalc_order(self, changed_keys: Iterable[str]) -> list[str]:
        """Cells to recompute after *changed_keys* changed, dependencies first.

        If the affected cells contain a cycle the affected set is returned in
        arbitrary order instead, so the host still recomputes every cell and
        marks the cyclic ones itself via :meth:`has_cycle`.
        """
        affected: set[str] = set()
        for key in changed_keys:
            affected |= self.get_affected_cells(key)

        order = self.get_topological_order(affected)
        if order is None:
            return sorted(affected)
        return order
