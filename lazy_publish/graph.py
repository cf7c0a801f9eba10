"""Dependency graph of the packages in a repository.

Edges point from a package to the packages it depends on. Dependencies are
resolved by name against every scanned package, whatever workspace it belongs
to; names that match nothing in the repository are external and dropped.

The graph must be acyclic: packages are published in topological order so
that dependencies are available before their dependents.
"""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable, Mapping, Sequence

from .errors import CyclicDependency
from .models import Package


def topo_sort(
    dependencies: Mapping[str, Iterable[str]], sort_key: Mapping[str, str]
) -> list[str]:
    """Topologically sort nodes by their dependencies.

    Uses Kahn's algorithm to produce an order where dependencies come before
    dependents. Among nodes that are ready at the same time, the one with the
    smallest ``sort_key`` (the package path) goes first, so the output is
    deterministic.

    Args:
        dependencies: Map of node → nodes it depends on. Dependencies that are
              not keys of the map are ignored.
        sort_key: Map of node → tie-breaking key.

    Returns:
        List of nodes, dependencies first.

    Raises:
        CyclicDependency: Naming the members of every cycle.

    Example:
        If A depends on B, and B depends on C:
        topo_sort({A: [B], B: [C], C: []}) → [C, B, A]
    """
    # Count incoming edges (dependencies) for each node
    in_degree = {n: 0 for n in dependencies}
    # Track reverse dependencies (who depends on each node)
    reverse_deps: dict[str, list[str]] = {n: [] for n in dependencies}

    for name, deps in dependencies.items():
        for dep in set(deps):
            if dep in dependencies and dep != name:
                in_degree[name] += 1
                reverse_deps[dep].append(name)

    ready = [(sort_key[n], n) for n, d in in_degree.items() if d == 0]
    heapq.heapify(ready)
    order: list[str] = []

    while ready:
        _, node = heapq.heappop(ready)
        order.append(node)
        for dependent in reverse_deps[node]:
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                heapq.heappush(ready, (sort_key[dependent], dependent))

    # If we didn't process every node, the leftovers contain a cycle
    if len(order) != len(dependencies):
        done = set(order)
        remaining = {
            n: [d for d in deps if d in dependencies and d not in done]
            for n, deps in dependencies.items()
            if n not in done
        }
        raise CyclicDependency(find_cycles(remaining))

    return order


def find_cycles(dependencies: Mapping[str, Iterable[str]]) -> list[list[str]]:
    """Strongly-connected components that form cycles, each sorted.

    Iterative Tarjan's algorithm. Nodes that merely depend on a cycle are not
    part of one and are not reported.
    """
    index: dict[str, int] = {}
    lowlink: dict[str, int] = {}
    on_stack: set[str] = set()
    stack: list[str] = []
    cycles: list[list[str]] = []
    counter = 0

    def children_of(node: str):
        return iter(sorted(d for d in dependencies[node] if d in dependencies))

    for start in sorted(dependencies):
        if start in index:
            continue
        work = [(start, children_of(start))]
        index[start] = lowlink[start] = counter
        counter += 1
        stack.append(start)
        on_stack.add(start)

        while work:
            node, children = work[-1]
            advanced = False
            for child in children:
                if child not in index:
                    index[child] = lowlink[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, children_of(child)))
                    advanced = True
                    break
                if child in on_stack:
                    lowlink[node] = min(lowlink[node], index[child])
            if advanced:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index[node]:
                component: list[str] = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                if len(component) > 1:
                    cycles.append(sorted(component))

    return sorted(cycles)


class DependencyGraph:
    """Read-only graph over all scanned packages.

    Excluded packages are part of the graph: exclusion only affects publish
    decisions.
    """

    def __init__(self, packages: Sequence[Package]) -> None:
        self._packages = {p.name: p for p in sorted(packages, key=lambda p: p.path)}
        self._dependencies: dict[str, tuple[str, ...]] = {}
        self._dependents: dict[str, list[str]] = {name: [] for name in self._packages}

        for name, pkg in self._packages.items():
            resolved = tuple(
                sorted(
                    (d for d in pkg.dependencies if d in self._packages and d != name),
                    key=lambda d: self._packages[d].path,
                )
            )
            self._dependencies[name] = resolved
            for dep in resolved:
                self._dependents[dep].append(name)

        self._order = topo_sort(
            self._dependencies, {n: p.path for n, p in self._packages.items()}
        )
        self._position = {name: i for i, name in enumerate(self._order)}

    @property
    def packages(self) -> list[Package]:
        """All packages in path order."""
        return list(self._packages.values())

    @property
    def topo_order(self) -> list[str]:
        """Package names, dependencies before dependents."""
        return list(self._order)

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def package(self, name: str) -> Package:
        return self._packages[name]

    def dependencies(self, name: str) -> tuple[str, ...]:
        """Direct in-repository dependencies of ``name``."""
        return self._dependencies[name]

    def dependents(self, name: str) -> tuple[str, ...]:
        """Packages that directly depend on ``name``."""
        return tuple(self._dependents[name])

    def topo_index(self, name: str) -> int:
        return self._position[name]

    def transitive_dependencies(self, name: str) -> set[str]:
        """Everything ``name`` depends on, directly or not."""
        seen: set[str] = set()
        queue = deque(self._dependencies[name])
        while queue:
            node = queue.popleft()
            if node in seen:
                continue
            seen.add(node)
            queue.extend(self._dependencies[node])
        return seen

    def reverse_closure(self, names: Iterable[str]) -> set[str]:
        """``names`` plus every package transitively depending on one of them.

        A single BFS over reverse edges from all seeds at once, O(V+E).
        """
        seen = {n for n in names if n in self._packages}
        queue = deque(seen)
        while queue:
            node = queue.popleft()
            for dependent in self._dependents[node]:
                if dependent not in seen:
                    seen.add(dependent)
                    queue.append(dependent)
        return seen


def build(packages: Sequence[Package]) -> DependencyGraph:
    """Build the dependency graph for ``packages``.

    Raises:
        CyclicDependency: If the packages depend on each other in a cycle.
    """
    return DependencyGraph(packages)
