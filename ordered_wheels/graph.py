"""Dependency graph utilities.

Holds the workspace dependency graph and computes release order. Packages
must be released in dependency order so that when package A depends on
package B, B is already on the index by the time A's pinned requirement on
it is resolved.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

from .errors import CyclicDependencyError, ManifestError
from .models import DependencyEdge, DependencyKind, Package, ReleasePlan

_ON_PATH = 1
_DONE = 2


class DependencyGraph:
    """All workspace packages and the internal edges between them.

    Packages are stored by name; edges refer to their target by name, never
    by object, so a package can be looked at in isolation. The graph is not
    modified after construction.
    """

    def __init__(self, root: Path, packages: Iterable[Package]) -> None:
        self.root = root
        self._packages: dict[str, Package] = {}
        for package in sorted(packages, key=lambda p: p.name):
            if package.name in self._packages:
                raise ManifestError(
                    f"{package.name} found more than once in the workspace "
                    f"({self._packages[package.name].path}, {package.path})"
                )
            self._packages[package.name] = package

        self._edges: dict[str, tuple[DependencyEdge, ...]] = {}
        self._reverse: dict[str, list[DependencyEdge]] = {n: [] for n in self._packages}
        for name, package in self._packages.items():
            edges = tuple(package.internal_edges)
            for edge in edges:
                if edge.target not in self._packages:
                    raise ManifestError(
                        f"{name} depends on {edge.target}, which is not a "
                        "workspace member"
                    )
                self._reverse[edge.target].append(edge)
            self._edges[name] = edges

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __iter__(self) -> Iterator[Package]:
        return iter(self._packages.values())

    def __len__(self) -> int:
        return len(self._packages)

    def __getitem__(self, name: str) -> Package:
        return self._packages[name]

    def get(self, name: str) -> Package | None:
        return self._packages.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._packages)

    def edges(self, name: str, include_dev: bool = False) -> list[DependencyEdge]:
        """Internal edges declared by name, in manifest order."""
        return [
            e
            for e in self._edges[name]
            if include_dev or e.kind is not DependencyKind.DEVELOPMENT
        ]

    def dependencies(self, name: str, include_dev: bool = False) -> list[str]:
        """Names of the internal packages name depends on, sorted."""
        return sorted({e.target for e in self.edges(name, include_dev)})

    def dependents(self, name: str, include_dev: bool = False) -> list[str]:
        """Names of the internal packages that depend on name, sorted."""
        return sorted(
            {
                e.source
                for e in self._reverse[name]
                if include_dev or e.kind is not DependencyKind.DEVELOPMENT
            }
        )

    def transitive_dependents(
        self, names: Iterable[str], include_dev: bool = False
    ) -> set[str]:
        """Every package depending on any of names, directly or indirectly.

        The starting names are included in the result.
        """
        found = set(names)
        queue = sorted(found)
        while queue:
            node = queue.pop(0)
            for dependent in self.dependents(node, include_dev):
                if dependent not in found:
                    found.add(dependent)
                    queue.append(dependent)
        return found

    def transitive_dependencies(
        self, names: Iterable[str], include_dev: bool = False
    ) -> set[str]:
        """Every package any of names depends on, directly or indirectly.

        The starting names are not included unless reachable from another.
        """
        found: set[str] = set()
        queue = sorted(set(names))
        while queue:
            node = queue.pop(0)
            for dep in self.dependencies(node, include_dev):
                if dep not in found:
                    found.add(dep)
                    queue.append(dep)
        return found

    def package_for_path(self, path: str | Path) -> Package | None:
        """Find the package whose directory contains path.

        Relative paths are taken relative to the workspace root. When
        package directories are nested, the deepest one wins.
        """
        target = Path(path)
        if not target.is_absolute():
            target = self.root / target
        best: Package | None = None
        for package in self._packages.values():
            if target == package.root or package.root in target.parents:
                if best is None or len(package.root.parts) > len(best.root.parts):
                    best = package
        return best


def order(
    graph: DependencyGraph, selected: Iterable[str], include_dev: bool = False
) -> ReleasePlan:
    """Order the selected packages so dependencies come before dependents.

    Runs a depth-first traversal from every selected package (in name order)
    over internal normal and build edges, emitting a package once all of its
    dependencies have been finished. Unselected packages reachable as
    dependencies are walked to check for cycles but are not part of the
    plan. A package reached through a second path (a diamond) is not walked
    again.

    Args:
        graph: The full workspace graph.
        selected: Names of the packages to release.
        include_dev: Also follow development dependency edges.

    Returns:
        ReleasePlan with every selected package exactly once.

    Raises:
        KeyError: If a selected name is not in the graph.
        CyclicDependencyError: If a cycle is reachable from the selection.

    Example:
        If A depends on B and C, and B and C both depend on D:
        order(graph, {A, B, C, D}) → [D, B, C, A]
    """
    wanted = set(selected)
    unknown = sorted(wanted - set(graph.names))
    if unknown:
        raise KeyError(f"Not in the workspace: {', '.join(unknown)}")

    state: dict[str, int] = {}
    emitted: list[str] = []

    for start in sorted(wanted):
        if state.get(start) == _DONE:
            continue
        state[start] = _ON_PATH
        path = [start]
        stack = [(start, iter(graph.dependencies(start, include_dev)))]
        while stack:
            node, children = stack[-1]
            for child in children:
                seen = state.get(child)
                if seen == _ON_PATH:
                    raise CyclicDependencyError(path[path.index(child) :])
                if seen is None:
                    state[child] = _ON_PATH
                    path.append(child)
                    stack.append((child, iter(graph.dependencies(child, include_dev))))
                    break
            else:
                # All dependencies finished
                stack.pop()
                path.pop()
                state[node] = _DONE
                if node in wanted:
                    emitted.append(node)

    return ReleasePlan(packages=tuple(graph[n] for n in emitted))


def to_dot(
    graph: DependencyGraph,
    names: Iterable[str] | None = None,
    include_dev: bool = False,
) -> str:
    """Render the graph (or the subgraph over names) as Graphviz dot.

    Build edges are dotted, development edges dashed.
    """
    keep = set(graph.names if names is None else names)
    lines = ["digraph workspace {", "  rankdir=LR;"]
    for package in graph:
        if package.name in keep:
            label = f"{package.name} {package.version}"
            lines.append(f'  "{package.name}" [label="{label}"];')
    for package in graph:
        if package.name not in keep:
            continue
        drawn: set[tuple[str, DependencyKind]] = set()
        for edge in graph.edges(package.name, include_dev):
            if edge.target not in keep or (edge.target, edge.kind) in drawn:
                continue
            drawn.add((edge.target, edge.kind))
            style = {
                DependencyKind.BUILD: " [style=dotted]",
                DependencyKind.DEVELOPMENT: " [style=dashed]",
            }.get(edge.kind, "")
            lines.append(f'  "{package.name}" -> "{edge.target}"{style};')
    lines.append("}")
    return "\n".join(lines) + "\n"
