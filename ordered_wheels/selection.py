"""Package selection.

Turns SelectionCriteria (and, optionally, the list of files changed since a
git reference) into the set of packages a run should operate on.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from pathlib import Path

from packaging.utils import canonicalize_name
from pydantic import BaseModel, Field

from .errors import EmptySelectionError
from .graph import DependencyGraph
from .models import Package, SelectionCriteria
from .versions import parse_version, pre_label


class Selection(BaseModel):
    """Result of select().

    Attributes:
        packages: Names of the selected packages.
        unknown: Explicitly requested names that are not in the workspace.
    """

    packages: frozenset[str] = frozenset()
    unknown: list[str] = Field(default_factory=list)


def _is_ignored_pre(package: Package, labels: list[str]) -> bool:
    version = parse_version(package.version)
    if not version.prerelease:
        return False
    return version.prerelease in labels or pre_label(version) in labels


def passes_filters(package: Package, criteria: SelectionCriteria) -> bool:
    """Apply the publish, skip and ignore-pre filters to one package."""
    if not criteria.ignore_publish and not package.publish:
        return False
    if any(re.search(pattern, package.name) for pattern in criteria.skip):
        return False
    if criteria.ignore_pre and _is_ignored_pre(package, criteria.ignore_pre):
        return False
    return True


def changed_packages(
    graph: DependencyGraph, changed_files: Iterable[str | Path]
) -> set[str]:
    """Map changed file paths to the packages whose directory contains them."""
    touched: set[str] = set()
    for path in changed_files:
        package = graph.package_for_path(path)
        if package is not None:
            touched.add(package.name)
    return touched


def select(
    graph: DependencyGraph,
    criteria: SelectionCriteria,
    changed_files: Iterable[str | Path] | None = None,
) -> Selection:
    """Compute the packages to operate on.

    With explicit names, the result is exactly those names that exist in
    the workspace. Otherwise every package passing the publish, skip and
    ignore-pre filters is a candidate. When changed_files is given, only
    candidates with a changed file are kept, and then everything depending
    on them (walking the full graph) is added back, subject to the same
    filters. With include_pre_deps, dependencies of the selection that are
    still on a pre-release version are added too.

    Raises:
        ConflictingCriteriaError: Explicit names combined with pattern options.
        EmptySelectionError: Nothing selected and criteria.empty_is_error.
    """
    criteria.check_conflicts()

    unknown: list[str] = []
    if criteria.packages:
        names = {canonicalize_name(n) for n in criteria.packages}
        unknown = sorted(n for n in names if n not in graph)
        selected = {n for n in names if n in graph}
    else:
        selected = {p.name for p in graph if passes_filters(p, criteria)}
        if changed_files is not None:
            base = selected & changed_packages(graph, changed_files)
            cascade = graph.transitive_dependents(base)
            selected = base | {
                n for n in cascade if passes_filters(graph[n], criteria)
            }

    if criteria.include_pre_deps:
        selected |= {
            n
            for n in graph.transitive_dependencies(selected)
            if parse_version(graph[n].version).prerelease
        }

    if not selected and criteria.empty_is_error:
        raise EmptySelectionError("No packages matching criteria")

    return Selection(packages=frozenset(selected), unknown=unknown)
