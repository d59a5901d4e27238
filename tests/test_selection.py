"""Tests for ordered_wheels.selection."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_graph

from ordered_wheels.errors import ConflictingCriteriaError, EmptySelectionError
from ordered_wheels.graph import DependencyGraph, order
from ordered_wheels.models import Package, SelectionCriteria
from ordered_wheels.selection import changed_packages, passes_filters, select


def _private(graph: DependencyGraph, name: str) -> DependencyGraph:
    """Copy of graph with name marked as not publishable."""
    packages = [
        p.model_copy(update={"publish": False}) if p.name == name else p
        for p in graph
    ]
    return DependencyGraph(graph.root, packages)


class TestFilters:
    def _package(self, version: str = "1.0.0", publish: bool = True) -> Package:
        return Package(
            name="acme-core",
            version=version,
            path="packages/acme-core",
            root=Path("/ws/packages/acme-core"),
            publish=publish,
        )

    def test_skip_is_searched_not_matched(self) -> None:
        criteria = SelectionCriteria(skip=["core$"])
        assert not passes_filters(self._package(), criteria)

    def test_private_needs_ignore_publish(self) -> None:
        package = self._package(publish=False)
        assert not passes_filters(package, SelectionCriteria())
        assert passes_filters(package, SelectionCriteria(ignore_publish=True))

    def test_ignore_pre_by_label(self) -> None:
        criteria = SelectionCriteria(ignore_pre=["dev"])
        assert not passes_filters(self._package("2.0.0-dev.3"), criteria)
        assert passes_filters(self._package("2.0.0-rc.1"), criteria)
        assert passes_filters(self._package("2.0.0"), criteria)


class TestSelect:
    def test_everything_by_default(self) -> None:
        graph = make_graph({"a": ["b"], "b": [], "c": []})
        assert select(graph, SelectionCriteria()).packages == {"a", "b", "c"}

    def test_private_excluded(self) -> None:
        graph = _private(make_graph({"a": [], "b": []}), "b")
        assert select(graph, SelectionCriteria()).packages == {"a"}
        assert select(graph, SelectionCriteria(ignore_publish=True)).packages == {
            "a",
            "b",
        }

    def test_explicit_names(self) -> None:
        graph = make_graph({"a": ["b"], "b": [], "c": []})
        selection = select(graph, SelectionCriteria(packages=["A", "c", "ghost"]))
        assert selection.packages == {"a", "c"}
        assert selection.unknown == ["ghost"]

    def test_explicit_names_not_publish_filtered(self) -> None:
        graph = _private(make_graph({"a": []}), "a")
        assert select(graph, SelectionCriteria(packages=["a"])).packages == {"a"}

    def test_conflict_raised_before_graph_work(self) -> None:
        criteria = SelectionCriteria(packages=["a"], skip=["b"])
        with pytest.raises(ConflictingCriteriaError):
            select(make_graph({}), criteria)

    def test_skip(self) -> None:
        graph = make_graph({"acme-a": [], "acme-b": [], "tool": []})
        criteria = SelectionCriteria(skip=["^acme-"])
        assert select(graph, criteria).packages == {"tool"}

    def test_empty_is_fine_by_default(self) -> None:
        selection = select(make_graph({"a": []}), SelectionCriteria(skip=["a"]))
        assert selection.packages == frozenset()

    def test_empty_is_error(self) -> None:
        criteria = SelectionCriteria(skip=["a"], empty_is_error=True)
        with pytest.raises(EmptySelectionError):
            select(make_graph({"a": []}), criteria)


class TestChangedSince:
    def test_cascade_to_dependents(self) -> None:
        """A change in a dependency re-releases everything built on it."""
        graph = make_graph(
            {"app": ["lib"], "lib": ["core"], "core": [], "other": []}
        )
        selection = select(
            graph,
            SelectionCriteria(changed_since="v1"),
            ["packages/core/src/core/__init__.py"],
        )
        assert selection.packages == {"core", "lib", "app"}

    def test_diamond_cascade(self) -> None:
        """Only d changed; a reaches it through both b and c."""
        graph = make_graph({"a": ["b", "c"], "b": ["d"], "c": ["d"], "d": []})
        selection = select(
            graph, SelectionCriteria(changed_since="v1"), ["packages/d/src/d.py"]
        )
        assert selection.packages == {"a", "b", "c", "d"}
        assert order(graph, selection.packages).names == ["d", "b", "c", "a"]

    def test_unchanged_dependencies_not_added(self) -> None:
        graph = make_graph({"app": ["lib"], "lib": ["core"], "core": []})
        selection = select(
            graph, SelectionCriteria(changed_since="v1"), ["packages/lib/README.md"]
        )
        assert selection.packages == {"lib", "app"}

    def test_cascade_still_filtered(self) -> None:
        graph = make_graph({"app": ["lib"], "tool": ["lib"], "lib": []})
        selection = select(
            graph,
            SelectionCriteria(changed_since="v1", skip=["^tool$"]),
            ["packages/lib/x.py"],
        )
        assert selection.packages == {"lib", "app"}

    def test_skipped_package_change_does_not_cascade(self) -> None:
        graph = make_graph({"app": ["lib"], "lib": []})
        selection = select(
            graph,
            SelectionCriteria(changed_since="v1", skip=["^lib$"]),
            ["packages/lib/x.py"],
        )
        assert selection.packages == frozenset()

    def test_files_outside_packages_ignored(self) -> None:
        graph = make_graph({"a": []})
        assert changed_packages(graph, ["README.md", "docs/x.md"]) == set()

    def test_absolute_paths(self) -> None:
        graph = make_graph({"a": []})
        assert changed_packages(graph, [Path("/ws/packages/a/x.py")]) == {"a"}


class TestIncludePreDeps:
    def test_pre_release_dependencies_added(self) -> None:
        graph = make_graph(
            {"app": ["lib"], "lib": ["core"], "core": [], "util": []},
            versions={"lib": "2.0.0-dev", "core": "1.0.0", "util": "0.1.0-alpha"},
        )
        criteria = SelectionCriteria(packages=["app"], include_pre_deps=True)
        assert select(graph, criteria).packages == {"app", "lib"}

    def test_transitive_pre_release(self) -> None:
        graph = make_graph(
            {"app": ["lib"], "lib": ["core"], "core": []},
            versions={"core": "1.1.0-rc.1"},
        )
        criteria = SelectionCriteria(packages=["app"], include_pre_deps=True)
        assert select(graph, criteria).packages == {"app", "core"}
