"""Tests for ordered_wheels.graph."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import make_graph

from ordered_wheels.errors import CyclicDependencyError, ManifestError
from ordered_wheels.graph import DependencyGraph, order, to_dot
from ordered_wheels.models import DependencyEdge, Package


class TestDependencyGraph:
    def test_iterates_in_name_order(self) -> None:
        graph = make_graph({"c": [], "a": [], "b": []})
        assert [p.name for p in graph] == ["a", "b", "c"]
        assert len(graph) == 3
        assert "a" in graph
        assert "z" not in graph

    def test_dependencies_and_dependents(self) -> None:
        graph = make_graph({"a": ["b", "c"], "b": ["c"], "c": []})
        assert graph.dependencies("a") == ["b", "c"]
        assert graph.dependents("c") == ["a", "b"]

    def test_dev_edges_only_on_request(self) -> None:
        graph = make_graph({"a": [], "b": []}, dev_deps={"a": ["b"]})
        assert graph.dependencies("a") == []
        assert graph.dependencies("a", include_dev=True) == ["b"]
        assert graph.dependents("b", include_dev=True) == ["a"]

    def test_transitive_dependents_include_start(self) -> None:
        graph = make_graph({"a": ["b"], "b": ["c"], "c": [], "d": []})
        assert graph.transitive_dependents(["c"]) == {"a", "b", "c"}

    def test_transitive_dependencies_exclude_start(self) -> None:
        graph = make_graph({"a": ["b"], "b": ["c"], "c": [], "d": []})
        assert graph.transitive_dependencies(["a"]) == {"b", "c"}

    def test_unknown_internal_target(self) -> None:
        with pytest.raises(ManifestError, match="not a workspace member"):
            make_graph({"a": ["ghost"]})

    def test_duplicate_name(self) -> None:
        package = Package(name="a", version="1.0.0", path="a", root=Path("/ws/a"))
        twin = Package(name="a", version="2.0.0", path="b", root=Path("/ws/b"))
        with pytest.raises(ManifestError, match="found more than once"):
            DependencyGraph(Path("/ws"), [package, twin])

    def test_package_for_path_deepest_wins(self) -> None:
        outer = Package(
            name="outer", version="1.0.0", path="outer", root=Path("/ws/outer")
        )
        inner = Package(
            name="inner",
            version="1.0.0",
            path="outer/inner",
            root=Path("/ws/outer/inner"),
        )
        graph = DependencyGraph(Path("/ws"), [outer, inner])
        assert graph.package_for_path("outer/inner/src/x.py").name == "inner"
        assert graph.package_for_path("outer/README.md").name == "outer"
        assert graph.package_for_path("docs/index.md") is None


class TestOrder:
    def test_no_deps_alphabetical(self) -> None:
        graph = make_graph({"c": [], "a": [], "b": []})
        assert order(graph, {"a", "b", "c"}).names == ["a", "b", "c"]

    def test_linear_deps(self) -> None:
        graph = make_graph({"a": ["b"], "b": ["c"], "c": []})
        assert order(graph, {"a", "b", "c"}).names == ["c", "b", "a"]

    def test_diamond_each_package_once(self) -> None:
        """If A depends on B and C, and both depend on D, D comes first, once."""
        graph = make_graph({"a": ["b", "c"], "b": ["d"], "c": ["d"], "d": []})
        assert order(graph, {"a", "b", "c", "d"}).names == ["d", "b", "c", "a"]

    def test_unselected_dependencies_not_emitted(self) -> None:
        graph = make_graph({"a": ["b"], "b": ["c"], "c": []})
        assert order(graph, {"a", "c"}).names == ["c", "a"]

    def test_deterministic(self) -> None:
        graph = make_graph({"x": ["m"], "y": ["m"], "m": [], "k": ["y"]})
        first = order(graph, {"x", "y", "m", "k"}).names
        assert all(
            order(graph, {"k", "m", "y", "x"}).names == first for _ in range(5)
        )

    def test_empty_selection(self) -> None:
        assert order(make_graph({"a": []}), set()).names == []

    def test_unknown_selection(self) -> None:
        with pytest.raises(KeyError, match="ghost"):
            order(make_graph({"a": []}), {"ghost"})

    def test_two_way_cycle(self) -> None:
        graph = make_graph({"a": ["b"], "b": ["a"]})
        with pytest.raises(CyclicDependencyError) as excinfo:
            order(graph, {"a"})
        assert excinfo.value.cycle == ["a", "b"]
        assert "a → b → a" in str(excinfo.value)

    def test_cycle_below_selection_names_only_the_cycle(self) -> None:
        graph = make_graph({"top": ["a"], "a": ["b"], "b": ["c"], "c": ["a"]})
        with pytest.raises(CyclicDependencyError) as excinfo:
            order(graph, {"top"})
        assert excinfo.value.cycle == ["a", "b", "c"]

    def test_dev_cycle_ignored_unless_included(self) -> None:
        graph = make_graph({"a": ["b"], "b": []}, dev_deps={"b": ["a"]})
        assert order(graph, {"a", "b"}).names == ["b", "a"]
        with pytest.raises(CyclicDependencyError):
            order(graph, {"a", "b"}, include_dev=True)


class TestToDot:
    def test_renders_nodes_and_styled_edges(self) -> None:
        graph = make_graph(
            {"a": ["b"], "b": [], "c": []},
            versions={"a": "2.0.0"},
            dev_deps={"c": ["a"]},
        )
        dot = to_dot(graph, include_dev=True)
        assert dot.startswith("digraph workspace {")
        assert '"a" [label="a 2.0.0"];' in dot
        assert '"a" -> "b";' in dot
        assert '"c" -> "a" [style=dashed];' in dot

    def test_subgraph(self) -> None:
        graph = make_graph({"a": ["b"], "b": [], "c": ["a"]})
        dot = to_dot(graph, ["a", "b"])
        assert '"c"' not in dot
        assert '"a" -> "b";' in dot

    def test_duplicate_edges_drawn_once(self) -> None:
        edges = (
            DependencyEdge(source="a", target="b", internal=True),
            DependencyEdge(
                source="a",
                target="b",
                internal=True,
                section="project.optional-dependencies.x",
            ),
        )
        graph = DependencyGraph(
            Path("/ws"),
            [
                Package(
                    name="a", version="1", path="a", root=Path("/ws/a"), edges=edges
                ),
                Package(name="b", version="1", path="b", root=Path("/ws/b")),
            ],
        )
        assert to_dot(graph).count('"a" -> "b"') == 1
