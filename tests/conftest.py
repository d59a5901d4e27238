"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import tomlkit

from ordered_wheels.graph import DependencyGraph
from ordered_wheels.models import DependencyEdge, DependencyKind, Package
from ordered_wheels.workspace import build_graph

WriteWorkspace = Callable[[dict[str, str]], Path]


def member(
    name: str,
    version: str = "1.0.0",
    deps: list[str] | None = None,
    extra: str = "",
) -> str:
    """Render a member pyproject.toml depending on sibling packages by path.

    Each name in deps becomes a dependency on packages/<name> through
    [tool.uv.sources].
    """
    deps = deps or []
    lines = [
        "[project]",
        f'name = "{name}"',
        f'version = "{version}"',
        "dependencies = [",
        *[f'    "{d}>=0.1",' for d in deps],
        "]",
    ]
    if extra:
        lines += ["", extra.strip()]
    if deps:
        lines += ["", "[tool.uv.sources]"]
        lines += [f'{d} = {{ path = "../{d}" }}' for d in deps]
    return "\n".join(lines) + "\n"


@pytest.fixture
def write_workspace(tmp_path: Path) -> WriteWorkspace:
    """Return a function writing a uv workspace under tmp_path.

    Takes a mapping of directory name (under packages/) → pyproject.toml
    content and returns the workspace root.
    """

    def write(members: dict[str, str]) -> Path:
        (tmp_path / "pyproject.toml").write_text(
            '[tool.uv.workspace]\nmembers = ["packages/*"]\n'
        )
        for dirname, content in members.items():
            package_dir = tmp_path / "packages" / dirname
            package_dir.mkdir(parents=True, exist_ok=True)
            (package_dir / "pyproject.toml").write_text(content)
        return tmp_path

    return write


@pytest.fixture
def diamond(write_workspace: WriteWorkspace) -> DependencyGraph:
    """top → left, right → bottom, plus an unrelated package."""
    root = write_workspace(
        {
            "bottom": member("bottom"),
            "left": member("left", deps=["bottom"]),
            "right": member("right", deps=["bottom"]),
            "top": member("top", deps=["left", "right"]),
            "solo": member("solo", version="0.3.0"),
        }
    )
    return build_graph(root)


def make_graph(
    deps: dict[str, list[str]],
    root: Path = Path("/ws"),
    versions: dict[str, str] | None = None,
    dev_deps: dict[str, list[str]] | None = None,
) -> DependencyGraph:
    """Build a DependencyGraph in memory, without touching disk."""
    versions = versions or {}
    dev_deps = dev_deps or {}
    packages = []
    for name, targets in deps.items():
        edges = [
            DependencyEdge(source=name, target=t, internal=True) for t in targets
        ] + [
            DependencyEdge(
                source=name,
                target=t,
                kind=DependencyKind.DEVELOPMENT,
                internal=True,
                section="dependency-groups.dev",
            )
            for t in dev_deps.get(name, [])
        ]
        packages.append(
            Package(
                name=name,
                version=versions.get(name, "1.0.0"),
                path=f"packages/{name}",
                root=root / "packages" / name,
                edges=tuple(edges),
            )
        )
    return DependencyGraph(root, packages)


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "My_Package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
cli = ["rich>=13.0"]

[build-system]
requires = ["hatchling"]

[dependency-groups]
test = ["pytest>=8.0", {include-group = "lint"}]
lint = ["ruff"]

[tool.uv]
dev-dependencies = ["mypy"]

[tool.uv.sources]
Sibling_Lib = { path = "../sibling-lib" }
shared = { workspace = true }

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
exclude = ["libs/legacy"]
"""
    return tomlkit.parse(content)
