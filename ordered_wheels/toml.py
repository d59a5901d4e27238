"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying pyproject.toml
files. This is important for maintaining readable, diff-friendly files, and
for handing the packaging tool a manifest that differs from the original
only where it has to.
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name
from tomlkit.exceptions import ParseError

from .errors import ManifestError
from .models import DependencyKind

# The table this tool reads its own settings from
TOOL_TABLE = "ordered-wheels"

# Classifier that makes PyPI refuse an upload
PRIVATE_CLASSIFIER = "Private :: Do Not Upload"


def parse_pyproject(text: str, source: str = "pyproject.toml") -> tomlkit.TOMLDocument:
    """Parse pyproject.toml content, reporting syntax errors as ManifestError."""
    try:
        return tomlkit.parse(text)
    except ParseError as exc:
        raise ManifestError(f"{source}: invalid TOML: {exc}") from exc


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a pyproject.toml file.

    Returns a TOMLDocument that preserves formatting when modified and saved.
    """
    try:
        text = path.read_text()
    except OSError as exc:
        raise ManifestError(f"Cannot read {path}: {exc}") from exc
    return parse_pyproject(text, str(path))


def get_table(doc: Any, dotted: str) -> Any:
    """Walk a dotted key path ("tool.uv.sources"), returning None if absent."""
    node = doc
    for key in dotted.split("."):
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node


def get_project_name(doc: tomlkit.TOMLDocument) -> str:
    """Extract the canonical package name from [project].name.

    Names are normalized per PEP 503 (lowercase, hyphens instead of
    underscores) for consistent comparison.

    Raises:
        ManifestError: If no name is declared.
    """
    name = doc.get("project", {}).get("name")
    if not name:
        raise ManifestError("[project].name is missing")
    return canonicalize_name(str(name))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """Extract version from [project].version, defaulting to '0.0.0'."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def iter_dependency_arrays(
    doc: tomlkit.TOMLDocument,
) -> Iterator[tuple[str, DependencyKind, list[Any]]]:
    """Yield every dependency array of a manifest, live and editable.

    Yields (section, kind, array) for:
    - [project].dependencies (normal)
    - [project].optional-dependencies.* (normal, extras ship with the package)
    - [build-system].requires (build)
    - [dependency-groups].* (development, PEP 735)
    - [tool.uv].dev-dependencies (development, legacy uv spelling)

    Assigning into an array edits the document in place.
    """
    project = doc.get("project", {})
    candidates: list[tuple[str, DependencyKind, Any]] = [
        ("project.dependencies", DependencyKind.NORMAL, project.get("dependencies"))
    ]
    for extra, values in project.get("optional-dependencies", {}).items():
        candidates.append(
            (f"project.optional-dependencies.{extra}", DependencyKind.NORMAL, values)
        )
    candidates.append(
        (
            "build-system.requires",
            DependencyKind.BUILD,
            doc.get("build-system", {}).get("requires"),
        )
    )
    for group, values in doc.get("dependency-groups", {}).items():
        candidates.append(
            (f"dependency-groups.{group}", DependencyKind.DEVELOPMENT, values)
        )
    candidates.append(
        (
            "tool.uv.dev-dependencies",
            DependencyKind.DEVELOPMENT,
            get_table(doc, "tool.uv.dev-dependencies"),
        )
    )
    for section, kind, values in candidates:
        if isinstance(values, list):
            yield section, kind, values


def get_dependency_sections(
    doc: tomlkit.TOMLDocument,
) -> list[tuple[str, DependencyKind, list[str]]]:
    """Collect dependency strings grouped by where they were declared.

    Returns (section, kind, strings) triples in the order of
    iter_dependency_arrays(). PEP 735 {include-group = "..."} entries are
    not dependencies and are skipped.
    """
    return [
        (section, kind, [str(v) for v in values if isinstance(v, str)])
        for section, kind, values in iter_dependency_arrays(doc)
    ]


def get_sources(doc: tomlkit.TOMLDocument) -> dict[str, list[dict[str, Any]]]:
    """Return [tool.uv.sources] keyed by canonical dependency name.

    uv accepts a single source table or a list of them split by marker;
    both come back as a list of entries.
    """
    sources = get_table(doc, "tool.uv.sources") or {}
    result: dict[str, list[dict[str, Any]]] = {}
    for name, source in sources.items():
        entries = source if isinstance(source, list) else [source]
        result[canonicalize_name(name)] = [
            dict(entry) for entry in entries if isinstance(entry, dict)
        ]
    return result


def get_tool_settings(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [tool.ordered-wheels] table, or an empty dict."""
    table = get_table(doc, f"tool.{TOOL_TABLE}")
    return table.unwrap() if isinstance(table, dict) else {}


def is_publishable(doc: tomlkit.TOMLDocument) -> bool:
    """Decide whether a package may be uploaded to the default index.

    A package is kept off the index when it carries the
    "Private :: Do Not Upload" classifier, or when
    [tool.ordered-wheels].publish is false or a list of index names
    (publishing restricted to specific registries is opt-in).
    """
    classifiers = doc.get("project", {}).get("classifiers", [])
    if PRIVATE_CLASSIFIER in [str(c) for c in classifiers]:
        return False
    publish = get_tool_settings(doc).get("publish", True)
    if isinstance(publish, list):
        return False
    return bool(publish)


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract workspace member glob patterns from [tool.uv.workspace].

    These patterns (e.g., "packages/*", "libs/*") define which directories
    contain workspace packages.

    Raises:
        ManifestError: If no workspace members are defined.
    """
    members = get_table(doc, "tool.uv.workspace.members")
    if not members:
        raise ManifestError(
            "No [tool.uv.workspace] members defined in root pyproject.toml"
        )
    return [str(m) for m in members]


def get_workspace_exclude_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract [tool.uv.workspace].exclude patterns (may be empty)."""
    return [str(m) for m in get_table(doc, "tool.uv.workspace.exclude") or []]
