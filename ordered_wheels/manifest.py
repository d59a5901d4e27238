"""Manifest rewriting.

patch_manifest() turns a member's pyproject.toml into the one it is packaged
and published with: internal dependencies are pinned to the version that
will be on the index, path references to sibling packages disappear, and
development dependency groups are dropped. It works on text and never
touches disk; patched_manifest() is the small context manager that puts the
result in place for the packaging tool and restores the original after.

Uses tomlkit so the published manifest keeps the author's formatting.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

from .deps import expand_placeholders, parse_requirement, pin_dep, requirement_admits
from .errors import OrderedWheelsError
from .graph import DependencyGraph
from .models import DependencyKind, ManifestOptions, Package, VersionDecision
from .toml import (
    PRIVATE_CLASSIFIER,
    TOOL_TABLE,
    get_table,
    iter_dependency_arrays,
    parse_pyproject,
)


def _prune_empty(doc: tomlkit.TOMLDocument, dotted: str) -> None:
    """Remove dotted and then its parents, innermost first, while empty."""
    parts = dotted.split(".")
    while parts:
        parent = get_table(doc, ".".join(parts[:-1])) if len(parts) > 1 else doc
        node = parent.get(parts[-1]) if isinstance(parent, dict) else None
        if not isinstance(node, dict) or len(node):
            return
        del parent[parts[-1]]
        parts.pop()


def _remove_dev_dependencies(doc: tomlkit.TOMLDocument) -> None:
    if "dependency-groups" in doc:
        del doc["dependency-groups"]
    uv = get_table(doc, "tool.uv")
    if isinstance(uv, dict) and "dev-dependencies" in uv:
        del uv["dev-dependencies"]
        _prune_empty(doc, "tool.uv")


def _remove_sources(doc: tomlkit.TOMLDocument, names: set[str]) -> None:
    sources = get_table(doc, "tool.uv.sources")
    if not isinstance(sources, dict):
        return
    for key in list(sources.keys()):
        if canonicalize_name(key) in names:
            del sources[key]
    _prune_empty(doc, "tool.uv.sources")


def _remove_publish_markers(doc: tomlkit.TOMLDocument) -> None:
    classifiers = get_table(doc, "project.classifiers")
    if isinstance(classifiers, list):
        for i in reversed(range(len(classifiers))):
            if str(classifiers[i]) == PRIVATE_CLASSIFIER:
                del classifiers[i]
    settings = get_table(doc, f"tool.{TOOL_TABLE}")
    if isinstance(settings, dict) and "publish" in settings:
        del settings["publish"]
        _prune_empty(doc, f"tool.{TOOL_TABLE}")


def _pin_internal(
    doc: tomlkit.TOMLDocument, package: Package, versions: Mapping[str, str]
) -> None:
    for _, _, array in iter_dependency_arrays(doc):
        for i, dep_str in enumerate(array):
            if not isinstance(dep_str, str):
                continue
            expanded = expand_placeholders(str(dep_str), package.root)
            req = parse_requirement(expanded, str(package.manifest_path))
            name = canonicalize_name(req.name)
            if name in versions:
                array[i] = pin_dep(expanded, versions[name])


def patch_manifest(
    package: Package,
    graph: DependencyGraph,
    decisions: Mapping[str, VersionDecision],
    options: ManifestOptions | None = None,
) -> str:
    """Produce the manifest package should be packaged and published with.

    1. Every internal dependency is pinned (==) to the target's decided
       version, or its current version when it has no decision in this run,
       and the path reference to it is removed.
    2. Development dependencies are removed unless options.include_dev_deps.
    3. The markers keeping a package off the index are removed only with
       options.ignore_publish.
    4. The package's own version is set to its decision, if any.

    Args:
        package: Package to patch. Its manifest text is the input.
        graph: Full workspace graph, for current versions of dependencies.
        decisions: Version decisions of this run, keyed by package name.
        options: Rewriter switches.

    Returns:
        The patched pyproject.toml content.
    """
    options = options or ManifestOptions()
    doc = parse_pyproject(package.manifest, str(package.manifest_path))

    if not options.include_dev_deps:
        _remove_dev_dependencies(doc)

    internal = {e.target for e in package.internal_edges}
    versions = {
        name: decisions[name].new if name in decisions else graph[name].version
        for name in internal
    }
    _pin_internal(doc, package, versions)
    _remove_sources(doc, internal)

    if options.ignore_publish:
        _remove_publish_markers(doc)

    if package.name in decisions:
        doc.setdefault("project", tomlkit.table())["version"] = decisions[
            package.name
        ].new

    return tomlkit.dumps(doc)


def rewrite_versions(
    package: Package,
    decisions: Mapping[str, VersionDecision],
    force_update: bool = False,
) -> tuple[str, int]:
    """Apply version decisions to a manifest in the development tree.

    Sets the package's own version if it has a decision, and updates every
    requirement on a re-versioned internal dependency whose specifier no
    longer admits the new version. With force_update every such requirement
    is re-pinned. Path references are kept: this is the working tree, not a
    manifest for publishing. Requirements without a specifier are pinned
    unless they are development dependencies; direct references are left
    alone.

    Returns:
        The new manifest text and the number of updated requirements.
    """
    doc = parse_pyproject(package.manifest, str(package.manifest_path))
    decision = decisions.get(package.name)
    if decision is not None and decision.changed:
        doc.setdefault("project", tomlkit.table())["version"] = decision.new

    internal = {e.target for e in package.internal_edges}
    updates = 0
    for _, kind, array in iter_dependency_arrays(doc):
        for i, dep_str in enumerate(array):
            if not isinstance(dep_str, str):
                continue
            req = parse_requirement(
                expand_placeholders(str(dep_str), package.root),
                str(package.manifest_path),
            )
            name = canonicalize_name(req.name)
            if name not in internal or name not in decisions or req.url:
                continue
            new = decisions[name].new
            if not req.specifier:
                if kind is DependencyKind.DEVELOPMENT:
                    continue
            elif not force_update and requirement_admits(str(req.specifier), new):
                continue
            array[i] = pin_dep(str(dep_str), new)
            updates += 1

    return tomlkit.dumps(doc), updates


def write_versions(
    graph: DependencyGraph,
    decisions: Mapping[str, VersionDecision],
    force_update: bool = False,
) -> dict[str, int]:
    """Persist version decisions across the whole workspace.

    Every member is considered, not just the decided ones, so requirements
    on a bumped package are kept satisfiable everywhere. Only manifests
    whose text actually changes are written.

    Returns:
        Map of rewritten package name → number of requirements updated.
    """
    written: dict[str, int] = {}
    for package in graph:
        text, updates = rewrite_versions(package, decisions, force_update)
        if text != package.manifest:
            package.manifest_path.write_text(text)
            written[package.name] = updates
    return written


def strip_dev_dependencies(text: str, source: str = "pyproject.toml") -> str:
    """Remove [dependency-groups] and [tool.uv].dev-dependencies."""
    doc = parse_pyproject(text, source)
    _remove_dev_dependencies(doc)
    return tomlkit.dumps(doc)


def set_field(text: str, table: str, key: str, value: Any) -> str:
    """Set table.key = value, creating the table if needed.

    Raises:
        OrderedWheelsError: On an attempt to rename a package, or if a part
            of the table path exists but isn't a table.
    """
    if table == "project" and key == "name":
        raise OrderedWheelsError("Renaming packages is not supported")
    doc = parse_pyproject(text)
    node: Any = doc
    for part in table.split("."):
        if part not in node:
            node[part] = tomlkit.table()
        node = node[part]
        if not isinstance(node, dict):
            raise OrderedWheelsError(f"{table} is not a table")
    node[key] = value
    return tomlkit.dumps(doc)


@contextmanager
def patched_manifest(path: Path, content: str) -> Iterator[Path]:
    """Temporarily replace the file at path with content.

    The original bytes are written back when the block exits, whether it
    succeeded or not.
    """
    original = path.read_bytes()
    path.write_text(content)
    try:
        yield path
    finally:
        path.write_bytes(original)
