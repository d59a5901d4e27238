"""Workspace discovery.

Reads [tool.uv.workspace] from the root pyproject.toml, loads every member's
pyproject.toml and builds the DependencyGraph. A dependency is internal when
it points at another member's directory: through a path in
[tool.uv.sources], through a file: direct reference, or through a
{ workspace = true } source naming a member. The path decides which member
is meant; the name written in the requirement must agree with it.
"""

from __future__ import annotations

import fnmatch
import glob
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomlkit
from packaging.requirements import Requirement
from packaging.utils import canonicalize_name

from .deps import expand_placeholders, file_url_path, parse_requirement
from .errors import ManifestError
from .graph import DependencyGraph
from .models import DependencyEdge, Package
from .toml import (
    get_dependency_sections,
    get_project_name,
    get_project_version,
    get_sources,
    get_workspace_exclude_globs,
    get_workspace_member_globs,
    is_publishable,
    load_pyproject,
    parse_pyproject,
)
from .versions import parse_version


@dataclass
class _Member:
    """A member manifest read during the first pass."""

    name: str
    root: Path
    text: str
    doc: tomlkit.TOMLDocument


def find_member_dirs(root: Path, root_doc: tomlkit.TOMLDocument) -> list[Path]:
    """Expand [tool.uv.workspace] member globs into package directories.

    The workspace root is itself a member when its pyproject.toml has a
    [project] table. Directories matching an exclude pattern, or without a
    pyproject.toml, are skipped.
    """
    excludes = get_workspace_exclude_globs(root_doc)
    member_dirs: list[Path] = []
    if "project" in root_doc:
        member_dirs.append(root)

    for pattern in get_workspace_member_globs(root_doc):
        for match in sorted(glob.glob(str(root / pattern))):
            p = Path(match).resolve()
            rel = p.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(rel, ex) for ex in excludes):
                continue
            if (p / "pyproject.toml").is_file() and p not in member_dirs:
                member_dirs.append(p)

    if not member_dirs:
        raise ManifestError("No packages found matching workspace members")
    return member_dirs


def _resolve_target(
    member: _Member,
    dep_str: str,
    sources: dict[str, list[dict[str, Any]]],
    by_root: dict[Path, _Member],
    by_name: dict[str, _Member],
) -> tuple[Requirement, str | None]:
    """Parse dep_str and work out which member, if any, it refers to.

    Returns the parsed requirement and the internal target name (None for
    external dependencies).
    """
    req = parse_requirement(
        expand_placeholders(dep_str, member.root), str(member.root / "pyproject.toml")
    )
    name = canonicalize_name(req.name)
    entries = sources.get(name, [])

    refs: list[Path] = []
    if req.url:
        url_ref = file_url_path(req.url, member.root)
        if url_ref is not None:
            refs.append(url_ref)
    else:
        # One entry per marker when the source is a list; every path counts
        refs = [member.root / str(e["path"]) for e in entries if "path" in e]

    if not refs:
        if not req.url and any(e.get("workspace") for e in entries):
            if name not in by_name:
                raise ManifestError(
                    f"{member.name}: {req.name} is declared as a workspace "
                    "source but no workspace member has that name"
                )
            return req, name
        return req, None

    for ref in refs:
        target = by_root.get(ref.resolve())
        if target is None:
            raise ManifestError(
                f"{member.name}: dependency {req.name} points at {ref}, "
                "which is not a workspace member"
            )
        if target.name != name:
            raise ManifestError(
                f"{member.name}: dependency {req.name} points at {ref}, "
                f"which is the workspace member {target.name}"
            )
    return req, name


def _read_edges(
    member: _Member, by_root: dict[Path, _Member], by_name: dict[str, _Member]
) -> tuple[DependencyEdge, ...]:
    sources = get_sources(member.doc)
    edges: list[DependencyEdge] = []
    for section, kind, dep_strings in get_dependency_sections(member.doc):
        for dep_str in dep_strings:
            req, target = _resolve_target(member, dep_str, sources, by_root, by_name)
            name = target or canonicalize_name(req.name)
            # Self-references only pull in other extras of the same package
            if name == member.name:
                continue
            edges.append(
                DependencyEdge(
                    source=member.name,
                    target=name,
                    kind=kind,
                    requirement=str(req.specifier),
                    internal=target is not None,
                    section=section,
                    raw=dep_str,
                )
            )
    return tuple(edges)


def build_graph(root: Path) -> DependencyGraph:
    """Scan the workspace and build its dependency graph.

    Args:
        root: Workspace root directory (holding the root pyproject.toml).

    Returns:
        DependencyGraph over every member package.

    Raises:
        ManifestError: If a manifest is malformed, two members share a name,
            or an internal dependency doesn't resolve to a member.
    """
    root = root.resolve()
    root_doc = load_pyproject(root / "pyproject.toml")

    # First pass: read each member so path references can be resolved
    members: list[_Member] = []
    for d in find_member_dirs(root, root_doc):
        manifest = d / "pyproject.toml"
        text = manifest.read_text()
        doc = root_doc if d == root else parse_pyproject(text, str(manifest))
        try:
            name = get_project_name(doc)
        except ManifestError as exc:
            raise ManifestError(f"{manifest}: {exc}") from exc
        members.append(_Member(name=name, root=d, text=text, doc=doc))

    by_root = {m.root: m for m in members}
    by_name: dict[str, _Member] = {}
    for m in members:
        if m.name in by_name:
            raise ManifestError(
                f"{m.name} found more than once in the workspace "
                f"({by_name[m.name].root}, {m.root})"
            )
        by_name[m.name] = m

    # Second pass: versions, publish flags and dependency edges
    packages: list[Package] = []
    for m in members:
        version = get_project_version(m.doc)
        try:
            parse_version(version)
        except ValueError as exc:
            raise ManifestError(
                f"{m.name}: version {version!r} is not a semantic version"
            ) from exc
        packages.append(
            Package(
                name=m.name,
                version=version,
                path=m.root.relative_to(root).as_posix(),
                root=m.root,
                publish=is_publishable(m.doc),
                manifest=m.text,
                edges=_read_edges(m, by_root, by_name),
            )
        )

    return DependencyGraph(root, packages)
