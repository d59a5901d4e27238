"""Release orchestration: discover → select → order → patch → build → publish.

This module drives the pure core (workspace, selection, graph, versions,
manifest) and owns every side effect:
1. Discover all packages in the workspace
2. Detect which packages changed since a git reference
3. Select and order the packages to operate on
4. Apply version operations to the development tree
5. Check that each package packages cleanly with its rewritten manifest
6. Publish each package in dependency order

The plan is processed strictly in order. A release stops at the first
package that fails to build or upload; packages already published stay
published.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

from .deps import expand_placeholders, parse_requirement
from .errors import NoPreReleaseError, OrderedWheelsError
from .graph import DependencyGraph, order
from .manifest import (
    patch_manifest,
    patched_manifest,
    set_field,
    strip_dev_dependencies,
    write_versions,
)
from .models import (
    DependencyKind,
    ManifestOptions,
    Package,
    ReleasePlan,
    SelectionCriteria,
    StatusReport,
    VersionDecision,
)
from .selection import Selection, select
from .shell import git, run, step, warn
from .toml import get_table, parse_pyproject
from .versions import BumpOp, decide
from .workspace import build_graph


def load_workspace(root: Path) -> DependencyGraph:
    """Scan the workspace and print what was found."""
    step("Discovering workspace packages")
    graph = build_graph(root)
    for package in graph:
        deps = graph.dependencies(package.name, include_dev=True)
        arrow = f" → [{', '.join(deps)}]" if deps else ""
        private = "" if package.publish else " (private)"
        print(f"  {package.name} {package.version} ({package.path}){private}{arrow}")
    return graph


def changed_files(root: Path, ref: str) -> list[str]:
    """List files changed between ref and HEAD, relative to root."""
    return git("diff", "--name-only", ref, "HEAD", cwd=root).splitlines()


def plan_release(
    graph: DependencyGraph, criteria: SelectionCriteria, include_dev: bool = False
) -> tuple[ReleasePlan, Selection]:
    """Select packages and put them in release order.

    Explicitly named packages that are not in the workspace are reported
    as warnings, not errors.
    """
    step("Selecting packages")
    files = None
    if criteria.changed_since:
        files = changed_files(graph.root, criteria.changed_since)
        print(f"  {len(files)} files changed since {criteria.changed_since}")

    selection = select(graph, criteria, files)
    for name in selection.unknown:
        warn(f"{name} is not a workspace package, ignoring")

    plan = order(graph, selection.packages, include_dev=include_dev)
    if not plan.packages:
        print("  No packages selected")
    for package in plan.packages:
        print(f"  {package.name} {package.version}")
    return plan, selection


def decide_versions(
    plan: ReleasePlan, op: BumpOp, argument: str | None = None
) -> tuple[dict[str, VersionDecision], StatusReport]:
    """Compute version decisions for every planned package.

    A package whose version cannot take the operation (bump-pre without a
    pre-release) is recorded as failed and left out of the decisions; the
    others still get theirs.
    """
    decisions: dict[str, VersionDecision] = {}
    report = StatusReport()
    for package in plan.packages:
        try:
            decision = decide(package, op, argument)
        except NoPreReleaseError as exc:
            report.failed(package.name, str(exc))
            continue
        decisions[package.name] = decision
        if decision.changed:
            report.ok(package.name, f"{decision.old} → {decision.new}")
        else:
            report.skipped(package.name, f"already {decision.new}")
    return decisions, report


def apply_versions(
    graph: DependencyGraph,
    plan: ReleasePlan,
    op: BumpOp,
    argument: str | None = None,
    force_update: bool = False,
) -> StatusReport:
    """Run a version operation and write the results to disk.

    Every workspace member with a requirement on a re-versioned package is
    updated too, when that requirement would no longer accept the new
    version (always, with force_update).
    """
    step(f"Applying {op.value}")
    decisions, report = decide_versions(plan, op, argument)
    for entry in report.entries:
        print(f"  {entry.name}: {entry.message}")

    changed = {name: d for name, d in decisions.items() if d.changed}
    written = write_versions(graph, changed, force_update)
    for name, updates in written.items():
        if updates:
            print(f"  {name}: updated {updates} requirement(s)")
    return report


def de_dev_deps(plan: ReleasePlan) -> StatusReport:
    """Remove development dependencies from each planned manifest on disk."""
    step("Removing development dependencies")
    report = StatusReport()
    for package in plan.packages:
        text = strip_dev_dependencies(package.manifest, str(package.manifest_path))
        if text == package.manifest:
            report.skipped(package.name, "no development dependencies")
            continue
        package.manifest_path.write_text(text)
        print(f"  {package.name}")
        report.ok(package.name)
    return report


def set_fields(
    plan: ReleasePlan, table: str, key: str, value: bool | int | str
) -> StatusReport:
    """Set table.key = value in each planned manifest on disk."""
    step(f"Setting {table}.{key}")
    report = StatusReport()
    for package in plan.packages:
        package.manifest_path.write_text(
            set_field(package.manifest, table, key, value)
        )
        print(f"  {package.name}: {key} = {value!r}")
        report.ok(package.name)
    return report


def check_metadata(package: Package) -> list[str]:
    """Return the index-relevant metadata problems of a package.

    A package must have a description, a license (expression, table or
    license files) and at least one project URL. Its published dependencies
    may not be direct references to something other than a workspace
    member, since an index refuses uploads carrying them.
    """
    doc = parse_pyproject(package.manifest, str(package.manifest_path))
    problems: list[str] = []
    if not str(get_table(doc, "project.description") or "").strip():
        problems.append("missing [project].description")
    license_files = get_table(doc, "project.license-files")
    if not (get_table(doc, "project.license") or license_files):
        problems.append("missing [project].license or license-files")
    if not get_table(doc, "project.urls"):
        problems.append("missing [project.urls]")
    direct = _external_direct_references(package)
    if direct:
        problems.append(f"dependencies defined by URL: {', '.join(direct)}")
    return problems


def _external_direct_references(package: Package) -> list[str]:
    names: list[str] = []
    for edge in package.edges:
        if edge.internal or edge.kind is not DependencyKind.NORMAL:
            continue
        req = parse_requirement(expand_placeholders(edge.raw, package.root))
        if req.url and edge.target not in names:
            names.append(edge.target)
    return names


def _build(package: Package, content: str, out_dir: Path) -> bool:
    with patched_manifest(package.manifest_path, content):
        result = run(
            "uv", "build", str(package.root), "--out-dir", str(out_dir), check=False
        )
    return result.returncode == 0


def check_packages(
    graph: DependencyGraph,
    plan: ReleasePlan,
    options: ManifestOptions | None = None,
    build: bool = False,
) -> StatusReport:
    """Check that every planned package is ready to be published.

    Verifies metadata and that the manifest can be rewritten. With build,
    also packages each one with its rewritten manifest into a throwaway
    directory. Every package is checked; failures don't stop the others.
    """
    step(f"Checking {len(plan)} packages")
    report = StatusReport()
    for package in plan.packages:
        problems = check_metadata(package)
        try:
            content = patch_manifest(package, graph, {}, options)
        except OrderedWheelsError as exc:
            problems.append(str(exc))
            content = None

        if content is not None and build:
            print(f"\n  {package.name} ({package.path})")
            with tempfile.TemporaryDirectory() as tmp:
                if not _build(package, content, Path(tmp)):
                    problems.append("build failed")

        if problems:
            for problem in problems:
                print(f"  {package.name}: {problem}")
            report.failed(package.name, "; ".join(problems))
        else:
            print(f"  {package.name}: ok")
            report.ok(package.name)
    return report


def release_packages(
    graph: DependencyGraph,
    plan: ReleasePlan,
    options: ManifestOptions | None = None,
    *,
    dry_run: bool = False,
    check: bool = True,
    index: str | None = None,
    token: str | None = None,
) -> StatusReport:
    """Build and publish the planned packages in order.

    Each package is built with its rewritten manifest in place, then its
    artifacts are uploaded with uv publish. Packages that may not be
    uploaded are skipped unless options.ignore_publish. The first build or
    upload failure stops the run.

    Args:
        graph: Full workspace graph.
        plan: Packages to release, in order.
        options: Manifest rewriter switches.
        dry_run: Compute and print everything, but don't build or upload.
        check: Verify metadata before building.
        index: Name of the index to publish to (uv publish --index).
        token: Token to authenticate with (uv publish --token).
    """
    options = options or ManifestOptions()
    step(f"Releasing {len(plan)} packages" + (" (dry run)" if dry_run else ""))
    report = StatusReport()
    dist = graph.root / "dist"

    for package in plan.packages:
        if not package.publish and not options.ignore_publish:
            print(f"  {package.name}: not publishable, skipping")
            report.skipped(package.name, "not publishable")
            continue

        if check:
            problems = check_metadata(package)
            if problems:
                report.failed(package.name, "; ".join(problems))
                warn(f"{package.name}: {'; '.join(problems)}")
                break

        content = patch_manifest(package, graph, {}, options)
        if dry_run:
            print(f"  {package.name} {package.version}: would publish")
            report.ok(package.name, "dry run")
            continue

        print(f"\n  {package.name} {package.version} ({package.path})")
        out_dir = dist / package.name
        shutil.rmtree(out_dir, ignore_errors=True)
        if not _build(package, content, out_dir):
            report.failed(package.name, "build failed")
            warn(f"Failed to build {package.name}")
            break

        artifacts = sorted(str(p) for p in out_dir.iterdir() if p.is_file())
        args = ["uv", "publish", *artifacts]
        if index:
            args += ["--index", index]
        if token:
            args += ["--token", token]
        if run(*args, cwd=graph.root, check=False).returncode != 0:
            report.failed(package.name, "upload failed")
            warn(f"Failed to publish {package.name}")
            break
        report.ok(package.name, package.version)

    return report
