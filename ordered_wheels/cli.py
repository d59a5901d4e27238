"""CLI entry point for ordered-wheels."""

from __future__ import annotations

import re
import subprocess
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError

from .config import ReleaseConfig, load_config
from .errors import OrderedWheelsError
from .graph import DependencyGraph, to_dot
from .models import ManifestOptions, ReleasePlan, StatusReport
from .pipeline import (
    apply_versions,
    check_packages,
    de_dev_deps,
    load_workspace,
    plan_release,
    release_packages,
    set_fields,
)
from .versions import ARGUMENT_OPS, BumpOp


@contextmanager
def _errors() -> Iterator[None]:
    """Turn library and subprocess errors into clean CLI failures."""
    try:
        yield
    except OrderedWheelsError as exc:
        raise click.ClickException(str(exc)) from exc
    except ValidationError as exc:
        raise click.ClickException(str(exc)) from exc
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or "").strip()
        raise click.ClickException(
            f"{' '.join(map(str, exc.cmd))} failed" + (f": {detail}" if detail else "")
        ) from exc


def _finish(report: StatusReport) -> None:
    """Print a summary line and fail if any package failed."""
    done = sum(1 for e in report.entries if e.status == "ok")
    skipped = sum(1 for e in report.entries if e.status == "skipped")
    click.echo(f"\n{done} ok, {skipped} skipped, {len(report.failures)} failed")
    if not report.success:
        for entry in report.failures:
            click.echo(f"  {entry.name}: {entry.message}", err=True)
        raise click.ClickException(f"{len(report.failures)} package(s) failed")


def selection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add the package selection options shared by every command."""
    options = [
        click.option(
            "-p",
            "--package",
            "packages",
            multiple=True,
            help="Operate on this package only (repeatable).",
        ),
        click.option(
            "-s",
            "--skip",
            multiple=True,
            help="Skip packages whose name matches this regex (repeatable).",
        ),
        click.option(
            "-i",
            "--ignore-pre",
            multiple=True,
            help="Skip packages on this pre-release label (repeatable).",
        ),
        click.option(
            "-c",
            "--changed-since",
            default=None,
            help="Only packages changed since this git ref, plus their dependents.",
        ),
        click.option(
            "--ignore-publish",
            is_flag=True,
            help="Also select packages marked as not publishable.",
        ),
        click.option(
            "--include-pre-deps",
            is_flag=True,
            help="Add dependencies that are still on a pre-release.",
        ),
        click.option(
            "--empty-is-error",
            is_flag=True,
            help="Fail when no package is selected.",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _include_dev_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--include-dev-deps",
        is_flag=True,
        help="Keep development dependencies in packaged manifests.",
    )(func)


def _workspace_command(func: Callable[..., Any]) -> Callable[..., Any]:
    """Load config and graph, build the plan, and pass them to func.

    The wrapped command receives (config, graph, plan, **remaining options).
    """

    @wraps(func)
    @click.pass_context
    def wrapper(
        ctx: click.Context,
        packages: tuple[str, ...],
        skip: tuple[str, ...],
        ignore_pre: tuple[str, ...],
        changed_since: str | None,
        ignore_publish: bool,
        include_pre_deps: bool,
        empty_is_error: bool,
        **kwargs: Any,
    ) -> None:
        root: Path = ctx.obj["root"]
        with _errors():
            config = load_config(root)
            criteria = config.criteria(
                packages=packages,
                skip=skip,
                ignore_pre=ignore_pre,
                changed_since=changed_since,
                ignore_publish=ignore_publish,
                include_pre_deps=include_pre_deps,
                empty_is_error=empty_is_error,
            )
            graph = load_workspace(root)
            include_dev = (
                kwargs.get("include_dev_deps", False) or config.include_dev_deps
            )
            plan, _ = plan_release(graph, criteria, include_dev=include_dev)
            kwargs["ignore_publish"] = criteria.ignore_publish
            func(config, graph, plan, **kwargs)

    return wrapper


def _typed_value(value: str) -> bool | int | str:
    """Read VALUE as a TOML boolean or integer when it spells one."""
    if value in ("true", "false"):
        return value == "true"
    if re.fullmatch(r"[+-]?\d+", value):
        return int(value)
    return value


def _manifest_options(
    config: ReleaseConfig, include_dev_deps: bool, ignore_publish: bool
) -> ManifestOptions:
    return ManifestOptions(
        include_dev_deps=include_dev_deps or config.include_dev_deps,
        ignore_publish=ignore_publish,
    )


@click.group()
@click.version_option(package_name="ordered-wheels")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root (holding the root pyproject.toml).",
)
@click.pass_context
def cli(ctx: click.Context, root: Path) -> None:
    """Release the packages of a uv workspace in dependency order."""
    if not (root / "pyproject.toml").is_file():
        raise click.ClickException(f"No pyproject.toml found in {root.resolve()}.")
    ctx.ensure_object(dict)
    ctx.obj["root"] = root.resolve()


@cli.command("to-release")
@selection_options
@click.option(
    "--dot-graph",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the selected subgraph in Graphviz dot format here.",
)
@_workspace_command
def to_release(
    config: ReleaseConfig,
    graph: DependencyGraph,
    plan: ReleasePlan,
    dot_graph: Path | None,
    ignore_publish: bool,
) -> None:
    """Show the packages that would be released, in order."""
    if dot_graph is not None:
        dot_graph.write_text(to_dot(graph, plan.names))
        click.echo(f"✓ Wrote dependency graph to {dot_graph}")


@cli.command()
@selection_options
@_include_dev_option
@click.option(
    "--build", is_flag=True, help="Also build every package with its patched manifest."
)
@_workspace_command
def check(
    config: ReleaseConfig,
    graph: DependencyGraph,
    plan: ReleasePlan,
    include_dev_deps: bool,
    build: bool,
    ignore_publish: bool,
) -> None:
    """Check that the selected packages are ready to be published."""
    options = _manifest_options(config, include_dev_deps, ignore_publish)
    _finish(check_packages(graph, plan, options, build=build))


@cli.command()
@selection_options
@_include_dev_option
@click.option("--dry-run", is_flag=True, help="Show what would happen, change nothing.")
@click.option("--no-check", is_flag=True, help="Skip the metadata check.")
@click.option("--index", default=None, help="Index to publish to (uv publish --index).")
@click.option(
    "--token",
    envvar="UV_PUBLISH_TOKEN",
    default=None,
    help="Token for the index. Defaults to $UV_PUBLISH_TOKEN.",
)
@_workspace_command
def release(
    config: ReleaseConfig,
    graph: DependencyGraph,
    plan: ReleasePlan,
    include_dev_deps: bool,
    dry_run: bool,
    no_check: bool,
    index: str | None,
    token: str | None,
    ignore_publish: bool,
) -> None:
    """Build and publish the selected packages in dependency order."""
    options = _manifest_options(config, include_dev_deps, ignore_publish)
    report = release_packages(
        graph,
        plan,
        options,
        dry_run=dry_run,
        check=not no_check,
        index=index or config.index,
        token=token,
    )
    _finish(report)


@cli.command()
@click.argument("op", type=click.Choice([op.value for op in BumpOp]))
@click.argument("argument", required=False)
@selection_options
@click.option(
    "--force-update",
    is_flag=True,
    help="Re-pin dependents even when their requirement still matches.",
)
@_workspace_command
def version(
    config: ReleaseConfig,
    graph: DependencyGraph,
    plan: ReleasePlan,
    op: str,
    argument: str | None,
    force_update: bool,
    ignore_publish: bool,
) -> None:
    """Change the version of the selected packages.

    \b
    OP is one of:
      bump-patch, bump-minor, bump-major   classic semver bumps
      bump-breaking                        major, or minor before 1.0
      bump-pre                             next pre-release (beta.3 → beta.4)
      bump-to-dev [LABEL]                  breaking bump + pre-release
      set-pre LABEL, set-build META        replace pre-release or build
      set VERSION                          set an explicit version
      release                              drop pre-release and build
    """
    bump_op = BumpOp(op)
    if bump_op in ARGUMENT_OPS and not argument:
        raise click.UsageError(f"{op} requires an argument")
    _finish(apply_versions(graph, plan, bump_op, argument, force_update))


@cli.command("de-dev-deps")
@selection_options
@_workspace_command
def de_dev_deps_command(
    config: ReleaseConfig,
    graph: DependencyGraph,
    plan: ReleasePlan,
    ignore_publish: bool,
) -> None:
    """Remove development dependencies from the selected manifests."""
    _finish(de_dev_deps(plan))


@cli.command("set")
@click.argument("table")
@click.argument("key")
@click.argument("value")
@selection_options
@_workspace_command
def set_command(
    config: ReleaseConfig,
    graph: DependencyGraph,
    plan: ReleasePlan,
    table: str,
    key: str,
    value: str,
    ignore_publish: bool,
) -> None:
    """Set TABLE.KEY = VALUE in the selected manifests.

    VALUE is written as a boolean for true or false, as an integer when it
    is one, and as a string otherwise.

    Example: ordered-wheels set project requires-python ">=3.10"
    """
    _finish(set_fields(plan, table, key, _typed_value(value)))
