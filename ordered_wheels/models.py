"""Data models for ordered-wheels.

These Pydantic models represent the core data structures shared by the
workspace reader, the selection and ordering logic, the version engine and
the manifest rewriter. Graph-side models are frozen: a run never mutates a
package in place, version changes live in a separate name → VersionDecision
mapping instead.
"""

from __future__ import annotations

import re
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConflictingCriteriaError


class DependencyKind(str, Enum):
    """Which part of a manifest a dependency was declared in."""

    NORMAL = "normal"
    BUILD = "build"
    DEVELOPMENT = "development"


class DependencyEdge(BaseModel):
    """A single declared dependency of a workspace package.

    Attributes:
        source: Canonical name of the declaring package.
        target: Canonical name of the dependency.
        kind: normal, build or development.
        requirement: PEP 440 specifier as declared (may be empty).
        internal: True when the dependency resolves to a workspace member
                  through a path reference.
        section: Dotted manifest location the dependency was read from,
                 e.g. "project.optional-dependencies.cli".
        raw: The original PEP 508 string.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    target: str
    kind: DependencyKind = DependencyKind.NORMAL
    requirement: str = ""
    internal: bool = False
    section: str = "project.dependencies"
    raw: str = ""


class Package(BaseModel):
    """A single package in the workspace.

    Attributes:
        name: Canonical (PEP 503) package name, unique within the workspace.
        version: Current version string from pyproject.toml.
        path: Path of the package directory relative to the workspace root.
        root: Absolute path of the package directory.
        publish: Whether the package may be uploaded to the default index.
        manifest: Raw pyproject.toml text as read from disk.
        edges: Every declared dependency, internal and external, in
               manifest order.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version: str
    path: str
    root: Path
    publish: bool = True
    manifest: str = ""
    edges: tuple[DependencyEdge, ...] = ()

    @property
    def manifest_path(self) -> Path:
        return self.root / "pyproject.toml"

    @property
    def internal_edges(self) -> list[DependencyEdge]:
        return [e for e in self.edges if e.internal]


class VersionDecision(BaseModel):
    """Records the outcome of a version operation for one package.

    Attributes:
        name: Package the decision applies to.
        old: The version before the operation.
        new: The version after the operation. May equal old.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    old: str
    new: str

    @property
    def changed(self) -> bool:
        return self.old != self.new


class SelectionCriteria(BaseModel):
    """Which packages a run should operate on.

    Explicit package names are mutually exclusive with the pattern based
    criteria (skip, ignore_pre, changed_since).
    """

    packages: list[str] = Field(default_factory=list)
    skip: list[str] = Field(default_factory=list)
    ignore_pre: list[str] = Field(default_factory=list)
    changed_since: str | None = None
    ignore_publish: bool = False
    include_pre_deps: bool = False
    empty_is_error: bool = False

    @field_validator("skip")
    @classmethod
    def _compile_patterns(cls, patterns: list[str]) -> list[str]:
        for pattern in patterns:
            try:
                re.compile(pattern)
            except re.error as exc:
                raise ValueError(f"Invalid skip pattern {pattern!r}: {exc}") from exc
        return patterns

    def check_conflicts(self) -> None:
        """Raise ConflictingCriteriaError if exclusive options were combined."""
        if not self.packages:
            return
        conflicting = [
            flag
            for flag, value in (
                ("--skip", self.skip),
                ("--ignore-pre", self.ignore_pre),
                ("--changed-since", self.changed_since),
            )
            if value
        ]
        if conflicting:
            raise ConflictingCriteriaError(
                "--package is mutually exclusive with " + ", ".join(conflicting)
            )


class ReleasePlan(BaseModel):
    """Packages to process, dependencies strictly before their dependents."""

    model_config = ConfigDict(frozen=True)

    packages: tuple[Package, ...] = ()

    @property
    def names(self) -> list[str]:
        return [p.name for p in self.packages]

    def __len__(self) -> int:
        return len(self.packages)


class ManifestOptions(BaseModel):
    """Switches for the manifest rewriter.

    Attributes:
        include_dev_deps: Keep development dependency groups.
        ignore_publish: Strip the markers that keep a package off the index.
    """

    include_dev_deps: bool = False
    ignore_publish: bool = False


class PackageStatus(BaseModel):
    """Outcome of one package in a multi-package operation."""

    name: str
    status: Literal["ok", "failed", "skipped"]
    message: str = ""


class StatusReport(BaseModel):
    """Per-package outcomes, in processing order."""

    entries: list[PackageStatus] = Field(default_factory=list)

    def ok(self, name: str, message: str = "") -> None:
        self.entries.append(PackageStatus(name=name, status="ok", message=message))

    def failed(self, name: str, message: str) -> None:
        self.entries.append(PackageStatus(name=name, status="failed", message=message))

    def skipped(self, name: str, message: str = "") -> None:
        self.entries.append(
            PackageStatus(name=name, status="skipped", message=message)
        )

    @property
    def failures(self) -> list[PackageStatus]:
        return [e for e in self.entries if e.status == "failed"]

    @property
    def success(self) -> bool:
        return not self.failures
