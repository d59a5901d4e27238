"""Version parsing and bumping utilities.

Every operation is a pure function from one semver.Version to another.
Pre-release labels follow the "label.counter" convention ("beta.3"); build
metadata is carried through untouched by everything except set_build and
release. Incomplete version strings are padded ("1.0" → "1.0.0").
"""

from __future__ import annotations

import warnings
from enum import Enum

import semver

from .errors import DowngradeWarning, NoPreReleaseError, VersionArgumentError
from .models import Package, VersionDecision


class BumpOp(str, Enum):
    """Version operations that can be requested for a set of packages."""

    PATCH = "bump-patch"
    MINOR = "bump-minor"
    MAJOR = "bump-major"
    BREAKING = "bump-breaking"
    PRE = "bump-pre"
    TO_DEV = "bump-to-dev"
    SET_PRE = "set-pre"
    SET_BUILD = "set-build"
    SET = "set"
    RELEASE = "release"


# Operations that need an argument (label, metadata or version string)
ARGUMENT_OPS = {BumpOp.SET_PRE, BumpOp.SET_BUILD, BumpOp.SET}


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-beta.1+abc" → "1.2.3-beta.1+abc"

    Raises:
        ValueError: If the string is not a semantic version.
    """
    return semver.Version.parse(version_str.strip(), optional_minor_and_patch=True)


def _with_parts(
    version: semver.Version, prerelease: str | None, build: str | None
) -> semver.Version:
    # Round-trip through the parser so invalid labels fail loudly
    text = f"{version.major}.{version.minor}.{version.patch}"
    if prerelease:
        text += f"-{prerelease}"
    if build:
        text += f"+{build}"
    return semver.Version.parse(text)


def pre_label(version: semver.Version) -> str | None:
    """Return the pre-release label without its numeric counter.

    Examples:
        1.0.0-beta.3 → "beta"
        1.0.0-dev → "dev"
        1.0.0 → None
    """
    if not version.prerelease:
        return None
    parts = version.prerelease.split(".")
    if len(parts) > 1 and parts[-1].isdigit():
        parts = parts[:-1]
    return ".".join(parts)


def bump_patch(version: semver.Version) -> semver.Version:
    return version.replace(patch=version.patch + 1, prerelease=None)


def bump_minor(version: semver.Version) -> semver.Version:
    return version.replace(minor=version.minor + 1, patch=0, prerelease=None)


def bump_major(version: semver.Version) -> semver.Version:
    return version.replace(major=version.major + 1, minor=0, patch=0, prerelease=None)


def bump_breaking(version: semver.Version) -> semver.Version:
    """Bump for the next breaking release.

    Before 1.0 the minor version is the breaking axis:
        0.3.1 → 0.4.0
        2.3.1 → 3.0.0
    """
    if version.major > 0:
        return bump_major(version)
    return bump_minor(version)


def set_pre(version: semver.Version, label: str) -> semver.Version:
    """Replace the pre-release with label, without a counter."""
    return _with_parts(version, label, version.build)


def bump_pre(version: semver.Version) -> semver.Version:
    """Increment the pre-release counter, keeping its label.

    Examples:
        1.0.0-beta.3 → 1.0.0-beta.4
        1.0.0-beta → 1.0.0-beta.1
        1.0.0-3 → 1.0.0-4

    Raises:
        NoPreReleaseError: If the version has no pre-release.
    """
    if not version.prerelease:
        raise NoPreReleaseError(str(version))
    parts = version.prerelease.split(".")
    if parts[-1].isdigit():
        parts[-1] = str(int(parts[-1]) + 1)
    else:
        parts.append("1")
    return _with_parts(version, ".".join(parts), version.build)


def bump_to_dev(version: semver.Version, label: str = "dev") -> semver.Version:
    """Bump for the next breaking release and mark it as a pre-release.

    1.2.0 → 2.0.0-dev
    """
    return set_pre(bump_breaking(version), label)


def set_build(version: semver.Version, meta: str) -> semver.Version:
    return _with_parts(version, version.prerelease, meta)


def release(version: semver.Version) -> semver.Version:
    """Drop the pre-release and build metadata: 1.0.0-rc.2+abc → 1.0.0."""
    return version.replace(prerelease=None, build=None)


def set_explicit(current: semver.Version, new: semver.Version) -> semver.Version:
    """Replace the version wholesale.

    Setting a version lower than the current one is allowed but emits a
    DowngradeWarning.
    """
    if new.compare(current) < 0:
        warnings.warn(
            DowngradeWarning(f"Downgrading version from {current} to {new}"),
            stacklevel=2,
        )
    return new


def apply_op(
    version: semver.Version, op: BumpOp, argument: str | None = None
) -> semver.Version:
    """Apply a version operation.

    Args:
        version: Current version.
        op: Operation to apply.
        argument: Label for set-pre and bump-to-dev (defaults to "dev"),
                  metadata for set-build, version string for set.

    Raises:
        NoPreReleaseError: bump-pre on a version without pre-release.
        VersionArgumentError: Missing or invalid argument.
    """
    if op in ARGUMENT_OPS and not argument:
        raise VersionArgumentError(f"{op.value} requires an argument")
    try:
        return _dispatch(version, op, argument)
    except ValueError as exc:
        raise VersionArgumentError(
            f"{op.value}: invalid argument {argument!r}: {exc}"
        ) from exc


def _dispatch(
    version: semver.Version, op: BumpOp, argument: str | None
) -> semver.Version:
    if op is BumpOp.PATCH:
        return bump_patch(version)
    if op is BumpOp.MINOR:
        return bump_minor(version)
    if op is BumpOp.MAJOR:
        return bump_major(version)
    if op is BumpOp.BREAKING:
        return bump_breaking(version)
    if op is BumpOp.PRE:
        return bump_pre(version)
    if op is BumpOp.TO_DEV:
        return bump_to_dev(version, argument or "dev")
    if op is BumpOp.SET_PRE:
        return set_pre(version, argument)
    if op is BumpOp.SET_BUILD:
        return set_build(version, argument)
    if op is BumpOp.SET:
        return set_explicit(version, parse_version(argument))
    return release(version)


def bump(version_str: str, op: BumpOp, argument: str | None = None) -> str:
    """String-in, string-out wrapper around apply_op.

    Examples:
        bump("1.2.3", BumpOp.PATCH) → "1.2.4"
        bump("1.2.0", BumpOp.TO_DEV) → "2.0.0-dev"
    """
    return str(apply_op(parse_version(version_str), op, argument))


def decide(
    package: Package, op: BumpOp, argument: str | None = None
) -> VersionDecision:
    """Compute the VersionDecision for one package. Never touches disk."""
    return VersionDecision(
        name=package.name,
        old=package.version,
        new=bump(package.version, op, argument),
    )
