"""Dependency handling utilities.

Provides functions for parsing PEP 508 dependency strings, finding the local
path a dependency points at, and pinning internal workspace dependencies to
exact versions.
"""

from __future__ import annotations

import urllib.parse
from pathlib import Path

from packaging.requirements import InvalidRequirement, Requirement
from packaging.specifiers import SpecifierSet
from packaging.version import InvalidVersion

from .errors import ManifestError

# Placeholders build backends expand to the declaring project's directory
_PROJECT_ROOT = "${PROJECT_ROOT}"
_ROOT_URI = "{root:uri}"


def expand_placeholders(dep_str: str, package_root: Path) -> str:
    """Expand hatch/PDM style root placeholders in a direct reference.

    Examples (package_root = /ws/packages/a):
        "b @ {root:uri}/../b" → "b @ file:///ws/packages/a/../b"
        "b @ file:///${PROJECT_ROOT}/../b" → "b @ file:////ws/packages/a/../b"
    """
    return dep_str.replace(_ROOT_URI, package_root.as_uri()).replace(
        _PROJECT_ROOT, package_root.as_posix()
    )


def parse_requirement(dep_str: str, source: str = "") -> Requirement:
    """Parse a PEP 508 string, reporting failures as ManifestError."""
    try:
        return Requirement(dep_str)
    except InvalidRequirement as exc:
        where = f"{source}: " if source else ""
        raise ManifestError(f"{where}invalid dependency {dep_str!r}: {exc}") from exc


def file_url_path(url: str, package_root: Path) -> Path | None:
    """Return the local path a direct-reference URL points at.

    Relative file URLs ("file:../b") are resolved against package_root.
    Returns None for anything that is not a file URL (git, https, ...).
    """
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme != "file":
        return None
    path_str = urllib.parse.unquote(parsed.path)
    if parsed.netloc and parsed.netloc != "localhost":
        # file://host/share style, leave it to the OS to interpret
        return Path(f"//{parsed.netloc}{path_str}")
    if path_str.startswith("/"):
        # Collapse the extra slashes left by "file:///${PROJECT_ROOT}"
        return Path("/" + path_str.lstrip("/"))
    return package_root / path_str


def pin_dep(dep_str: str, version: str) -> str:
    """Pin a PEP 508 dependency to an exact version.

    Preserves any extras and environment marker in the original dependency
    string, but replaces the version specifier (or direct-reference URL)
    with an exact pin.

    Examples:
        pin_dep("requests>=2.0", "2.31.0") → "requests==2.31.0"
        pin_dep("pkg[extra1,extra2]~=1.0", "1.5.0") → "pkg[extra1,extra2]==1.5.0"
        pin_dep("pkg @ file:../pkg ; os_name == 'nt'", "1.0.0")
            → 'pkg==1.0.0; os_name == "nt"'
    """
    req = Requirement(dep_str)
    # Sort extras alphabetically for consistent output
    extras = f"[{','.join(sorted(req.extras))}]" if req.extras else ""
    marker = f"; {req.marker}" if req.marker else ""
    return f"{req.name}{extras}=={version}{marker}"


def requirement_admits(specifier: str, version: str) -> bool:
    """Check whether a specifier string still accepts version.

    Pre-releases are accepted so that "1.0.0-dev" satisfies ">=0.9".
    Versions that are not valid PEP 440 never match.
    """
    try:
        return SpecifierSet(specifier).contains(version, prereleases=True)
    except InvalidVersion:
        return False
