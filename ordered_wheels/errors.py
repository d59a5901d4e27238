"""Exceptions raised by ordered-wheels.

Every error derives from OrderedWheelsError so the CLI can turn any of them
into a clean exit. DowngradeWarning is a warning category, not an error: it
is emitted through the warnings module and the operation carries on.
"""

from __future__ import annotations

from collections.abc import Sequence


class OrderedWheelsError(Exception):
    """Base class for all ordered-wheels errors."""


class ManifestError(OrderedWheelsError):
    """A member manifest is malformed or references an unknown path."""


class ConflictingCriteriaError(OrderedWheelsError):
    """Mutually exclusive selection options were combined."""


class EmptySelectionError(OrderedWheelsError):
    """No package matched the selection and that was requested to be fatal."""


class CyclicDependencyError(OrderedWheelsError):
    """The packages to release depend on each other in a loop.

    Attributes:
        cycle: Package names along the cycle, in dependency order. The first
               package depends on the second, and so on; the last depends
               on the first.
    """

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = list(cycle)
        path = " → ".join([*self.cycle, self.cycle[0]]) if self.cycle else ""
        super().__init__(f"Dependency cycle detected: {path}")


class NoPreReleaseError(OrderedWheelsError):
    """A pre-release bump was requested on a version without a pre-release."""

    def __init__(self, version: str) -> None:
        self.version = version
        super().__init__(f"Version {version} has no pre-release to bump")


class DowngradeWarning(UserWarning):
    """An explicitly set version is lower than the current one."""


class VersionArgumentError(OrderedWheelsError, ValueError):
    """A version operation was given a missing or malformed argument."""
