"""Workspace-level defaults from [tool.ordered-wheels].

The root pyproject.toml may carry defaults for the command line options:

    [tool.ordered-wheels]
    skip = ["^example-"]
    ignore-pre = ["dev"]
    include-dev-deps = false
    index = "testpypi"

Command line flags win over booleans set here; list options given on the
command line are appended to the configured lists.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ManifestError
from .models import SelectionCriteria
from .toml import get_tool_settings, load_pyproject


class ReleaseConfig(BaseModel):
    """Defaults read from the workspace root manifest."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    skip: list[str] = Field(default_factory=list)
    ignore_pre: list[str] = Field(default_factory=list, alias="ignore-pre")
    include_dev_deps: bool = Field(default=False, alias="include-dev-deps")
    include_pre_deps: bool = Field(default=False, alias="include-pre-deps")
    ignore_publish: bool = Field(default=False, alias="ignore-publish")
    empty_is_error: bool = Field(default=False, alias="empty-is-error")
    index: str | None = None

    def criteria(
        self,
        packages: list[str] | tuple[str, ...] = (),
        skip: list[str] | tuple[str, ...] = (),
        ignore_pre: list[str] | tuple[str, ...] = (),
        changed_since: str | None = None,
        ignore_publish: bool = False,
        include_pre_deps: bool = False,
        empty_is_error: bool = False,
    ) -> SelectionCriteria:
        """Merge command line selection options over these defaults.

        Configured skip and ignore-pre lists only apply when no explicit
        package names are given, since the two are mutually exclusive.
        """
        explicit = list(packages)
        return SelectionCriteria(
            packages=explicit,
            skip=[*([] if explicit else self.skip), *skip],
            ignore_pre=[*([] if explicit else self.ignore_pre), *ignore_pre],
            changed_since=changed_since,
            ignore_publish=ignore_publish or self.ignore_publish,
            include_pre_deps=include_pre_deps or self.include_pre_deps,
            empty_is_error=empty_is_error or self.empty_is_error,
        )


def load_config(root: Path) -> ReleaseConfig:
    """Read ReleaseConfig from root/pyproject.toml.

    A missing table gives the defaults.

    Raises:
        ManifestError: If the table holds values of the wrong type.
    """
    settings = get_tool_settings(load_pyproject(root / "pyproject.toml"))
    try:
        return ReleaseConfig.model_validate(settings)
    except ValidationError as exc:
        raise ManifestError(f"Invalid [tool.ordered-wheels] settings: {exc}") from exc
