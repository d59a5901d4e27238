"""Tests for ordered_wheels.deps."""

from __future__ import annotations

from pathlib import Path

import pytest

from ordered_wheels.deps import (
    expand_placeholders,
    file_url_path,
    parse_requirement,
    pin_dep,
    requirement_admits,
)
from ordered_wheels.errors import ManifestError


class TestParseRequirement:
    def test_invalid_is_manifest_error(self) -> None:
        with pytest.raises(ManifestError, match="a/pyproject.toml: invalid dependency"):
            parse_requirement("not a >= requirement !!", "a/pyproject.toml")

    def test_keeps_extras_and_marker(self) -> None:
        req = parse_requirement("My_Pkg[cli]>=1.0; python_version >= '3.10'")
        assert req.name == "My_Pkg"
        assert req.extras == {"cli"}
        assert str(req.specifier) == ">=1.0"
        assert req.marker is not None


class TestExpandPlaceholders:
    def test_root_uri(self) -> None:
        result = expand_placeholders("b @ {root:uri}/../b", Path("/ws/packages/a"))
        assert result == "b @ file:///ws/packages/a/../b"

    def test_project_root(self) -> None:
        result = expand_placeholders(
            "b @ file:///${PROJECT_ROOT}/../b", Path("/ws/packages/a")
        )
        assert result == "b @ file:////ws/packages/a/../b"

    def test_plain_requirement_untouched(self) -> None:
        assert expand_placeholders("b>=1.0", Path("/ws")) == "b>=1.0"


class TestFileUrlPath:
    def test_absolute(self) -> None:
        assert file_url_path("file:///ws/packages/b", Path("/x")) == Path(
            "/ws/packages/b"
        )

    def test_extra_slashes_collapsed(self) -> None:
        assert file_url_path("file:////ws/packages/b", Path("/x")) == Path(
            "/ws/packages/b"
        )

    def test_relative_to_package_root(self) -> None:
        assert file_url_path("file:../b", Path("/ws/packages/a")) == Path(
            "/ws/packages/a/../b"
        )

    def test_non_file_url(self) -> None:
        assert file_url_path("git+https://example.com/b.git", Path("/ws")) is None


class TestPinDep:
    def test_dep_with_existing_version_bound(self) -> None:
        assert pin_dep("requests>=2.0,<3.0", "2.31.0") == "requests==2.31.0"

    def test_preserves_multiple_extras_sorted(self) -> None:
        assert pin_dep("pkg[z,a,m]>=1.0", "3.0.0") == "pkg[a,m,z]==3.0.0"

    def test_drops_url_keeps_marker(self) -> None:
        result = pin_dep("pkg @ file:../pkg ; os_name == 'nt'", "1.0.0")
        assert result == 'pkg==1.0.0; os_name == "nt"'

    def test_pre_release_version(self) -> None:
        assert pin_dep("pkg", "2.0.0-dev") == "pkg==2.0.0-dev"


class TestRequirementAdmits:
    def test_admits(self) -> None:
        assert requirement_admits(">=1.0,<2.0", "1.5.0")

    def test_rejects(self) -> None:
        assert not requirement_admits(">=1.0,<2.0", "2.0.0")

    def test_pre_release_admitted(self) -> None:
        assert requirement_admits(">=1.0", "2.0.0-dev")

    def test_invalid_version_never_matches(self) -> None:
        assert not requirement_admits(">=1.0", "2.0.0-alpha-x.1")
