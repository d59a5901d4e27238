"""Subprocess and terminal helpers for the orchestration layer.

Only pipeline.py talks to the outside world: git for change detection, uv
for building and publishing. Everything it prints goes through step() and
warn() so the phases of a run are easy to follow in CI logs.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run git in the workspace and return its stdout.

    Args:
        *args: Arguments to pass to git (e.g., "diff", "--name-only", ref).
        cwd: Directory to run in, the workspace root for change detection.
        check: Raise CalledProcessError on a non-zero exit (an unknown ref,
               a directory outside a repository).

    Returns:
        Stripped stdout. stderr is captured for the error message.
    """
    result = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return result.stdout.strip()


def run(
    *args: str, cwd: Path | None = None, check: bool = True
) -> subprocess.CompletedProcess[bytes]:
    """Run uv build or uv publish with output streamed to the terminal.

    Args:
        *args: Command and arguments (e.g., "uv", "build", "packages/lib").
        cwd: Directory to run in; the current directory if omitted.
        check: Raise on a non-zero exit. The release loop passes False and
               records the failure against the package instead.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    return subprocess.run(args, cwd=cwd, check=check)


def step(msg: str) -> None:
    """Print a ruled header for a phase (loading, selecting, releasing)."""
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def warn(msg: str) -> None:
    """Print a warning to stderr, e.g. for a --package name not in the workspace."""
    print(f"WARNING: {msg}", file=sys.stderr)
