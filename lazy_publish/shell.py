"""Shell and git utilities.

Provides a simple wrapper around subprocess calls for git operations, plus
output formatting helpers. Progress output goes to stderr so that stdout can
carry the JSON report.
"""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path

from .errors import ConfigError


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Run a git command and return stdout.

    Args:
        *args: Arguments to pass to git (e.g., "diff", "--name-only").
        cwd: Repository directory; defaults to the current directory.
        check: If True (default), raise on non-zero exit. Set to False
               for commands that may legitimately fail (e.g., ref lookup).

    Returns:
        Stripped stdout from the git command.

    Raises:
        ConfigError: If git is not installed or ``cwd`` does not exist.
    """
    try:
        result = subprocess.run(
            ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
        )
    except FileNotFoundError as exc:
        raise ConfigError(f"cannot run git in {cwd or Path.cwd()}: {exc}") from exc
    return result.stdout.strip()


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate the phases of a run in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}", file=sys.stderr)


def info(msg: str) -> None:
    """Print an indented detail line under the current step."""
    print(f"  {msg}", file=sys.stderr)


def warn(msg: str) -> None:
    print(f"  Warning: {msg}", file=sys.stderr)
