"""Version-control collaborator used by change detection.

The change detector only needs two things from the repository: turning a
reference into a commit, and listing files changed between two commits.
``GitCLI`` provides both through the ``git`` binary.

CI jobs usually check out a shallow clone, so the base revision of a pull
request may be missing locally. When a reference does not resolve in a shallow
clone, it is fetched once at ``fetch_depth`` before giving up.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Protocol

from .errors import RevisionNotFound
from .shell import git, info


class VersionControl(Protocol):
    def resolve(self, ref: str) -> str:
        """Return the commit id for ``ref`` or raise RevisionNotFound."""
        ...

    def diff(self, base: str, head: str) -> set[str]:
        """Repo-relative paths changed between two commits."""
        ...

    def worktree_changes(self) -> set[str]:
        """Staged, unstaged and untracked paths relative to HEAD."""
        ...


class GitCLI:
    """VersionControl implementation backed by the git command line."""

    def __init__(self, repo: Path, *, fetch_depth: int = 50, remote: str = "origin") -> None:
        self.repo = repo
        self.fetch_depth = fetch_depth
        self.remote = remote

    def _git(self, *args: str, check: bool = True) -> str:
        return git(*args, cwd=self.repo, check=check)

    def _rev_parse(self, ref: str) -> str:
        return self._git("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", check=False)

    def is_shallow(self) -> bool:
        return self._git("rev-parse", "--is-shallow-repository", check=False) == "true"

    def resolve(self, ref: str) -> str:
        sha = self._rev_parse(ref)
        if sha:
            return sha
        if not self.is_shallow():
            raise RevisionNotFound(ref)

        info(f"{ref}: not in shallow clone, fetching (depth {self.fetch_depth})")
        try:
            self._git("fetch", "--no-tags", f"--depth={self.fetch_depth}", self.remote, ref)
        except subprocess.CalledProcessError as exc:
            raise RevisionNotFound(ref, (exc.stderr or "").strip()) from exc
        sha = self._rev_parse(ref) or self._rev_parse("FETCH_HEAD")
        if not sha:
            raise RevisionNotFound(ref, "not found after fetching")
        return sha

    def diff(self, base: str, head: str) -> set[str]:
        # --no-renames reports a rename as a deletion plus an addition, so both
        # the old and the new location count as changed.
        output = self._git("diff", "--name-only", "--no-renames", "-z", base, head)
        return _split_nul(output)

    def worktree_changes(self) -> set[str]:
        tracked = self._git("diff", "--name-only", "--no-renames", "-z", "HEAD")
        untracked = self._git("ls-files", "--others", "--exclude-standard", "-z")
        return _split_nul(tracked) | _split_nul(untracked)


def _split_nul(output: str) -> set[str]:
    return {p for p in output.split("\0") if p}
