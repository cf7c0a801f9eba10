"""Change detection: which packages did a diff affect?

A package is "touched" when one of the changed files belongs to it. A file
belongs to the package with the longest directory prefix, so a change in a
nested package never also marks its enclosing package. Files outside every
package touch nothing, unless they match one of the configured global paths
(e.g. a shared lockfile), which touch everything.

A package is "affected" when it is touched or transitively depends on a
touched package: if A depends on B and B changed, A must be rebuilt too.
"""

from __future__ import annotations

from collections.abc import Iterable
from fnmatch import fnmatch
from pathlib import PurePosixPath

from .graph import DependencyGraph
from .models import ChangeMode, ChangeSet
from .vcs import VersionControl

DEFAULT_HEAD = "HEAD"


class PathOwners:
    """Maps repo-relative file paths to the package owning them."""

    def __init__(self, graph: DependencyGraph) -> None:
        # Deepest package paths first so the first match is the longest prefix.
        self._owners = sorted(
            ((_parts(p.path), p.name) for p in graph.packages),
            key=lambda item: len(item[0]),
            reverse=True,
        )

    def owner(self, file_path: str) -> str | None:
        parts = _parts(file_path)
        for prefix, name in self._owners:
            if parts[: len(prefix)] == prefix:
                return name
        return None


def _parts(path: str) -> tuple[str, ...]:
    parts = PurePosixPath(path).parts
    return () if parts == (".",) else parts


def touched_packages(
    graph: DependencyGraph,
    changed_files: Iterable[str],
    global_paths: Iterable[str] = (),
) -> set[str]:
    """Packages directly owning at least one of ``changed_files``."""
    owners = PathOwners(graph)
    patterns = tuple(global_paths)
    touched: set[str] = set()
    for path in changed_files:
        if any(fnmatch(path, p) for p in patterns):
            return {p.name for p in graph.packages}
        owner = owners.owner(path)
        if owner is not None:
            touched.add(owner)
    return touched


def detect(
    graph: DependencyGraph,
    base_ref: str | None,
    head_ref: str | None = None,
    vcs: VersionControl | None = None,
    *,
    global_paths: Iterable[str] = (),
    include_worktree: bool = False,
) -> ChangeSet:
    """Compute the ChangeSet between ``base_ref`` and ``head_ref``.

    Args:
        graph: Dependency graph of the repository.
        base_ref: Base revision. None selects NO_BASE_REF mode, where every
              package counts as changed.
        head_ref: Head revision; defaults to HEAD.
        vcs: Repository access; required unless ``base_ref`` is None.
        global_paths: Patterns of files whose change affects every package.
        include_worktree: Also count staged, unstaged and untracked files.

    Raises:
        RevisionNotFound: If either revision cannot be resolved.
    """
    if base_ref is None:
        everything = frozenset(p.name for p in graph.packages)
        return ChangeSet(
            mode=ChangeMode.NO_BASE_REF, touched=everything, affected=everything
        )
    if vcs is None:
        raise ValueError("a version-control collaborator is required to diff revisions")

    base = vcs.resolve(base_ref)
    head = vcs.resolve(head_ref or DEFAULT_HEAD)
    changed_files = vcs.diff(base, head)
    if include_worktree:
        changed_files |= vcs.worktree_changes()

    touched = touched_packages(graph, changed_files, global_paths)
    return ChangeSet(
        mode=ChangeMode.DIFF,
        base=base,
        head=head,
        changed_files=tuple(sorted(changed_files)),
        touched=frozenset(touched),
        affected=frozenset(graph.reverse_closure(touched)),
    )
