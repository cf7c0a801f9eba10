"""Workspace scanner: find every package in the repository.

Walks the repository depth-first and classifies each directory holding a
pyproject.toml:

- listed by an ancestor's [tool.uv.workspace].members → member
- declaring [tool.uv.workspace] itself → workspace root
- anything else → standalone (a workspace of one)

Scanning continues below every package, so a package nested inside another
without being listed as a member is standalone. A directory containing the
sentinel file is still scanned and only flagged as excluded, because other
packages may depend on it.

Invalid manifests are collected as per-path errors; the rest of the tree is
still scanned.
"""

from __future__ import annotations

import glob
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError
from tomlkit.exceptions import TOMLKitError

from .config import Settings
from .deps import declared_dependency_names
from .errors import ManifestParseError
from .models import Channel, ChannelConfig, Package, PackageRole, ScanError, Workspace
from .toml import (
    get_all_dependency_strings,
    get_project_name,
    get_project_version,
    get_publish_tables,
    get_workspace_exclude_globs,
    get_workspace_member_globs,
    has_project_table,
    is_workspace_root,
    load_pyproject,
)
from .versions import parse_version

MANIFEST = "pyproject.toml"


class ScanResult(BaseModel):
    """Everything the scanner found, each sequence ordered by path."""

    model_config = ConfigDict(frozen=True)

    workspaces: tuple[Workspace, ...] = ()
    packages: tuple[Package, ...] = ()
    errors: tuple[ScanError, ...] = ()

    def package(self, name: str) -> Package:
        for pkg in self.packages:
            if pkg.name == name:
                return pkg
        raise KeyError(name)


@dataclass
class _ScanState:
    root: Path
    settings: Settings
    # repo-relative member directory → repo-relative workspace root directory
    member_of: dict[str, str] = field(default_factory=dict)
    packages: list[Package] = field(default_factory=list)
    errors: list[ScanError] = field(default_factory=list)

    def fail(self, error: ManifestParseError) -> None:
        self.errors.append(
            ScanError(path=error.path, kind=error.kind, message=error.reason)
        )


def scan(root: Path, settings: Settings | None = None) -> ScanResult:
    """Scan ``root`` for packages and workspaces.

    Args:
        root: Repository root directory.
        settings: Ignore patterns, sentinel name and dependency-group
              handling; defaults apply when None.

    Returns:
        ScanResult with workspaces, packages and per-path errors, each in
        lexicographic path order.
    """
    state = _ScanState(root=root.resolve(), settings=settings or Settings())
    _walk(state, state.root)

    packages = _drop_duplicates(state)
    workspaces = _group_workspaces(packages)
    return ScanResult(
        workspaces=tuple(workspaces),
        packages=tuple(packages),
        errors=tuple(sorted(state.errors, key=lambda e: (e.path, e.kind))),
    )


def relative_path(root: Path, directory: Path) -> str:
    """POSIX path of ``directory`` relative to ``root``; "." for the root."""
    rel = directory.relative_to(root).as_posix()
    return rel or "."


def _is_ignored(rel: str, name: str, patterns: tuple[str, ...]) -> bool:
    return any(fnmatch(name, p) or fnmatch(rel, p) for p in patterns)


def _walk(state: _ScanState, directory: Path) -> None:
    if (directory / MANIFEST).is_file():
        try:
            _read_manifest(state, directory)
        except ManifestParseError as exc:
            state.fail(exc)

    for child in sorted(directory.iterdir()):
        if not child.is_dir() or child.is_symlink():
            continue
        rel = relative_path(state.root, child)
        if _is_ignored(rel, child.name, state.settings.ignore):
            continue
        _walk(state, child)


def _read_manifest(state: _ScanState, directory: Path) -> None:
    rel = relative_path(state.root, directory)
    try:
        doc = load_pyproject(directory / MANIFEST)
    except (TOMLKitError, UnicodeDecodeError) as exc:
        raise ManifestParseError(rel, f"invalid TOML: {exc}") from exc

    workspace_root = state.member_of.get(rel)
    declares_members = is_workspace_root(doc)

    if declares_members and workspace_root is None:
        _register_members(state, directory, rel, doc)
    elif declares_members:
        state.fail(
            ManifestParseError(
                rel,
                f"nested workspace inside {workspace_root!r}; treated as a member",
                kind="nested_workspace",
            )
        )

    if not has_project_table(doc):
        if workspace_root is not None:
            raise ManifestParseError(rel, "workspace member has no [project] table")
        # Virtual workspace roots and tool-settings-only manifests are not
        # packages.
        return

    name = get_project_name(doc, directory.name)
    version = get_project_version(doc)
    try:
        parse_version(version)
    except ValueError as exc:
        raise ManifestParseError(rel, f"invalid version {version!r}") from exc
    try:
        dep_strs = get_all_dependency_strings(
            doc, include_groups=not state.settings.ignore_dev_dependencies
        )
        dependencies = declared_dependency_names(dep_strs, name)
    except ValueError as exc:
        raise ManifestParseError(rel, str(exc)) from exc

    if workspace_root is not None:
        role, workspace = PackageRole.MEMBER, workspace_root
    elif declares_members:
        role, workspace = PackageRole.ROOT, rel
    else:
        role, workspace = PackageRole.STANDALONE, rel

    state.packages.append(
        Package(
            name=name,
            path=rel,
            version=version,
            dependencies=dependencies,
            channels=_read_channels(rel, doc),
            excluded=(directory / state.settings.sentinel).exists(),
            role=role,
            workspace=workspace,
        )
    )


def _register_members(state: _ScanState, directory: Path, rel: str, doc) -> None:
    """Expand member globs (minus excludes) relative to the workspace root."""
    excluded: set[Path] = set()
    for pattern in get_workspace_exclude_globs(doc):
        excluded.update(Path(m).resolve() for m in glob.glob(str(directory / pattern)))

    for pattern in get_workspace_member_globs(doc):
        for match in sorted(glob.glob(str(directory / pattern))):
            member_dir = Path(match).resolve()
            if member_dir == directory or member_dir in excluded:
                continue
            if not (member_dir / MANIFEST).is_file():
                continue
            if not member_dir.is_relative_to(directory):
                continue
            state.member_of.setdefault(relative_path(state.root, member_dir), rel)


def _read_channels(rel: str, doc) -> dict[Channel, ChannelConfig]:
    channels: dict[Channel, ChannelConfig] = {}
    for key, table in get_publish_tables(doc).items():
        try:
            channel = Channel(key)
        except ValueError as exc:
            known = ", ".join(c.value for c in Channel)
            raise ManifestParseError(
                rel, f"unknown publish channel {key!r} (expected one of: {known})"
            ) from exc
        try:
            config = ChannelConfig.model_validate(table)
        except ValidationError as exc:
            raise ManifestParseError(rel, f"invalid {key} publish settings: {exc}") from exc
        if config.publish:
            channels[channel] = config
    return channels


def _drop_duplicates(state: _ScanState) -> list[Package]:
    """Keep the first package (by path) for each name; report the rest."""
    seen: dict[str, str] = {}
    packages: list[Package] = []
    for pkg in sorted(state.packages, key=lambda p: p.path):
        if pkg.name in seen:
            state.fail(
                ManifestParseError(
                    pkg.path,
                    f"package name {pkg.name!r} already used by {seen[pkg.name]!r}",
                    kind="duplicate_package",
                )
            )
            continue
        seen[pkg.name] = pkg.path
        packages.append(pkg)
    return packages


def _group_workspaces(packages: list[Package]) -> list[Workspace]:
    roots: dict[str, str | None] = {}
    members: dict[str, list[str]] = {}
    for pkg in packages:
        if pkg.role is PackageRole.MEMBER:
            members.setdefault(pkg.workspace, []).append(pkg.name)
            roots.setdefault(pkg.workspace, None)
        else:
            roots[pkg.workspace] = pkg.name
            members.setdefault(pkg.workspace, [])

    # Virtual roots only appear through their members; one whose members all
    # failed to scan owns nothing and is dropped.
    workspaces = [
        Workspace(path=path, root=roots[path], members=tuple(members[path]))
        for path in roots
    ]
    return sorted(workspaces, key=lambda w: w.path)
