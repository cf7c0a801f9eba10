"""Check pipeline: discover → diff → check registries → report.

This module wires the stages together:
1. Scan the repository for packages and workspaces
2. Build the dependency graph (fails on cycles)
3. Detect which packages changed between two revisions
4. Ask each channel's registry whether the resolved version exists
5. Assemble everything into a WorkspaceReport

Nothing is built or uploaded; the report tells a publishing job what to do.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from pathlib import Path

from .changes import detect
from .config import Settings, load_settings
from .errors import ConfigError
from .graph import DependencyGraph, build
from .models import ChangeSet, Channel, ReleaseMode
from .policy import resolve_all
from .registries import RegistryClient, build_registry_clients
from .report import WorkspaceReport, assemble
from .scanner import ScanResult, scan
from .shell import info, step, warn
from .vcs import GitCLI, VersionControl
from .versions import resolve_version, utc_today


def discover_packages(root: Path, settings: Settings) -> tuple[ScanResult, DependencyGraph]:
    """Scan the repository and build its dependency graph.

    Raises:
        CyclicDependency: If packages depend on each other in a cycle.
    """
    step("Discovering packages")

    result = scan(root, settings)
    for error in result.errors:
        warn(f"{error.path}: {error.message}")

    graph = build(result.packages)

    for name in graph.topo_order:
        pkg = graph.package(name)
        deps = graph.dependencies(name)
        deps_str = f" → [{', '.join(deps)}]" if deps else ""
        skip = " (excluded)" if pkg.excluded else ""
        info(f"{name} {pkg.version} ({pkg.path}){deps_str}{skip}")

    return result, graph


def detect_changes(
    graph: DependencyGraph,
    base_ref: str | None,
    head_ref: str | None,
    vcs: VersionControl,
    settings: Settings,
    *,
    include_worktree: bool = False,
) -> ChangeSet:
    """Determine which packages changed, printing why.

    Raises:
        RevisionNotFound: If a revision cannot be resolved.
    """
    step("Detecting changes")

    change_set = detect(
        graph,
        base_ref,
        head_ref,
        vcs,
        global_paths=settings.global_paths,
        include_worktree=include_worktree,
    )
    if base_ref is None:
        info("No base revision: all packages marked changed")
        return change_set

    info(f"{change_set.base} → {change_set.head} ({len(change_set.changed_files)} files)")
    for name in graph.topo_order:
        if name in change_set.touched:
            info(f"{name}: changed")
        elif name in change_set.affected:
            deps = [d for d in graph.dependencies(name) if d in change_set.affected]
            info(f"{name}: dirty (depends on {', '.join(deps)})")
    return change_set


def run_check(
    root: Path,
    *,
    base_ref: str | None = None,
    head_ref: str | None = None,
    mode: ReleaseMode = ReleaseMode.RELEASE,
    check_changes: bool = True,
    check_publish: bool = True,
    include_worktree: bool = False,
    settings: Settings | None = None,
    vcs: VersionControl | None = None,
    registry_clients: Mapping[Channel, RegistryClient] | None = None,
    channels: Iterable[Channel] | None = None,
    today: date | None = None,
) -> WorkspaceReport:
    """Execute the full check and return the report.

    Args:
        root: Repository root.
        base_ref: Base revision; None treats every package as changed.
        head_ref: Head revision; defaults to HEAD.
        mode: Release or nightly versioning.
        check_changes: Run change detection. When False the report has no
              change information and revisions are never resolved.
        check_publish: Query registries for publish decisions.
        include_worktree: Count uncommitted changes as well.
        settings: Defaults to ``[tool.lazy-publish]`` in the root manifest.
        vcs: Defaults to git in ``root``.
        registry_clients: Defaults to clients built from settings.
        channels: Channels to check; defaults to ``settings.channels``.
        today: UTC date for nightly versions; defaults to now.

    Raises:
        ConfigError: If nightly mode is used with an epoch after ``today``.
        CyclicDependency: If packages depend on each other in a cycle.
        RevisionNotFound: If a revision cannot be resolved.
    """
    settings = settings or load_settings(root)
    channels = list(channels) if channels is not None else list(settings.channels)
    today = today or utc_today()
    if mode is ReleaseMode.NIGHTLY and today < settings.epoch:
        raise ConfigError(
            f"epoch {settings.epoch.isoformat()} is after today ({today.isoformat()}); "
            "nightly versions count days since a past epoch"
        )

    result, graph = discover_packages(root, settings)

    change_set: ChangeSet | None = None
    if check_changes:
        vcs = vcs or GitCLI(root, fetch_depth=settings.fetch_depth)
        change_set = detect_changes(
            graph, base_ref, head_ref, vcs, settings, include_worktree=include_worktree
        )

    versions = {
        pkg.name: resolve_version(pkg.version, mode, today=today, epoch=settings.epoch)
        for pkg in graph.packages
    }

    decisions = {}
    if check_publish:
        step("Checking published status")
        owned = registry_clients is None
        clients = (
            build_registry_clients(settings.registries, timeout=settings.timeout)
            if owned
            else registry_clients
        )
        try:
            decisions = resolve_all(
                graph.packages,
                change_set,
                channels,
                clients,
                mode,
                concurrency=settings.concurrency,
                today=today,
                epoch=settings.epoch,
            )
        finally:
            if owned:
                for client in clients.values():
                    client.close()
        for name, per_channel in decisions.items():
            for channel, decision in per_channel.items():
                if decision.error is not None:
                    warn(f"{name} [{channel.value}]: {decision.error.message}")
                elif decision.should_publish:
                    info(f"{name} [{channel.value}]: publish {decision.resolved_version}")

    return assemble(
        graph,
        change_set,
        decisions,
        versions=versions,
        workspaces=result.workspaces,
        scan_errors=result.errors,
        release_mode=mode,
    )
