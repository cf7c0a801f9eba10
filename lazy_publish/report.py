"""Report assembly: one structured snapshot of graph, changes and decisions.

``assemble`` is a pure merge of what the earlier stages produced. The report
lists packages in scanner order (by path) and gives each its position in the
topological order, so consumers can publish dependencies before dependents.

Consumers should read reports with ``WorkspaceReport.from_json``, which
ignores fields it does not know about.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from pydantic import BaseModel, Field

from .graph import DependencyGraph
from .models import (
    ChangeMode,
    ChangeSet,
    Channel,
    DecisionError,
    PackageRole,
    PublishDecision,
    ReleaseMode,
    ScanError,
    Workspace,
)


class PackageReport(BaseModel):
    name: str
    path: str
    workspace: str
    role: PackageRole
    version: str
    resolved_version: str | None = None
    excluded: bool = False
    changed: bool = False
    dependencies_changed: bool = False
    dependencies: list[str] = Field(default_factory=list)
    topo_index: int
    decisions: dict[Channel, PublishDecision] = Field(default_factory=dict)
    publish: bool = False
    errors: list[DecisionError] = Field(default_factory=list)

    def undetermined(self) -> list[Channel]:
        """Channels whose decision could not be made."""
        return [c for c, d in self.decisions.items() if d.should_publish is None]


class WorkspaceReport(BaseModel):
    """Everything a publishing job needs, in a deterministic order.

    Attributes:
        release_mode: Release or nightly versioning.
        change_mode: How changes were detected; None when not requested.
        base: Resolved base commit of the diff, if any.
        head: Resolved head commit of the diff, if any.
        topo_order: Package names, dependencies first.
        workspaces: Workspaces in path order.
        packages: One entry per scanned package, in path order.
        scan_errors: Manifests that could not be used.
    """

    release_mode: ReleaseMode = ReleaseMode.RELEASE
    change_mode: ChangeMode | None = None
    base: str | None = None
    head: str | None = None
    topo_order: list[str] = Field(default_factory=list)
    workspaces: list[Workspace] = Field(default_factory=list)
    packages: list[PackageReport] = Field(default_factory=list)
    scan_errors: list[ScanError] = Field(default_factory=list)

    def package(self, name: str) -> PackageReport:
        for entry in self.packages:
            if entry.name == name:
                return entry
        raise KeyError(name)

    def changed(self) -> list[str]:
        return [p.name for p in self.packages if p.changed]

    def to_publish(self, channel: Channel) -> list[PackageReport]:
        """Packages to publish on ``channel``, dependencies first."""
        entries = [
            p
            for p in self.packages
            if channel in p.decisions and p.decisions[channel].should_publish is True
        ]
        return sorted(entries, key=lambda p: p.topo_index)

    def has_undetermined(self) -> bool:
        return any(p.undetermined() for p in self.packages)

    def to_json(self, *, indent: int | None = 2) -> str:
        return self.model_dump_json(indent=indent)

    @classmethod
    def from_json(cls, text: str) -> WorkspaceReport:
        return cls.model_validate_json(text)


def assemble(
    graph: DependencyGraph,
    change_set: ChangeSet | None,
    decisions: Mapping[str, Mapping[Channel, PublishDecision]],
    *,
    versions: Mapping[str, str] | None = None,
    workspaces: Sequence[Workspace] = (),
    scan_errors: Sequence[ScanError] = (),
    release_mode: ReleaseMode = ReleaseMode.RELEASE,
) -> WorkspaceReport:
    """Merge graph, change set and decisions into a WorkspaceReport.

    Args:
        graph: Dependency graph (package order and topological positions).
        change_set: Change detection result, or None when not requested.
        decisions: Map of package name → channel → decision.
        versions: Resolved version per package (nightly or release).
        workspaces: Workspaces from the scan.
        scan_errors: Per-path scan errors.
        release_mode: Versioning mode used for ``versions``.
    """
    versions = versions or {}
    entries: list[PackageReport] = []
    for pkg in graph.packages:
        pkg_decisions = dict(decisions.get(pkg.name, {}))
        entries.append(
            PackageReport(
                name=pkg.name,
                path=pkg.path,
                workspace=pkg.workspace,
                role=pkg.role,
                version=pkg.version,
                resolved_version=versions.get(pkg.name),
                excluded=pkg.excluded,
                changed=change_set is not None and change_set.is_changed(pkg.name),
                dependencies_changed=(
                    change_set is not None and change_set.dependencies_changed(pkg.name)
                ),
                dependencies=list(graph.dependencies(pkg.name)),
                topo_index=graph.topo_index(pkg.name),
                decisions=pkg_decisions,
                publish=any(d.should_publish is True for d in pkg_decisions.values()),
                errors=[d.error for d in pkg_decisions.values() if d.error is not None],
            )
        )

    return WorkspaceReport(
        release_mode=release_mode,
        change_mode=change_set.mode if change_set is not None else None,
        base=change_set.base if change_set is not None else None,
        head=change_set.head if change_set is not None else None,
        topo_order=graph.topo_order,
        workspaces=list(workspaces),
        packages=entries,
        scan_errors=list(scan_errors),
    )


def _mark(entry: PackageReport, channel: Channel) -> str:
    decision = entry.decisions.get(channel)
    if decision is None:
        return "-"
    if decision.should_publish is None:
        return "?"
    return "x" if decision.should_publish else ""


def render_table(report: WorkspaceReport) -> str:
    """Human-readable summary: one row per package, one column per channel.

    ``x`` publish, blank already published, ``?`` undetermined, ``-`` not
    declared or not checked.
    """
    headers = ["Workspace", "Package", "Version", *(c.value for c in Channel), "Changed"]
    rows = [
        [
            p.workspace,
            p.name + (" (excluded)" if p.excluded else ""),
            p.resolved_version or p.version,
            *(_mark(p, c) for c in Channel),
            "x" if p.changed else "",
        ]
        for p in report.packages
    ]
    widths = [max(len(str(r[i])) for r in [headers, *rows]) for i in range(len(headers))]

    def line(cells: list[str]) -> str:
        return "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"

    rule = "|-" + "-|-".join("-" * w for w in widths) + "-|"
    return "\n".join([rule, line(headers), rule, *(line(r) for r in rows), rule])
