"""Data models for lazy-publish.

These Pydantic models represent the records passed between the scanner,
graph builder, change detector, publish policy and report assembler. Records
produced by one stage are frozen so later stages cannot mutate them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Channel(str, Enum):
    """A distribution target with its own, independent publish state."""

    PYPI = "pypi"  # source-package registry
    DOCKER = "docker"  # container registry
    BINARY = "binary"  # blob-storage binary store
    NPM = "npm"  # language-specific registry


class PackageRole(str, Enum):
    """Shape of a package within its workspace, resolved once at scan time."""

    STANDALONE = "standalone"
    ROOT = "root"
    MEMBER = "member"


class ReleaseMode(str, Enum):
    RELEASE = "release"
    NIGHTLY = "nightly"


class ChangeMode(str, Enum):
    """How a ChangeSet was computed.

    ``NO_BASE_REF`` is not an error: without a base revision every package is
    treated as changed (scheduled nightly runs, first releases).
    """

    DIFF = "diff"
    NO_BASE_REF = "no_base_ref"


class ChannelConfig(BaseModel):
    """Per-package settings for one channel from ``[tool.lazy-publish.publish.<channel>]``.

    Attributes:
        publish: Whether the package declares this channel at all.
        name: Artifact name on the channel (image repository, npm package...).
              Defaults to the package name.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    publish: bool = False
    name: str | None = None


class Package(BaseModel):
    """Metadata for a single package found in the repository.

    Attributes:
        name: Canonical (PEP 503) package name, unique within the repository.
        path: Relative path from the repository root ("." for the root itself).
        version: Declared version string from pyproject.toml, verbatim.
        dependencies: Internal dependency names as declared. Names that do not
              resolve to a scanned package are dropped by the graph builder.
        channels: Declared channels only (``publish = true``).
        excluded: Set by the sentinel file; consulted only by the publish policy.
        role: Standalone, workspace root, or workspace member.
        workspace: Path of the workspace this package belongs to.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    version: str
    dependencies: tuple[str, ...] = ()
    channels: dict[Channel, ChannelConfig] = Field(default_factory=dict)
    excluded: bool = False
    role: PackageRole = PackageRole.STANDALONE
    workspace: str = "."

    def artifact_name(self, channel: Channel) -> str:
        """Name under which this package is looked up on ``channel``."""
        config = self.channels.get(channel)
        if config is not None and config.name:
            return config.name
        return self.name


class Workspace(BaseModel):
    """A root package plus the members sharing its manifest resolution.

    ``root`` is None for a virtual workspace root (a pyproject.toml declaring
    members but no ``[project]`` table).
    """

    model_config = ConfigDict(frozen=True)

    path: str
    root: str | None
    members: tuple[str, ...] = ()

    @property
    def packages(self) -> tuple[str, ...]:
        if self.root is None:
            return self.members
        return (self.root, *self.members)


class ScanError(BaseModel):
    """A per-path scan failure. The path is left out of the graph."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: str
    message: str


class ChangeSet(BaseModel):
    """Files changed between two revisions and the packages they affect.

    Attributes:
        mode: DIFF, or NO_BASE_REF when everything is treated as changed.
        base: Resolved base commit (None in NO_BASE_REF mode).
        head: Resolved head commit (None in NO_BASE_REF mode).
        changed_files: Repo-relative paths reported by the diff.
        touched: Packages owning at least one changed file.
        affected: ``touched`` plus every package transitively depending on one.
    """

    model_config = ConfigDict(frozen=True)

    mode: ChangeMode
    base: str | None = None
    head: str | None = None
    changed_files: tuple[str, ...] = ()
    touched: frozenset[str] = frozenset()
    affected: frozenset[str] = frozenset()

    def is_changed(self, name: str) -> bool:
        return name in self.affected

    def dependencies_changed(self, name: str) -> bool:
        """True when a package is affected only through its dependencies."""
        return name in self.affected and name not in self.touched


class DecisionError(BaseModel):
    kind: str
    message: str


class PublishDecision(BaseModel):
    """Publish decision for one package on one channel.

    ``already_published`` and ``should_publish`` are None when the registry
    could not be queried; ``error`` then says why. Consumers must not treat
    None as either answer.
    """

    channel: Channel
    artifact: str
    resolved_version: str
    already_published: bool | None = None
    should_publish: bool | None = None
    error: DecisionError | None = None
