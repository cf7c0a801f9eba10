"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pytest
import tomlkit

from lazy_publish.errors import RevisionNotFound
from lazy_publish.models import Channel, ChannelConfig, Package, PackageRole


def write_manifest(
    directory: Path,
    name: str | None,
    *,
    version: str = "0.1.0",
    deps: Iterable[str] = (),
    members: Iterable[str] | None = None,
    channels: Iterable[str] = (),
) -> Path:
    """Write a pyproject.toml; ``name=None`` writes a virtual workspace root."""
    directory.mkdir(parents=True, exist_ok=True)
    lines: list[str] = []
    if name is not None:
        dep_list = ", ".join(f'"{d}"' for d in deps)
        lines += [
            "[project]",
            f'name = "{name}"',
            f'version = "{version}"',
            f"dependencies = [{dep_list}]",
            "",
        ]
    if members is not None:
        member_list = ", ".join(f'"{m}"' for m in members)
        lines += ["[tool.uv.workspace]", f"members = [{member_list}]", ""]
    for channel in channels:
        lines += [f"[tool.lazy-publish.publish.{channel}]", "publish = true", ""]
    manifest = directory / "pyproject.toml"
    manifest.write_text("\n".join(lines))
    return manifest


@pytest.fixture
def scenario_repo(tmp_path: Path) -> Path:
    """A multi-workspace repository.

    - standalone: no deps
    - foo: workspace root, member foo/foo_member1 depending on standalone
    - bar: standalone, with nested non-member bar/bar_nested
    - baz: workspace root with member baz/baz_member1
    - skipped: excluded with the sentinel file
    - red_herring, bar/red_herring: junk without manifests
    """
    root = tmp_path / "repo"
    write_manifest(root / "standalone", "standalone", channels=["pypi"])
    write_manifest(root / "foo", "foo", members=["foo_member1"], channels=["pypi", "docker"])
    write_manifest(
        root / "foo" / "foo_member1",
        "foo_member1",
        deps=["standalone>=0.1", "requests>=2.0"],
        channels=["pypi"],
    )
    write_manifest(root / "bar", "bar", channels=["pypi"])
    write_manifest(root / "bar" / "bar_nested", "bar_nested", channels=["pypi"])
    write_manifest(root / "baz", "baz", members=["baz_member1"])
    write_manifest(root / "baz" / "baz_member1", "baz_member1", channels=["npm"])
    write_manifest(root / "skipped", "skipped", channels=["pypi"])
    (root / "skipped" / ".skip_ci").touch()

    for junk in (root / "red_herring", root / "bar" / "red_herring"):
        junk.mkdir(parents=True)
        (junk / "junk").write_text("junk\n")
    for pkg_dir in ("standalone", "foo", "bar", "baz/baz_member1", "skipped"):
        src = root / pkg_dir / "src"
        src.mkdir(parents=True, exist_ok=True)
        (src / "__init__.py").write_text("VALUE = 1\n")
    return root


@pytest.fixture
def dev_cycle_repo(tmp_path: Path) -> Path:
    """lib needs testkit only as a dev dependency; testkit depends on lib."""
    root = tmp_path / "dev_cycle"
    manifest = write_manifest(root / "lib", "lib")
    manifest.write_text(
        manifest.read_text() + '\n[dependency-groups]\ndev = ["testkit>=1.0"]\n'
    )
    write_manifest(root / "testkit", "testkit", deps=["lib"])
    return root


def make_package(
    name: str,
    *,
    path: str | None = None,
    version: str = "1.0.0",
    deps: Iterable[str] = (),
    channels: Iterable[Channel] = (),
    excluded: bool = False,
    role: PackageRole = PackageRole.STANDALONE,
) -> Package:
    path = path or f"packages/{name}"
    return Package(
        name=name,
        path=path,
        version=version,
        dependencies=tuple(sorted(deps)),
        channels={c: ChannelConfig(publish=True) for c in channels},
        excluded=excluded,
        role=role,
        workspace=path,
    )


class FakeRegistry:
    """Registry client answering from a set of (name, version) pairs."""

    def __init__(self, published: Iterable[tuple[str, str]] = (), error=None) -> None:
        self.published = set(published)
        self.error = error
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def exists(self, package_name: str, version: str) -> bool:
        self.calls.append((package_name, version))
        if self.error is not None:
            raise self.error
        return (package_name, version) in self.published

    def close(self) -> None:
        self.closed = True


class FakeVCS:
    """VersionControl double with fixed refs and diffs."""

    def __init__(
        self,
        refs: dict[str, str],
        diffs: dict[tuple[str, str], set[str]] | None = None,
        worktree: set[str] | None = None,
    ) -> None:
        self.refs = refs
        self.diffs = diffs or {}
        self.worktree = worktree or set()

    def resolve(self, ref: str) -> str:
        if ref not in self.refs:
            raise RevisionNotFound(ref)
        return self.refs[ref]

    def diff(self, base: str, head: str) -> set[str]:
        return set(self.diffs.get((base, head), set()))

    def worktree_changes(self) -> set[str]:
        return set(self.worktree)


@pytest.fixture
def sample_toml_doc() -> tomlkit.TOMLDocument:
    """Create a sample TOML document."""
    content = """\
[project]
name = "my-package"
version = "2.0.0"
dependencies = ["click>=8.0", "pydantic>=2.0"]

[project.optional-dependencies]
dev = ["pytest>=8.0"]
docs = ["sphinx>=7.0"]

[dependency-groups]
test = ["hypothesis>=6.0", {include-group = "lint"}]
lint = ["ruff"]

[tool.uv.workspace]
members = ["packages/*", "libs/*"]
exclude = ["packages/legacy"]

[tool.lazy-publish.publish.docker]
publish = true
name = "acme/my-package"
"""
    return tomlkit.parse(content)
