"""Tests for lazy_publish.scanner."""

from __future__ import annotations

from pathlib import Path

from conftest import write_manifest

from lazy_publish.config import Settings
from lazy_publish.models import Channel, PackageRole, Workspace
from lazy_publish.scanner import relative_path, scan


class TestScenarioRepo:
    """Scanning the multi-workspace fixture repository."""

    def test_finds_every_package_in_path_order(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert [p.path for p in result.packages] == [
            "bar",
            "bar/bar_nested",
            "baz",
            "baz/baz_member1",
            "foo",
            "foo/foo_member1",
            "skipped",
            "standalone",
        ]
        assert result.errors == ()

    def test_names_are_canonical(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert result.package("foo-member1").path == "foo/foo_member1"
        assert result.package("baz-member1").path == "baz/baz_member1"

    def test_roles(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        roles = {p.name: p.role for p in result.packages}
        assert roles == {
            "bar": PackageRole.STANDALONE,
            "bar-nested": PackageRole.STANDALONE,
            "baz": PackageRole.ROOT,
            "baz-member1": PackageRole.MEMBER,
            "foo": PackageRole.ROOT,
            "foo-member1": PackageRole.MEMBER,
            "skipped": PackageRole.STANDALONE,
            "standalone": PackageRole.STANDALONE,
        }

    def test_workspaces(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert result.workspaces == (
            Workspace(path="bar", root="bar"),
            Workspace(path="bar/bar_nested", root="bar-nested"),
            Workspace(path="baz", root="baz", members=("baz-member1",)),
            Workspace(path="foo", root="foo", members=("foo-member1",)),
            Workspace(path="skipped", root="skipped"),
            Workspace(path="standalone", root="standalone"),
        )

    def test_member_belongs_to_its_workspace(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert result.package("foo-member1").workspace == "foo"
        assert result.package("bar-nested").workspace == "bar/bar_nested"

    def test_dependencies_keep_external_names(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert result.package("foo-member1").dependencies == ("requests", "standalone")

    def test_sentinel_marks_excluded_but_keeps_package(
        self, scenario_repo: Path
    ) -> None:
        result = scan(scenario_repo)
        assert result.package("skipped").excluded
        assert not result.package("standalone").excluded

    def test_channels(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert set(result.package("foo").channels) == {Channel.PYPI, Channel.DOCKER}
        assert set(result.package("baz-member1").channels) == {Channel.NPM}
        assert result.package("baz").channels == {}

    def test_red_herrings_are_not_packages(self, scenario_repo: Path) -> None:
        result = scan(scenario_repo)
        assert not any("red_herring" in p.path for p in result.packages)


class TestWorkspaceShapes:
    def test_virtual_root(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, None, members=["packages/*"])
        write_manifest(tmp_path / "packages" / "a", "a")
        write_manifest(tmp_path / "packages" / "b", "b", deps=["a"])

        result = scan(tmp_path)

        assert [p.name for p in result.packages] == ["a", "b"]
        assert all(p.role is PackageRole.MEMBER for p in result.packages)
        assert result.workspaces == (Workspace(path=".", root=None, members=("a", "b")),)

    def test_root_package_at_repository_root(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, "root", members=["libs/*"])
        write_manifest(tmp_path / "libs" / "one", "one")

        result = scan(tmp_path)

        assert result.package("root").path == "."
        assert result.package("root").role is PackageRole.ROOT
        assert result.package("one").workspace == "."

    def test_exclude_globs(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text(
            '[tool.uv.workspace]\nmembers = ["packages/*"]\nexclude = ["packages/old"]\n'
        )
        write_manifest(tmp_path / "packages" / "new", "new")
        write_manifest(tmp_path / "packages" / "old", "old")

        result = scan(tmp_path)

        assert result.package("new").role is PackageRole.MEMBER
        assert result.package("old").role is PackageRole.STANDALONE

    def test_glob_match_without_manifest_is_ignored(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, None, members=["packages/*"])
        (tmp_path / "packages" / "docs").mkdir(parents=True)
        write_manifest(tmp_path / "packages" / "a", "a")

        result = scan(tmp_path)

        assert [p.name for p in result.packages] == ["a"]
        assert result.errors == ()

    def test_settings_only_manifest_is_not_a_package(self, tmp_path: Path) -> None:
        (tmp_path / "pyproject.toml").write_text("[tool.lazy-publish]\nconcurrency = 2\n")
        write_manifest(tmp_path / "pkg", "pkg")

        result = scan(tmp_path)

        assert [p.name for p in result.packages] == ["pkg"]
        assert result.errors == ()


class TestScanErrors:
    def test_invalid_toml_is_reported_per_path(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "good", "good")
        (tmp_path / "bad").mkdir()
        (tmp_path / "bad" / "pyproject.toml").write_text("[project\nname = 'bad'")

        result = scan(tmp_path)

        assert [p.name for p in result.packages] == ["good"]
        assert len(result.errors) == 1
        assert result.errors[0].path == "bad"
        assert result.errors[0].kind == "manifest_parse_error"

    def test_invalid_version(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "pkg", "pkg", version="banana")

        result = scan(tmp_path)

        assert result.packages == ()
        assert "invalid version" in result.errors[0].message

    def test_invalid_requirement(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "pkg", "pkg", deps=["not a requirement!!"])

        result = scan(tmp_path)

        assert result.packages == ()
        assert result.errors[0].path == "pkg"

    def test_unknown_channel(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "pkg", "pkg", channels=["maven"])

        result = scan(tmp_path)

        assert result.packages == ()
        assert "unknown publish channel" in result.errors[0].message

    def test_member_without_project_table(self, tmp_path: Path) -> None:
        write_manifest(tmp_path, None, members=["packages/*"])
        (tmp_path / "packages" / "empty").mkdir(parents=True)
        (tmp_path / "packages" / "empty" / "pyproject.toml").write_text("[tool.ruff]\n")

        result = scan(tmp_path)

        assert result.errors[0].path == "packages/empty"

    def test_duplicate_names_keep_first_path(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "a", "dup")
        write_manifest(tmp_path / "b", "dup")

        result = scan(tmp_path)

        assert [p.path for p in result.packages] == ["a"]
        assert result.errors[0].kind == "duplicate_package"
        assert result.errors[0].path == "b"

    def test_nested_workspace_is_reported_and_stays_member(
        self, tmp_path: Path
    ) -> None:
        write_manifest(tmp_path, None, members=["packages/*"])
        write_manifest(tmp_path / "packages" / "inner", "inner", members=["sub"])

        result = scan(tmp_path)

        assert result.package("inner").role is PackageRole.MEMBER
        assert result.errors[0].kind == "nested_workspace"


class TestIgnore:
    def test_default_ignores_virtualenvs(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "pkg", "pkg")
        write_manifest(tmp_path / ".venv" / "lib" / "dep", "dep")
        write_manifest(tmp_path / "node_modules" / "thing", "thing")

        result = scan(tmp_path)

        assert [p.name for p in result.packages] == ["pkg"]

    def test_custom_ignore_by_relative_path(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "pkg", "pkg")
        write_manifest(tmp_path / "examples" / "demo", "demo")

        result = scan(tmp_path, Settings(ignore=("examples/*",)))

        assert [p.name for p in result.packages] == ["pkg"]

    def test_custom_sentinel(self, tmp_path: Path) -> None:
        write_manifest(tmp_path / "pkg", "pkg")
        (tmp_path / "pkg" / "NO_PUBLISH").touch()

        result = scan(tmp_path, Settings(sentinel="NO_PUBLISH"))

        assert result.package("pkg").excluded


class TestRelativePath:
    def test_root_is_dot(self, tmp_path: Path) -> None:
        assert relative_path(tmp_path, tmp_path) == "."

    def test_posix_path(self, tmp_path: Path) -> None:
        assert relative_path(tmp_path, tmp_path / "a" / "b") == "a/b"


class TestDevDependencies:
    def test_dependency_groups_are_edges_by_default(self, dev_cycle_repo: Path) -> None:
        result = scan(dev_cycle_repo)
        assert result.package("lib").dependencies == ("testkit",)

    def test_ignored_on_request(self, dev_cycle_repo: Path) -> None:
        result = scan(dev_cycle_repo, Settings(ignore_dev_dependencies=True))
        assert result.package("lib").dependencies == ()
        assert result.package("testkit").dependencies == ("lib",)
