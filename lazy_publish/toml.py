"""TOML reading utilities.

Uses tomlkit to read pyproject.toml manifests. Values are unwrapped into plain
Python containers before they leave this module so that callers (and pydantic)
never see tomlkit item types.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from packaging.utils import canonicalize_name

TOOL_KEY = "lazy-publish"


def load_pyproject(path: Path) -> tomlkit.TOMLDocument:
    """Parse the manifest at ``path``.

    Raises:
        tomlkit.exceptions.TOMLKitError: If the file is not valid TOML.
    """
    return tomlkit.parse(path.read_text())


def get_project_name(doc: tomlkit.TOMLDocument, fallback: str) -> str:
    """PEP 503 normalized [project].name, or ``fallback`` normalized the same way.

    Dependency strings are compared against these names, so both sides go
    through ``canonicalize_name``.
    """
    return canonicalize_name(str(doc.get("project", {}).get("name", fallback)))


def get_project_version(doc: tomlkit.TOMLDocument) -> str:
    """[project].version as written; "0.0.0" when the key is missing."""
    return str(doc.get("project", {}).get("version", "0.0.0"))


def has_project_table(doc: tomlkit.TOMLDocument) -> bool:
    """Whether the manifest describes a package (virtual workspace roots don't)."""
    return "project" in doc


def get_all_dependency_strings(
    doc: tomlkit.TOMLDocument, *, include_groups: bool = True
) -> list[str]:
    """Every requirement string a manifest declares.

    Covers [project].dependencies, optional extras and, unless
    ``include_groups`` is False, PEP 735 dependency groups. Strings are
    returned unparsed; ``{include-group = "..."}`` entries are not
    requirements and are skipped.
    """
    project = doc.get("project", {})
    deps: list[str] = [str(d) for d in project.get("dependencies", [])]
    for group_deps in project.get("optional-dependencies", {}).values():
        deps.extend(str(d) for d in group_deps)
    if not include_groups:
        return deps
    for group_deps in doc.get("dependency-groups", {}).values():
        deps.extend(str(d) for d in group_deps if isinstance(d, str))
    return deps


def is_workspace_root(doc: tomlkit.TOMLDocument) -> bool:
    """Whether the manifest declares a [tool.uv.workspace] table."""
    return "workspace" in doc.get("tool", {}).get("uv", {})


def get_workspace_member_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """[tool.uv.workspace].members glob patterns.

    These patterns (e.g., "packages/*", "libs/*") are relative to the
    directory holding the manifest. Returns an empty list when the manifest
    declares no workspace.
    """
    workspace = doc.get("tool", {}).get("uv", {}).get("workspace", {})
    return [str(m) for m in workspace.get("members", [])]


def get_workspace_exclude_globs(doc: tomlkit.TOMLDocument) -> list[str]:
    """Extract [tool.uv.workspace].exclude patterns."""
    workspace = doc.get("tool", {}).get("uv", {}).get("workspace", {})
    return [str(m) for m in workspace.get("exclude", [])]


def get_tool_table(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return the [tool.lazy-publish] table as plain Python data."""
    table = doc.get("tool", {}).get(TOOL_KEY, {})
    return _unwrap(table)


def get_publish_tables(doc: tomlkit.TOMLDocument) -> dict[str, Any]:
    """Return [tool.lazy-publish.publish] (channel name → settings table)."""
    publish = get_tool_table(doc).get("publish", {})
    return publish if isinstance(publish, dict) else {}


def _unwrap(value: Any) -> Any:
    if hasattr(value, "unwrap"):
        return value.unwrap()
    return value
