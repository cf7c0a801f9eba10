"""Run configuration.

Settings live in the repository root pyproject.toml under
``[tool.lazy-publish]``, next to ``[tool.uv.workspace]``:

    [tool.lazy-publish]
    ignore = ["examples", "docs"]
    epoch = 2024-01-01
    concurrency = 16
    global-paths = ["uv.lock"]

    [tool.lazy-publish.registries]
    docker = "https://ghcr.io"
    binary = "https://example.blob.core.windows.net/releases"

The root package's own ``[tool.lazy-publish.publish]`` table shares the
namespace and is ignored here.
"""

from __future__ import annotations

import string
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from tomlkit.exceptions import TOMLKitError

from .errors import ConfigError
from .models import Channel
from .toml import get_tool_table, load_pyproject
from .versions import DEFAULT_EPOCH

DEFAULT_IGNORE: tuple[str, ...] = (
    ".git",
    ".hg",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".tox",
    ".nox",
    ".mypy_cache",
    ".pytest_cache",
    ".ruff_cache",
    "dist",
    "build",
    "*.egg-info",
)


OBJECT_PLACEHOLDERS = frozenset({"name", "version"})


def _kebab(name: str) -> str:
    return name.replace("_", "-")


class RegistrySettings(BaseModel):
    """Base URLs of the registry behind each channel."""

    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid"
    )

    pypi: str = "https://pypi.org"
    docker: str = "https://registry-1.docker.io"
    npm: str = "https://registry.npmjs.org"
    binary: str | None = None
    binary_object: str = "{name}/{name}-{version}.tar.gz"

    @field_validator("binary_object")
    @classmethod
    def _known_placeholders(cls, template: str) -> str:
        parsed = string.Formatter().parse(template)
        fields = {field for _, field, _, _ in parsed if field is not None}
        unknown = sorted(fields - OBJECT_PLACEHOLDERS)
        if unknown:
            raise ValueError(
                f"unknown placeholder(s) {unknown} in binary-object; "
                f"use {sorted(OBJECT_PLACEHOLDERS)}"
            )
        return template


class Settings(BaseModel):
    """Validated ``[tool.lazy-publish]`` settings.

    Attributes:
        ignore: fnmatch patterns for directory names or repo-relative paths
              that are pruned from the scan.
        sentinel: Marker file name opting a package out of publishing.
        epoch: Day zero of the nightly version counter.
        concurrency: Maximum parallel registry checks.
        timeout: Per-request registry timeout in seconds.
        fetch_depth: Depth used to deepen shallow clones when a ref is missing.
        global_paths: Changed files matching these patterns mark every
              package changed (e.g. a shared lockfile).
        ignore_dev_dependencies: Leave [dependency-groups] out of the
              dependency graph (dev-only cycles such as a test kit that
              depends on the library it tests).
        channels: Channels checked during this run.
        registries: Registry endpoints per channel.
    """

    model_config = ConfigDict(
        alias_generator=_kebab, populate_by_name=True, extra="forbid"
    )

    ignore: tuple[str, ...] = DEFAULT_IGNORE
    sentinel: str = ".skip_ci"
    epoch: date = DEFAULT_EPOCH
    concurrency: int = Field(default=8, ge=1)
    timeout: float = Field(default=10.0, gt=0)
    fetch_depth: int = Field(default=50, ge=1)
    global_paths: tuple[str, ...] = ()
    ignore_dev_dependencies: bool = False
    channels: tuple[Channel, ...] = tuple(Channel)
    registries: RegistrySettings = Field(default_factory=RegistrySettings)


def load_settings(root: Path, **overrides: Any) -> Settings:
    """Read settings from ``root/pyproject.toml`` and apply overrides.

    Overrides whose value is None are ignored, so CLI options that were not
    given leave the file values in place.

    Raises:
        ConfigError: If the manifest is not valid TOML or a value is invalid.
    """
    data: dict[str, Any] = {}
    manifest = root / "pyproject.toml"
    if manifest.exists():
        try:
            doc = load_pyproject(manifest)
        except TOMLKitError as exc:
            raise ConfigError(f"{manifest}: {exc}") from exc
        data = dict(get_tool_table(doc))
        data.pop("publish", None)

    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid [tool.lazy-publish] configuration:\n{exc}") from exc
