"""Error types for lazy-publish.

Every error carries a stable ``kind`` identifier so report consumers can tell
"nothing to publish" apart from "could not determine". Fatal errors also carry
the process exit status the CLI uses for them.
"""

from __future__ import annotations


class LazyPublishError(Exception):
    """Base class for all lazy-publish errors."""

    kind = "error"
    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigError(LazyPublishError):
    """Invalid ``[tool.lazy-publish]`` configuration."""

    kind = "config_error"
    exit_code = 2


class ManifestParseError(LazyPublishError):
    """A single manifest could not be used. Non-fatal: only that path is dropped."""

    kind = "manifest_parse_error"
    exit_code = 6

    def __init__(self, path: str, message: str, *, kind: str | None = None) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.reason = message
        if kind is not None:
            self.kind = kind


class CyclicDependency(LazyPublishError):
    """The intra-repository dependency graph contains at least one cycle."""

    kind = "cyclic_dependency"
    exit_code = 3

    def __init__(self, cycles: list[list[str]]) -> None:
        self.cycles = cycles
        self.members = sorted({name for cycle in cycles for name in cycle})
        rendered = "; ".join(" -> ".join(cycle) for cycle in cycles)
        super().__init__(f"Dependency cycle detected involving: {rendered}")


class RevisionNotFound(LazyPublishError):
    """A git reference could not be resolved to a commit."""

    kind = "revision_not_found"
    exit_code = 4

    def __init__(self, ref: str, detail: str = "") -> None:
        message = f"Could not resolve revision {ref!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.ref = ref


class RegistryUnavailable(LazyPublishError):
    """A registry existence check failed. Retriable; never a decision."""

    kind = "registry_unavailable"
    exit_code = 5

    def __init__(self, channel: str, message: str) -> None:
        super().__init__(f"{channel}: {message}")
        self.channel = channel
        self.reason = message
