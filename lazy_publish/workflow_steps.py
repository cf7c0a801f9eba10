"""Helpers for GitHub Actions workflow steps.

Turns a WorkspaceReport into step outputs that a workflow can feed into
per-channel publish matrices:

    changed=["pkg-a","pkg-b"]
    publish_pypi=[{"package":"pkg-a","path":"libs/a","version":"1.2.0"}]
    undetermined=[{"package":"pkg-b","channel":"docker","error":"..."}]
"""

from __future__ import annotations

import json
from pathlib import Path

from .models import Channel
from .report import WorkspaceReport


def github_outputs(report: WorkspaceReport) -> dict[str, str]:
    """Compute step outputs, each a compact JSON document."""
    outputs: dict[str, str] = {"changed": _dumps(report.changed())}
    for channel in Channel:
        outputs[f"publish_{channel.value}"] = _dumps(
            [
                {
                    "package": entry.name,
                    "path": entry.path,
                    "version": entry.decisions[channel].resolved_version,
                    "artifact": entry.decisions[channel].artifact,
                }
                for entry in report.to_publish(channel)
            ]
        )
    outputs["undetermined"] = _dumps(
        [
            {
                "package": entry.name,
                "channel": channel.value,
                "error": entry.decisions[channel].error.message
                if entry.decisions[channel].error
                else "",
            }
            for entry in report.packages
            for channel in entry.undetermined()
        ]
    )
    return outputs


def _dumps(value: object) -> str:
    return json.dumps(value, separators=(",", ":"))


def write_output(output_path: Path, name: str, value: str) -> None:
    with open(output_path, "a") as fh:
        fh.write(f"{name}={value}\n")


def write_github_outputs(output_path: Path, report: WorkspaceReport) -> None:
    """Append every step output for ``report`` to ``$GITHUB_OUTPUT``."""
    for name, value in github_outputs(report).items():
        write_output(output_path, name, value)
