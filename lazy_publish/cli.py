"""CLI entry point for lazy-publish."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from lazy_publish.config import load_settings
from lazy_publish.errors import (
    LazyPublishError,
    ManifestParseError,
    RegistryUnavailable,
)
from lazy_publish.models import Channel, ReleaseMode
from lazy_publish.pipeline import discover_packages, run_check
from lazy_publish.report import render_table
from lazy_publish.workflow_steps import write_github_outputs

CHANNEL_CHOICE = click.Choice([c.value for c in Channel])
ROOT_OPTION = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Repository root.",
)
IGNORE_DEV_OPTION = click.option(
    "--ignore-dev-dependencies",
    is_flag=True,
    help="Leave [dependency-groups] out of the dependency graph.",
)


def _fatal(exc: LazyPublishError) -> None:
    """Print an error and exit with the status reserved for its kind."""
    click.echo(f"ERROR [{exc.kind}]: {exc.message}", err=True)
    sys.exit(exc.exit_code)


@click.group()
@click.version_option(package_name="lazy-publish")
def cli() -> None:
    """Lazy monorepo publisher: only publishes what is missing."""


@cli.command()
@ROOT_OPTION
@IGNORE_DEV_OPTION
@click.option("--base", "base_ref", default=None, help="Base revision of the diff.")
@click.option("--head", "head_ref", default=None, help="Head revision (default: HEAD).")
@click.option("--nightly", is_flag=True, help="Resolve nightly versions.")
@click.option(
    "--channel",
    "channels",
    multiple=True,
    type=CHANNEL_CHOICE,
    help="Channel to check (repeatable; default: all configured).",
)
@click.option("--no-changes", is_flag=True, help="Skip change detection.")
@click.option("--no-publish-check", is_flag=True, help="Skip registry checks.")
@click.option("--worktree", is_flag=True, help="Include uncommitted changes.")
@click.option("--concurrency", type=click.IntRange(min=1), default=None)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="json",
    show_default=True,
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the report here instead of stdout.",
)
@click.option(
    "--github-output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append GitHub step outputs to this file.",
)
@click.option(
    "--fail-unit-error",
    is_flag=True,
    help="Exit non-zero when any manifest or registry check failed.",
)
def check(
    root: Path,
    base_ref: str | None,
    head_ref: str | None,
    nightly: bool,
    channels: tuple[str, ...],
    no_changes: bool,
    no_publish_check: bool,
    worktree: bool,
    concurrency: int | None,
    output_format: str,
    output: Path | None,
    github_output: Path | None,
    fail_unit_error: bool,
    ignore_dev_dependencies: bool,
) -> None:
    """Report changed packages and what each channel needs published.

    Without --base every package is treated as changed (scheduled runs).
    """
    try:
        settings = load_settings(
            root,
            concurrency=concurrency,
            channels=list(channels) or None,
            ignore_dev_dependencies=ignore_dev_dependencies or None,
        )
        report = run_check(
            root,
            base_ref=base_ref,
            head_ref=head_ref,
            mode=ReleaseMode.NIGHTLY if nightly else ReleaseMode.RELEASE,
            check_changes=not no_changes,
            check_publish=not no_publish_check,
            include_worktree=worktree,
            settings=settings,
        )
    except LazyPublishError as exc:
        _fatal(exc)

    rendered = report.to_json() if output_format == "json" else render_table(report)
    if output is not None:
        output.write_text(rendered + "\n")
        click.echo(f"✓ Wrote report to {output}", err=True)
    else:
        click.echo(rendered)

    if github_output is not None:
        write_github_outputs(github_output, report)

    if fail_unit_error:
        if report.scan_errors:
            click.echo(
                f"ERROR [{ManifestParseError.kind}]: "
                f"{len(report.scan_errors)} manifest(s) failed to scan",
                err=True,
            )
            sys.exit(ManifestParseError.exit_code)
        if report.has_undetermined():
            click.echo(
                f"ERROR [{RegistryUnavailable.kind}]: "
                "some publish decisions are undetermined",
                err=True,
            )
            sys.exit(RegistryUnavailable.exit_code)


@cli.command()
@ROOT_OPTION
@IGNORE_DEV_OPTION
def graph(root: Path, ignore_dev_dependencies: bool) -> None:
    """Print packages in publish order, dependencies first."""
    try:
        settings = load_settings(
            root, ignore_dev_dependencies=ignore_dev_dependencies or None
        )
        _, dep_graph = discover_packages(root, settings)
    except LazyPublishError as exc:
        _fatal(exc)

    for name in dep_graph.topo_order:
        pkg = dep_graph.package(name)
        click.echo(f"{name}\t{pkg.version}\t{pkg.path}")
