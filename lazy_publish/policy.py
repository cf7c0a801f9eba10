"""Publish policy: per package and per channel, publish or not, and as what.

Each channel gets its own decision. A package published to PyPI but missing
from the container registry still needs its image pushed, and a registry that
cannot be reached leaves only that channel undetermined.

Registry checks are network bound, so ``resolve_all`` runs them in a bounded
thread pool. Results are collected by key, never by completion order, so the
output is the same however the checks interleave.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import date

from .errors import RegistryUnavailable
from .models import (
    ChangeSet,
    Channel,
    DecisionError,
    Package,
    PublishDecision,
    ReleaseMode,
)
from .registries import RegistryClient
from .versions import DEFAULT_EPOCH, resolve_version, utc_today

Decisions = dict[Channel, PublishDecision]


def should_publish(*, excluded: bool, changed: bool, already_published: bool) -> bool:
    """Core publish rule.

    A changed package publishes when its version is missing. An unchanged
    package also publishes when its version is missing, which covers commits
    that only bump the version and reruns after a partially failed publish.
    """
    return not excluded and (changed or not already_published) and not already_published


def channels_to_check(package: Package, enabled: Iterable[Channel]) -> list[Channel]:
    """Declared channels that are enabled for this run, in a fixed order."""
    enabled = set(enabled)
    return [c for c in Channel if c in package.channels and c in enabled]


def decide(
    package: Package,
    channel: Channel,
    version: str,
    changed: bool,
    client: RegistryClient | None,
) -> PublishDecision:
    """Query one registry and turn the answer into a decision."""
    artifact = package.artifact_name(channel)
    if client is None:
        return _undetermined(
            channel, artifact, version, f"no {channel.value} registry configured"
        )
    try:
        published = client.exists(artifact, version)
    except RegistryUnavailable as exc:
        return _undetermined(channel, artifact, version, exc.message)
    except Exception as exc:
        # Any failure of one check leaves only this decision undetermined.
        return _undetermined(
            channel, artifact, version, f"{type(exc).__name__}: {exc}"
        )
    return PublishDecision(
        channel=channel,
        artifact=artifact,
        resolved_version=version,
        already_published=published,
        should_publish=should_publish(
            excluded=package.excluded, changed=changed, already_published=published
        ),
    )


def _undetermined(
    channel: Channel, artifact: str, version: str, message: str
) -> PublishDecision:
    return PublishDecision(
        channel=channel,
        artifact=artifact,
        resolved_version=version,
        error=DecisionError(kind=RegistryUnavailable.kind, message=message),
    )


def resolve(
    package: Package,
    changed: bool,
    channels: Iterable[Channel],
    registry_clients: Mapping[Channel, RegistryClient],
    mode: ReleaseMode = ReleaseMode.RELEASE,
    *,
    today: date | None = None,
    epoch: date = DEFAULT_EPOCH,
) -> Decisions:
    """Decide, sequentially, every enabled channel of one package.

    Excluded packages get no decisions and their registries are never queried.
    """
    if package.excluded:
        return {}
    version = resolve_version(package.version, mode, today=today, epoch=epoch)
    return {
        channel: decide(package, channel, version, changed, registry_clients.get(channel))
        for channel in channels_to_check(package, channels)
    }


def resolve_all(
    packages: Sequence[Package],
    change_set: ChangeSet | None,
    channels: Iterable[Channel],
    registry_clients: Mapping[Channel, RegistryClient],
    mode: ReleaseMode = ReleaseMode.RELEASE,
    *,
    concurrency: int = 8,
    today: date | None = None,
    epoch: date = DEFAULT_EPOCH,
) -> dict[str, Decisions]:
    """Decide every (package, channel) pair, checking registries in parallel.

    Args:
        packages: Packages in report order.
        change_set: Change detection result, or None when not requested.
        channels: Channels enabled for this run.
        registry_clients: Client per channel.
        mode: Release or nightly versioning.
        concurrency: Maximum registry checks in flight.
        today: UTC date for nightly versions, fixed once for the whole run.
        epoch: Day zero of the nightly counter.

    Returns:
        Map of package name → channel → decision, in ``packages`` order.
        Excluded packages map to an empty dict.
    """
    enabled = list(channels)
    today = today or utc_today()

    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="registry") as pool:
        futures = {}
        for package in packages:
            if package.excluded:
                continue
            version = resolve_version(package.version, mode, today=today, epoch=epoch)
            changed = change_set is not None and change_set.is_changed(package.name)
            for channel in channels_to_check(package, enabled):
                futures[package.name, channel] = pool.submit(
                    decide,
                    package,
                    channel,
                    version,
                    changed,
                    registry_clients.get(channel),
                )

        results: dict[str, Decisions] = {}
        for package in packages:
            results[package.name] = {
                channel: futures[package.name, channel].result()
                for channel in channels_to_check(package, enabled)
                if (package.name, channel) in futures
            }
    return results
