"""Version parsing and nightly version utilities.

Release builds publish the declared manifest version verbatim. Nightly builds
append the number of days elapsed since a fixed epoch, so every run on the
same UTC day resolves to the same version and each new day sorts after the
previous one:

    1.3.44 on day 203 → 1.3.44.203
"""

from __future__ import annotations

from datetime import date, datetime, timezone

import semver

from .models import ReleaseMode

DEFAULT_EPOCH = date(2024, 1, 1)


def parse_version(version_str: str) -> semver.Version:
    """Parse a version string into a semver.Version object.

    Handles incomplete versions by padding with zeros:
    - "1" → "1.0.0"
    - "1.2" → "1.2.0"
    - "1.2.3-rc.1+build.5" → pre-release and build metadata kept

    Raises:
        ValueError: If the string is not a (possibly abbreviated) semver.
    """
    return semver.Version.parse(version_str, optional_minor_and_patch=True)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def days_since_epoch(today: date, epoch: date = DEFAULT_EPOCH) -> int:
    """Whole days elapsed between ``epoch`` and ``today``.

    Raises:
        ValueError: If ``today`` is before the epoch.
    """
    days = (today - epoch).days
    if days < 0:
        raise ValueError(f"{today.isoformat()} is before epoch {epoch.isoformat()}")
    return days


def nightly_version(declared: str, days: int) -> str:
    """Append the day counter to a declared version.

    Examples:
        nightly_version("1.3.44", 203) → "1.3.44.203"
        nightly_version("2.0.0-rc.1", 5) → "2.0.0-rc.1.5"
    """
    return f"{declared}.{days}"


def resolve_version(
    declared: str,
    mode: ReleaseMode,
    *,
    today: date | None = None,
    epoch: date = DEFAULT_EPOCH,
) -> str:
    """Compute the version to publish for ``mode``.

    Args:
        declared: Version string from the manifest.
        mode: RELEASE uses ``declared`` verbatim, NIGHTLY appends the day counter.
        today: UTC date of the run; defaults to the current UTC date.
        epoch: Day zero of the nightly counter.
    """
    if mode is ReleaseMode.RELEASE:
        return declared
    return nightly_version(declared, days_since_epoch(today or utc_today(), epoch))
