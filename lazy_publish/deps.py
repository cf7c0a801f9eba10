"""Dependency handling utilities.

Provides functions for parsing PEP 508 dependency strings into canonical
package names.
"""

from __future__ import annotations

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name


def dep_canonical_name(dep_str: str) -> str:
    """Extract the canonical package name from a PEP 508 dependency string.

    Handles version specifiers, extras, and normalizes the name per PEP 503
    (lowercase, hyphens instead of underscores).

    Examples:
        "requests>=2.0" → "requests"
        "My_Package[extra]~=1.0" → "my-package"

    Raises:
        packaging.requirements.InvalidRequirement: If the string is not PEP 508.
    """
    return canonicalize_name(Requirement(dep_str).name)


def declared_dependency_names(dep_strs: list[str], self_name: str) -> tuple[str, ...]:
    """Canonical names of every dependency, de-duplicated and sorted.

    A package may reference itself through extras (``pkg[all]`` pulling in
    ``pkg[cli]``); such self references are not dependencies.

    Raises:
        ValueError: If any string is not a valid PEP 508 requirement.
    """
    names: set[str] = set()
    for dep_str in dep_strs:
        try:
            name = dep_canonical_name(dep_str)
        except InvalidRequirement as exc:
            raise ValueError(f"invalid requirement {dep_str!r}: {exc}") from exc
        if name != self_name:
            names.add(name)
    return tuple(sorted(names))
