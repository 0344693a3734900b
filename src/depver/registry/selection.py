"""
Latest stable version selection.

Given the registry's version list for a package, pick the single version a
caller should treat as "latest":

1. A version the registry marks as default (and not deprecated) wins outright.
2. Otherwise deprecated versions are dropped, and unless prereleases are
   wanted, so are semver prereleases. Versions that are not semver cannot be
   classified and are kept.
3. The rest are ordered descending: semver entries by precedence, then
   non-semver entries by reverse string order. The sort is stable, so equal
   precedence (e.g. differing only in build metadata) keeps registry order.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable

from semver import Version

from depver.registry.errors import RegistryError, versions_endpoint
from depver.types import LatestVersionResult, PackageVersion, VersionsResult

_LOOSE_PREFIX = re.compile(r"^[=v]+")


def parse_semver(text: str) -> Version | None:
    """Parse a version string loosely; None when it is not semver."""
    candidate = _LOOSE_PREFIX.sub("", text.strip()).strip()
    try:
        return Version.parse(candidate)
    except (ValueError, TypeError):
        return None


def is_prerelease(text: str) -> bool:
    """True only for versions that parse as semver and carry a prerelease tag."""
    parsed = parse_semver(text)
    return parsed is not None and bool(parsed.prerelease)


def _compare_descending(
    a: tuple[PackageVersion, Version | None],
    b: tuple[PackageVersion, Version | None],
) -> int:
    (va, sa), (vb, sb) = a, b
    if sa is not None and sb is not None:
        return sb.compare(sa)
    if sa is not None:
        return -1
    if sb is not None:
        return 1
    if va.version == vb.version:
        return 0
    return -1 if va.version > vb.version else 1


def sort_descending(versions: Iterable[PackageVersion]) -> list[PackageVersion]:
    """Order versions newest first (semver before non-semver)."""
    keyed = [(v, parse_semver(v.version)) for v in versions]
    keyed.sort(key=cmp_to_key(_compare_descending))
    return [v for v, _ in keyed]


def select_latest_version(
    versions: Iterable[PackageVersion],
    include_prerelease: bool = False,
) -> PackageVersion | None:
    """Pick the latest version, or None when no candidate qualifies."""
    versions = list(versions)

    for version in versions:
        if version.is_default and not version.is_deprecated:
            return version

    candidates = [v for v in versions if not v.is_deprecated]
    if not include_prerelease:
        candidates = [v for v in candidates if not is_prerelease(v.version)]

    ordered = sort_descending(candidates)
    return ordered[0] if ordered else None


def latest_from_versions(
    result: VersionsResult,
    include_prerelease: bool = False,
) -> LatestVersionResult:
    """Resolve the latest version from a fetched version list.

    Raises:
        RegistryError: 404 when the list is empty or nothing qualifies.
    """
    endpoint = versions_endpoint(result.ecosystem.value, result.package_name)

    if not result.versions:
        raise RegistryError(404, endpoint, "No versions found for package")

    chosen = select_latest_version(result.versions, include_prerelease)
    if chosen is None:
        raise RegistryError(404, endpoint, "No non-deprecated versions found")

    return LatestVersionResult.from_version(chosen)
