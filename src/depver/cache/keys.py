"""
Cache key construction.

Keys are plain strings built from (ecosystem, package name[, version],
operation tag). Each operation caches a different shape, so each gets its
own tag; the latest-version tag also encodes the prerelease flag because the
selected version depends on it.
"""

from __future__ import annotations

from depver.types import Ecosystem

TAG_PACKAGE = "package"
TAG_VERSION = "version"
TAG_LATEST = "latest"
TAG_LATEST_PRERELEASE = "latest+pre"


def package_key(ecosystem: Ecosystem, name: str) -> str:
    """Key for the full version list of a package."""
    return f"{ecosystem.value}:{name}#{TAG_PACKAGE}"


def version_key(ecosystem: Ecosystem, name: str, version: str) -> str:
    """Key for a single version of a package."""
    return f"{ecosystem.value}:{name}@{version}#{TAG_VERSION}"


def latest_key(ecosystem: Ecosystem, name: str, include_prerelease: bool = False) -> str:
    """Key for the resolved latest version of a package."""
    tag = TAG_LATEST_PRERELEASE if include_prerelease else TAG_LATEST
    return f"{ecosystem.value}:{name}#{tag}"
