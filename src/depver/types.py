"""
Core types for package version resolution.

This module defines the data structures shared by the cache, the registry
client, the batch orchestrator and the tool layer:
- Ecosystem enum and per-ecosystem tables (cache TTLs, PURL types)
- Frozen dataclasses for registry data (PackageVersion, VersionsResult,
  LatestVersionResult)
- Batch result containers (BatchRequest, BatchItemResult, BatchResult)

Every result type serializes to the camelCase wire shape through to_dict().
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from uuid6 import uuid7


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "batch")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


class Ecosystem(str, Enum):
    """Package registry ecosystems supported by the versions endpoint."""

    NPM = "NPM"
    CARGO = "CARGO"
    PYPI = "PYPI"
    GO = "GO"
    RUBYGEMS = "RUBYGEMS"
    NUGET = "NUGET"

    @classmethod
    def parse(cls, value: str | Ecosystem) -> Ecosystem:
        """Parse an ecosystem tag, accepting any letter case."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            supported = ", ".join(e.value for e in cls)
            raise ValueError(
                f"Unsupported ecosystem {value!r} (expected one of: {supported})"
            ) from None


# Cache TTL per ecosystem, based on typical publish frequency
DEFAULT_TTL_SECONDS: dict[Ecosystem, float] = {
    Ecosystem.NPM: 30 * 60,
    Ecosystem.CARGO: 2 * 60 * 60,
    Ecosystem.PYPI: 60 * 60,
    Ecosystem.GO: 2 * 60 * 60,
    Ecosystem.RUBYGEMS: 60 * 60,
    Ecosystem.NUGET: 60 * 60,
}

# Package URL type per ecosystem
PURL_TYPES: dict[Ecosystem, str] = {
    Ecosystem.NPM: "npm",
    Ecosystem.CARGO: "cargo",
    Ecosystem.PYPI: "pypi",
    Ecosystem.GO: "golang",
    Ecosystem.RUBYGEMS: "gem",
    Ecosystem.NUGET: "nuget",
}


@dataclass(frozen=True)
class PackageVersion:
    """A single version record as reported by the registry."""

    version: str
    published_at: str | None = None
    is_default: bool = False
    is_deprecated: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        data: dict[str, Any] = {
            "version": self.version,
            "isDefault": self.is_default,
            "isDeprecated": self.is_deprecated,
        }
        if self.published_at is not None:
            data["publishedAt"] = self.published_at
        return data


@dataclass(frozen=True)
class VersionsResult:
    """All versions of a package, in registry order (not sorted)."""

    ecosystem: Ecosystem
    package_name: str
    versions: tuple[PackageVersion, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "ecosystem": self.ecosystem.value,
            "packageName": self.package_name,
            "versions": [v.to_dict() for v in self.versions],
        }


@dataclass(frozen=True)
class LatestVersionResult:
    """The single version chosen by latest-version selection."""

    version: str
    published_at: str | None = None
    is_default: bool | None = None

    @classmethod
    def from_version(cls, version: PackageVersion) -> LatestVersionResult:
        return cls(
            version=version.version,
            published_at=version.published_at,
            is_default=version.is_default,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        data: dict[str, Any] = {"version": self.version}
        if self.published_at is not None:
            data["publishedAt"] = self.published_at
        if self.is_default is not None:
            data["isDefault"] = self.is_default
        return data


BatchValue = Union[VersionsResult, LatestVersionResult]


@dataclass(frozen=True)
class BatchRequest:
    """One entry of a batch request."""

    ecosystem: Ecosystem
    name: str
    include_prerelease: bool = False


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome for one batch entry. Exactly one of value/error is set."""

    ecosystem: Ecosystem
    package_name: str
    cached: bool
    value: BatchValue | None = None
    error: str | None = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("BatchItemResult needs exactly one of value or error")

    @property
    def ok(self) -> bool:
        return self.value is not None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        data: dict[str, Any] = {
            "ecosystem": self.ecosystem.value,
            "packageName": self.package_name,
            "cached": self.cached,
        }
        if self.value is not None:
            data["value"] = self.value.to_dict()
        else:
            data["error"] = self.error
        return data


@dataclass
class BatchResult:
    """Merged batch outcome with summary counters."""

    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def cached(self) -> int:
        return sum(1 for r in self.results if r.cached)

    def summary(self) -> dict[str, int]:
        return {
            "total": self.total,
            "successful": self.successful,
            "failed": self.failed,
            "cached": self.cached,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary(),
        }


@dataclass(frozen=True)
class PurlResult:
    """A generated Package URL and where its version came from."""

    purl: str
    ecosystem: Ecosystem
    name: str
    version: str
    source: str  # "provided" | "latest_fetched"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict."""
        return {
            "purl": self.purl,
            "ecosystem": self.ecosystem.value,
            "name": self.name,
            "version": self.version,
            "source": self.source,
        }
