"""
Version tools.

VersionTools implements every tool operation on top of the registry client,
the shared cache and the batch orchestrator. Each method takes plain
arguments and returns a JSON-ready dict; failures are raised as
RegistryError or InvalidRequestError for the transport layer to format.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence, Union
from urllib.parse import quote

from pydantic import ValidationError

from depver.cache import TTLCache, latest_key, package_key
from depver.config import Settings, get_settings
from depver.exceptions import DepverError, InvalidRequestError
from depver.logging import get_logger, log_context
from depver.registry.batch import BatchOrchestrator
from depver.registry.client import DepsDevClient
from depver.registry.selection import latest_from_versions
from depver.schemas import PackageQuery
from depver.types import (
    PURL_TYPES,
    Ecosystem,
    LatestVersionResult,
    PurlResult,
    VersionsResult,
)

logger = get_logger(__name__)

PackageArg = Union[PackageQuery, Mapping[str, Any]]


def build_purl(ecosystem: Ecosystem, name: str, version: str) -> str:
    """Build a Package URL, percent-encoding the name (keeping '/') and version."""
    return f"pkg:{PURL_TYPES[ecosystem]}/{quote(name, safe='/')}@{quote(version, safe='')}"


def _parse_ecosystem(value: str | Ecosystem) -> Ecosystem:
    try:
        return Ecosystem.parse(value)
    except ValueError as e:
        raise InvalidRequestError(str(e), context={"field": "ecosystem"}) from e


def _parse_packages(packages: Sequence[PackageArg], limit: int) -> list[PackageQuery]:
    if len(packages) > limit:
        raise InvalidRequestError(
            f"Too many packages: {len(packages)} (maximum {limit} per request)",
            context={"field": "packages", "value": len(packages), "limit": limit},
        )

    parsed: list[PackageQuery] = []
    for index, item in enumerate(packages):
        if isinstance(item, PackageQuery):
            parsed.append(item)
            continue
        try:
            parsed.append(PackageQuery.model_validate(item))
        except ValidationError as e:
            raise InvalidRequestError(
                f"Invalid package at index {index}: {e.errors()[0]['msg']}",
                context={"field": f"packages[{index}]"},
            ) from e
    return parsed


class VersionTools:
    """Tool operations over the registry, cache and batch orchestrator."""

    def __init__(
        self,
        client: DepsDevClient,
        cache: TTLCache,
        orchestrator: BatchOrchestrator | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.client = client
        self.cache = cache
        self.orchestrator = orchestrator or BatchOrchestrator(
            client, cache, max_packages=self.settings.BATCH_MAX_PACKAGES
        )

    async def _versions(self, ecosystem: Ecosystem, name: str) -> VersionsResult:
        key = package_key(ecosystem, name)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        result = await self.client.fetch_versions(ecosystem, name)
        self.cache.set(key, result, ecosystem)
        return result

    async def _latest(
        self, ecosystem: Ecosystem, name: str, include_prerelease: bool
    ) -> LatestVersionResult:
        key = latest_key(ecosystem, name, include_prerelease)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        # A cached version list answers without another request
        versions = self.cache.get(package_key(ecosystem, name))
        if versions is not None:
            logger.debug(
                "Resolving latest from cached version list",
                ecosystem=ecosystem.value,
                package=name,
            )
            result = latest_from_versions(versions, include_prerelease)
        else:
            result = await self.client.resolve_latest_version(
                ecosystem, name, include_prerelease
            )
        self.cache.set(key, result, ecosystem)
        return result

    async def get_package_versions(self, ecosystem: str | Ecosystem, name: str) -> dict[str, Any]:
        """Get all versions for a package."""
        with log_context(tool="get_package_versions"):
            result = await self._versions(_parse_ecosystem(ecosystem), name)
            return result.to_dict()

    async def get_latest_version(
        self,
        ecosystem: str | Ecosystem,
        name: str,
        include_prerelease: bool = False,
    ) -> dict[str, Any]:
        """Get the latest version for a package."""
        with log_context(tool="get_latest_version"):
            result = await self._latest(_parse_ecosystem(ecosystem), name, include_prerelease)
            return result.to_dict()

    async def check_package_exists(self, ecosystem: str | Ecosystem, name: str) -> dict[str, Any]:
        """Check whether a package exists and count its versions."""
        with log_context(tool="check_package_exists"):
            return await self.client.package_exists(_parse_ecosystem(ecosystem), name)

    async def get_package_versions_batch(self, packages: Sequence[PackageArg]) -> dict[str, Any]:
        """Get all versions for many packages concurrently."""
        with log_context(tool="get_package_versions_batch"):
            queries = _parse_packages(packages, self.settings.BATCH_MAX_PACKAGES)
            result = await self.orchestrator.fetch_versions_batch(
                [q.to_request() for q in queries]
            )
            return result.to_dict()

    async def get_latest_versions_batch(self, packages: Sequence[PackageArg]) -> dict[str, Any]:
        """Get the latest version for many packages concurrently."""
        with log_context(tool="get_latest_versions_batch"):
            queries = _parse_packages(packages, self.settings.BATCH_MAX_PACKAGES)
            result = await self.orchestrator.resolve_latest_batch(
                [q.to_request() for q in queries]
            )
            return result.to_dict()

    async def generate_purl(
        self,
        ecosystem: str | Ecosystem,
        name: str,
        version: str | None = None,
        include_prerelease: bool = False,
    ) -> dict[str, Any]:
        """Generate a Package URL, resolving the latest version when omitted."""
        with log_context(tool="generate_purl"):
            eco = _parse_ecosystem(ecosystem)
            source = "provided"
            if not version:
                latest = await self._latest(eco, name, include_prerelease)
                version = latest.version
                source = "latest_fetched"

            return PurlResult(
                purl=build_purl(eco, name, version),
                ecosystem=eco,
                name=name,
                version=version,
                source=source,
            ).to_dict()

    async def generate_purls_batch(self, packages: Sequence[PackageArg]) -> dict[str, Any]:
        """Generate Package URLs for many packages, in input order."""
        queries = _parse_packages(packages, self.settings.BATCH_MAX_PACKAGES)
        results: list[dict[str, Any]] = []
        for query in queries:
            try:
                results.append(
                    await self.generate_purl(
                        query.ecosystem,
                        query.name,
                        version=query.version,
                        include_prerelease=query.include_prerelease,
                    )
                )
            except DepverError as e:
                results.append({
                    "ecosystem": query.ecosystem.value,
                    "name": query.name,
                    "error": e.message,
                })
        return {"total": len(queries), "results": results}

    def cache_stats(self) -> dict[str, int]:
        """Return cache statistics."""
        return self.cache.stats()


def create_tools(settings: Settings | None = None) -> VersionTools:
    """Wire a client, cache and orchestrator from settings.

    Args:
        settings: Settings to use. Defaults to get_settings().

    Returns:
        VersionTools sharing one cache across all operations.
    """
    settings = settings or get_settings()
    cache = TTLCache(max_entries=settings.CACHE_MAX_ENTRIES)
    for ecosystem, ttl in settings.ttl_overrides.items():
        cache.set_ttl_override(ecosystem, ttl)
    client = DepsDevClient(settings=settings)
    return VersionTools(client, cache, settings=settings)
