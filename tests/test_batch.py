"""
Tests for the batch orchestrator.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from depver.cache import TTLCache, latest_key, package_key
from depver.registry.batch import BatchOrchestrator
from depver.registry.errors import RegistryError
from depver.types import (
    BatchRequest,
    Ecosystem,
    LatestVersionResult,
    PackageVersion,
    VersionsResult,
)


def _versions_for(ecosystem: Ecosystem, name: str) -> VersionsResult:
    return VersionsResult(
        ecosystem=ecosystem,
        package_name=name,
        versions=(PackageVersion("1.0.0"), PackageVersion("2.0.0")),
    )


def _not_found(ecosystem: Ecosystem, name: str) -> RegistryError:
    return RegistryError(
        404, f"GET /systems/{ecosystem.value}/packages/{name}", "HTTP 404: not found"
    )


@pytest.fixture
def mock_client() -> MagicMock:
    """Registry client that knows every package except 'missing'."""
    client = MagicMock()

    async def fetch_versions(ecosystem: Ecosystem, name: str) -> VersionsResult:
        if name == "missing":
            raise _not_found(ecosystem, name)
        return _versions_for(ecosystem, name)

    async def resolve_latest_version(
        ecosystem: Ecosystem, name: str, include_prerelease: bool = False
    ) -> LatestVersionResult:
        if name == "missing":
            raise _not_found(ecosystem, name)
        return LatestVersionResult(version="3.0.0-rc.1" if include_prerelease else "2.0.0")

    client.fetch_versions = AsyncMock(side_effect=fetch_versions)
    client.resolve_latest_version = AsyncMock(side_effect=resolve_latest_version)
    return client


@pytest.fixture
def orchestrator(mock_client: MagicMock, cache: TTLCache) -> BatchOrchestrator:
    return BatchOrchestrator(mock_client, cache, max_packages=5)


class TestFailureIsolation:
    """One failing item never affects its siblings."""

    @pytest.mark.asyncio
    async def test_mixed_success_and_failure(self, orchestrator: BatchOrchestrator) -> None:
        result = await orchestrator.fetch_versions_batch([
            BatchRequest(Ecosystem.NPM, "react"),
            BatchRequest(Ecosystem.NPM, "missing"),
        ])

        assert result.summary() == {"total": 2, "successful": 1, "failed": 1, "cached": 0}
        ok, failed = result.results
        assert ok.value == _versions_for(Ecosystem.NPM, "react")
        assert failed.value is None
        assert failed.error == "HTTP 404: not found"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_item_error(
        self, mock_client: MagicMock, cache: TTLCache
    ) -> None:
        mock_client.fetch_versions = AsyncMock(side_effect=RuntimeError())
        orchestrator = BatchOrchestrator(mock_client, cache)

        result = await orchestrator.fetch_versions_batch([BatchRequest(Ecosystem.PYPI, "x")])

        assert result.results[0].error == "RuntimeError"
        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(
        self, orchestrator: BatchOrchestrator, cache: TTLCache
    ) -> None:
        await orchestrator.fetch_versions_batch([BatchRequest(Ecosystem.NPM, "missing")])

        assert cache.get(package_key(Ecosystem.NPM, "missing")) is None

    @pytest.mark.asyncio
    async def test_empty_batch(self, orchestrator: BatchOrchestrator) -> None:
        result = await orchestrator.resolve_latest_batch([])

        assert result.summary() == {"total": 0, "successful": 0, "failed": 0, "cached": 0}


class TestCacheFusion:
    """Cached entries skip the network and are flagged."""

    @pytest.mark.asyncio
    async def test_second_batch_served_from_cache(
        self, orchestrator: BatchOrchestrator, mock_client: MagicMock
    ) -> None:
        first = await orchestrator.fetch_versions_batch([BatchRequest(Ecosystem.NPM, "react")])
        assert first.results[0].cached is False
        assert mock_client.fetch_versions.await_count == 1

        second = await orchestrator.fetch_versions_batch([
            BatchRequest(Ecosystem.NPM, "react"),
            BatchRequest(Ecosystem.CARGO, "serde"),
        ])

        assert [r.cached for r in second.results] == [True, False]
        assert second.cached == 1
        assert mock_client.fetch_versions.await_count == 2

    @pytest.mark.asyncio
    async def test_latest_keys_separate_prerelease(
        self, orchestrator: BatchOrchestrator, cache: TTLCache
    ) -> None:
        result = await orchestrator.resolve_latest_batch([
            BatchRequest(Ecosystem.NPM, "next"),
            BatchRequest(Ecosystem.NPM, "next", include_prerelease=True),
        ])

        assert [r.value.version for r in result.results] == ["2.0.0", "3.0.0-rc.1"]
        assert cache.get(latest_key(Ecosystem.NPM, "next")).version == "2.0.0"
        assert cache.get(latest_key(Ecosystem.NPM, "next", True)).version == "3.0.0-rc.1"

    @pytest.mark.asyncio
    async def test_to_dict_shape(self, orchestrator: BatchOrchestrator) -> None:
        result = await orchestrator.resolve_latest_batch([
            BatchRequest(Ecosystem.NPM, "react"),
            BatchRequest(Ecosystem.NPM, "missing"),
        ])

        assert result.to_dict() == {
            "results": [
                {
                    "ecosystem": "NPM",
                    "packageName": "react",
                    "cached": False,
                    "value": {"version": "2.0.0"},
                },
                {
                    "ecosystem": "NPM",
                    "packageName": "missing",
                    "cached": False,
                    "error": "HTTP 404: not found",
                },
            ],
            "summary": {"total": 2, "successful": 1, "failed": 1, "cached": 0},
        }


class TestOrderingAndLimits:
    """Result order and batch size handling."""

    @pytest.mark.asyncio
    async def test_results_follow_input_order(
        self, mock_client: MagicMock, cache: TTLCache
    ) -> None:
        """Slow early calls still land in their original slot."""
        delays = {"slow": 0.05, "medium": 0.02, "fast": 0.0}

        async def fetch_versions(ecosystem: Ecosystem, name: str) -> VersionsResult:
            await asyncio.sleep(delays.get(name, 0))
            return _versions_for(ecosystem, name)

        mock_client.fetch_versions = AsyncMock(side_effect=fetch_versions)
        cache.set(package_key(Ecosystem.NPM, "cached"), _versions_for(Ecosystem.NPM, "cached"), Ecosystem.NPM)
        orchestrator = BatchOrchestrator(mock_client, cache)

        result = await orchestrator.fetch_versions_batch([
            BatchRequest(Ecosystem.NPM, "slow"),
            BatchRequest(Ecosystem.NPM, "cached"),
            BatchRequest(Ecosystem.NPM, "medium"),
            BatchRequest(Ecosystem.NPM, "fast"),
        ])

        assert [r.package_name for r in result.results] == ["slow", "cached", "medium", "fast"]
        assert [r.cached for r in result.results] == [False, True, False, False]

    @pytest.mark.asyncio
    async def test_misses_are_fetched_concurrently(
        self, mock_client: MagicMock, cache: TTLCache
    ) -> None:
        """Each call blocks until every call has started."""
        names = ["a", "b", "c", "d"]
        started: list[str] = []
        all_started = asyncio.Event()

        async def fetch_versions(ecosystem: Ecosystem, name: str) -> VersionsResult:
            started.append(name)
            if len(started) == len(names):
                all_started.set()
            await all_started.wait()
            return _versions_for(ecosystem, name)

        mock_client.fetch_versions = AsyncMock(side_effect=fetch_versions)
        orchestrator = BatchOrchestrator(mock_client, cache)

        result = await asyncio.wait_for(
            orchestrator.fetch_versions_batch(
                [BatchRequest(Ecosystem.NPM, name) for name in names]
            ),
            timeout=2,
        )

        assert sorted(started) == names
        assert result.successful == len(names)

    @pytest.mark.asyncio
    async def test_oversized_batch_still_processed(
        self, orchestrator: BatchOrchestrator, mock_client: MagicMock
    ) -> None:
        requests = [BatchRequest(Ecosystem.PYPI, f"pkg{i}") for i in range(8)]

        result = await orchestrator.fetch_versions_batch(requests)

        assert result.total == 8
        assert result.successful == 8
        assert mock_client.fetch_versions.await_count == 8

    @pytest.mark.asyncio
    async def test_duplicates_fetched_independently(
        self, orchestrator: BatchOrchestrator, mock_client: MagicMock
    ) -> None:
        result = await orchestrator.fetch_versions_batch([
            BatchRequest(Ecosystem.NPM, "react"),
            BatchRequest(Ecosystem.NPM, "react"),
        ])

        assert result.total == 2
        assert mock_client.fetch_versions.await_count == 2
