"""
Batch orchestration over the registry client.

For a list of requests the orchestrator:
1. Probes the cache for every entry.
2. Fans the misses out concurrently (no internal concurrency cap).
3. Settles every call independently: one failure never cancels or
   affects its siblings.
4. Caches successes and embeds failures per item.

Results come back in input order. The orchestrator never retries; retries
belong to the registry client.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Sequence

from depver.cache import TTLCache, latest_key, package_key
from depver.logging import get_logger, log_context
from depver.registry.client import DepsDevClient
from depver.types import BatchItemResult, BatchRequest, BatchResult, BatchValue, generate_id

logger = get_logger(__name__)

DEFAULT_MAX_PACKAGES = 50


class BatchOrchestrator:
    """Fuses cached and freshly fetched results for many packages."""

    def __init__(
        self,
        client: DepsDevClient,
        cache: TTLCache,
        max_packages: int = DEFAULT_MAX_PACKAGES,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Registry client used for cache misses.
            cache: Shared result cache.
            max_packages: Advisory batch ceiling; larger batches are logged
                but still processed.
        """
        self.client = client
        self.cache = cache
        self.max_packages = max_packages

    async def fetch_versions_batch(self, requests: Sequence[BatchRequest]) -> BatchResult:
        """Fetch full version lists for many packages."""
        return await self._run(
            requests,
            key_for=lambda r: package_key(r.ecosystem, r.name),
            fetch=lambda r: self.client.fetch_versions(r.ecosystem, r.name),
        )

    async def resolve_latest_batch(self, requests: Sequence[BatchRequest]) -> BatchResult:
        """Resolve the latest version for many packages."""
        return await self._run(
            requests,
            key_for=lambda r: latest_key(r.ecosystem, r.name, r.include_prerelease),
            fetch=lambda r: self.client.resolve_latest_version(
                r.ecosystem, r.name, r.include_prerelease
            ),
        )

    async def _run(
        self,
        requests: Sequence[BatchRequest],
        key_for: Callable[[BatchRequest], str],
        fetch: Callable[[BatchRequest], Awaitable[BatchValue]],
    ) -> BatchResult:
        requests = list(requests)
        with log_context(batch_id=generate_id("batch")):
            if len(requests) > self.max_packages:
                logger.warning(
                    "Batch exceeds advisory size",
                    size=len(requests),
                    limit=self.max_packages,
                )

            slots: list[BatchItemResult | None] = [None] * len(requests)
            misses: list[int] = []

            for index, request in enumerate(requests):
                hit = self.cache.get(key_for(request))
                if hit is not None:
                    slots[index] = BatchItemResult(
                        ecosystem=request.ecosystem,
                        package_name=request.name,
                        cached=True,
                        value=hit,
                    )
                else:
                    misses.append(index)

            outcomes: list[Any] = await asyncio.gather(
                *(fetch(requests[i]) for i in misses),
                return_exceptions=True,
            )

            for index, outcome in zip(misses, outcomes):
                request = requests[index]
                if isinstance(outcome, BaseException):
                    logger.warning(
                        "Batch item failed",
                        ecosystem=request.ecosystem.value,
                        package=request.name,
                        error=str(outcome),
                    )
                    slots[index] = BatchItemResult(
                        ecosystem=request.ecosystem,
                        package_name=request.name,
                        cached=False,
                        error=str(outcome) or type(outcome).__name__,
                    )
                    continue

                self.cache.set(key_for(request), outcome, request.ecosystem)
                slots[index] = BatchItemResult(
                    ecosystem=request.ecosystem,
                    package_name=request.name,
                    cached=False,
                    value=outcome,
                )

            result = BatchResult(results=[s for s in slots if s is not None])
            logger.info("Batch complete", **result.summary())
            return result
