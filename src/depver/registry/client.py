"""
deps.dev registry client.

Fetches package version lists from the deps.dev v3alpha API and normalizes
them into VersionsResult. Every request goes through a retry loop:

- up to MAX_ATTEMPTS attempts, each with its own timeout
- retried: network errors, timeouts, HTTP 408/429/5xx
- not retried: any other non-2xx status (raised immediately)
- backoff before attempt i+1: min(base * 2**i, cap) plus up to 30% jitter
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import httpx
import orjson
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from depver.config import Settings, get_settings
from depver.logging import get_logger
from depver.registry.errors import (
    NETWORK_STATUS,
    RegistryError,
    is_retryable_status,
    versions_endpoint,
)
from depver.registry.selection import latest_from_versions
from depver.types import Ecosystem, LatestVersionResult, PackageVersion, VersionsResult

logger = get_logger(__name__)

JITTER_RATIO = 0.3


class RetryableStatusError(Exception):
    """Non-2xx response whose status allows another attempt."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class wait_capped_exponential_jitter(wait_base):
    """Exponential backoff capped at ``cap`` plus proportional jitter.

    Attempt i (0-indexed) waits min(base * 2**i, cap) + uniform(0, ratio * that).
    """

    def __init__(self, base: float, cap: float, jitter_ratio: float = JITTER_RATIO) -> None:
        self.base = base
        self.cap = cap
        self.jitter_ratio = jitter_ratio

    def __call__(self, retry_state: RetryCallState) -> float:
        attempt = retry_state.attempt_number - 1
        delay = min(self.base * (2**attempt), self.cap)
        return delay + random.uniform(0, self.jitter_ratio * delay)


def _log_before_retry(endpoint: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "Registry request failed, retrying",
            endpoint=endpoint,
            attempt=retry_state.attempt_number,
            delay_seconds=round(delay, 3),
            error=str(exc) or type(exc).__name__,
        )

    return before_sleep


def _normalize_versions(
    data: dict[str, Any], ecosystem: Ecosystem, name: str
) -> VersionsResult:
    """Map a deps.dev package payload onto VersionsResult.

    Nested keys of the wrong type are treated as absent.
    """
    versions: list[PackageVersion] = []
    for raw in data.get("versions") or []:
        if not isinstance(raw, dict):
            continue
        version_key = raw.get("versionKey")
        if not isinstance(version_key, dict):
            version_key = {}
        version = version_key.get("version") or raw.get("version")
        if not version:
            continue
        versions.append(
            PackageVersion(
                version=str(version),
                published_at=raw.get("publishedAt"),
                is_default=bool(raw.get("isDefault", False)),
                is_deprecated=bool(raw.get("isDeprecated", False)),
            )
        )

    package_key = data.get("packageKey")
    if not isinstance(package_key, dict):
        package_key = {}
    try:
        resolved_ecosystem = Ecosystem.parse(package_key.get("system") or ecosystem)
    except ValueError:
        resolved_ecosystem = ecosystem

    return VersionsResult(
        ecosystem=resolved_ecosystem,
        package_name=package_key.get("name") or name,
        versions=tuple(versions),
    )


class DepsDevClient:
    """Client for the deps.dev versions API.

    The underlying httpx.AsyncClient is created lazily unless one is
    injected. Use ``async with`` or call close() when done.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Settings to use. Defaults to get_settings().
            http_client: Pre-built HTTP client (e.g. with a mock transport).
            sleep: Coroutine used for backoff waits.
        """
        self.settings = settings or get_settings()
        self._client = http_client
        self._sleep = sleep

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with proper headers."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self.settings.USER_AGENT,
                    "Accept": "application/json",
                },
                timeout=httpx.Timeout(self.settings.REQUEST_TIMEOUT_SECONDS),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> DepsDevClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _retrying(self, endpoint: str) -> AsyncRetrying:
        return AsyncRetrying(
            retry=retry_if_exception_type(
                (RetryableStatusError, httpx.TransportError, asyncio.TimeoutError)
            ),
            stop=stop_after_attempt(self.settings.MAX_ATTEMPTS),
            wait=wait_capped_exponential_jitter(
                self.settings.RETRY_BASE_DELAY_SECONDS,
                self.settings.RETRY_MAX_DELAY_SECONDS,
            ),
            sleep=self._sleep,
            before_sleep=_log_before_retry(endpoint),
            reraise=True,
        )

    async def _attempt(self, url: str, endpoint: str) -> httpx.Response:
        """Issue one GET under its own timeout and classify the status."""
        client = await self._get_client()
        response = await asyncio.wait_for(
            client.get(url), timeout=self.settings.REQUEST_TIMEOUT_SECONDS
        )

        if response.is_success:
            return response

        if is_retryable_status(response.status_code):
            raise RetryableStatusError(response.status_code)

        body = response.text or "Unknown error"
        raise RegistryError(
            response.status_code, endpoint, f"HTTP {response.status_code}: {body}"
        )

    async def _fetch(self, url: str, endpoint: str) -> httpx.Response:
        """Fetch URL with timeout and retries.

        Raises:
            RegistryError: On a non-retryable status or once retries run out.
        """
        attempts = self.settings.MAX_ATTEMPTS
        try:
            return await self._retrying(endpoint)(self._attempt, url, endpoint)
        except RetryableStatusError as e:
            raise RegistryError(
                e.status_code,
                endpoint,
                f"Failed after {attempts} attempts: HTTP {e.status_code}",
            ) from e
        except (httpx.TransportError, asyncio.TimeoutError) as e:
            reason = str(e) or type(e).__name__
            raise RegistryError(
                NETWORK_STATUS,
                endpoint,
                f"Failed after {attempts} attempts: Network error: {reason}",
            ) from e

    async def fetch_versions(self, ecosystem: Ecosystem, name: str) -> VersionsResult:
        """Get all versions of a package.

        Args:
            ecosystem: Package ecosystem.
            name: Package name (case-sensitive, unencoded).

        Returns:
            VersionsResult in registry order.

        Raises:
            RegistryError: 404 when the package does not exist, or any other
                classified failure.
        """
        url = (
            f"{self.settings.REGISTRY_API_BASE}/systems/{ecosystem.value}"
            f"/packages/{quote(name, safe='')}"
        )
        endpoint = versions_endpoint(ecosystem.value, name)

        logger.debug("Fetching package versions", ecosystem=ecosystem.value, package=name)
        response = await self._fetch(url, endpoint)

        try:
            data = orjson.loads(response.content)
        except orjson.JSONDecodeError as e:
            raise RegistryError(
                502, endpoint, f"Malformed registry response: {e}"
            ) from e

        if not isinstance(data, dict):
            raise RegistryError(
                502, endpoint, "Malformed registry response: expected a JSON object"
            )

        result = _normalize_versions(data, ecosystem, name)
        logger.debug(
            "Fetched package versions",
            ecosystem=ecosystem.value,
            package=name,
            count=len(result.versions),
        )
        return result

    async def resolve_latest_version(
        self,
        ecosystem: Ecosystem,
        name: str,
        include_prerelease: bool = False,
    ) -> LatestVersionResult:
        """Get the latest version of a package.

        Raises:
            RegistryError: 404 when no version qualifies, or any fetch failure.
        """
        versions = await self.fetch_versions(ecosystem, name)
        return latest_from_versions(versions, include_prerelease)

    async def package_exists(self, ecosystem: Ecosystem, name: str) -> dict[str, Any]:
        """Check whether a package exists.

        Returns:
            {"exists": bool, "versionCount": int}. Only a 404 maps to
            exists=False; other failures propagate.
        """
        try:
            versions = await self.fetch_versions(ecosystem, name)
        except RegistryError as e:
            if e.is_not_found:
                return {"exists": False, "versionCount": 0}
            raise
        return {"exists": True, "versionCount": len(versions.versions)}
