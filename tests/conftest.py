"""
Pytest configuration and fixtures for depver tests.
"""

from __future__ import annotations

import os
from typing import Any, Awaitable, Callable, Generator, Union
from unittest.mock import patch

import httpx
import pytest

from depver.cache import TTLCache
from depver.config import Settings, clear_settings_cache
from depver.registry.client import DepsDevClient

Handler = Callable[[httpx.Request], Union[httpx.Response, Awaitable[httpx.Response]]]


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Replacement for asyncio.sleep that records delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "REGISTRY_API_BASE": "https://registry.test/v3alpha/",
        "REQUEST_TIMEOUT_SECONDS": "5",
        "MAX_ATTEMPTS": "3",
        "RETRY_BASE_DELAY_SECONDS": "0.5",
        "RETRY_MAX_DELAY_SECONDS": "8",
        "CACHE_MAX_ENTRIES": "100",
        "CACHE_TTL_OVERRIDES": '{"npm": 60}',
        "BATCH_MAX_PACKAGES": "50",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults, isolated from .env files."""
    return Settings(_env_file=None, REGISTRY_API_BASE="https://registry.test/v3alpha")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    """Small cache driven by the fake clock."""
    return TTLCache(max_entries=10, clock=clock)


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_client(
    settings: Settings, sleeps: SleepRecorder
) -> Callable[..., DepsDevClient]:
    """Factory for clients whose HTTP traffic goes to a mock handler."""

    def factory(handler: Handler, **overrides: Any) -> DepsDevClient:
        client_settings = settings.model_copy(update=overrides) if overrides else settings
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client = DepsDevClient(settings=client_settings, http_client=http_client, sleep=sleeps)
        return client

    return factory


def _versions_payload(
    name: str,
    versions: list[dict[str, Any]],
    system: str = "NPM",
) -> dict[str, Any]:
    return {
        "packageKey": {"system": system, "name": name},
        "versions": [
            {
                "versionKey": {"system": system, "name": name, "version": v["version"]},
                **{k: val for k, val in v.items() if k != "version"},
            }
            for v in versions
        ],
    }


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def versions_payload() -> Callable[..., dict[str, Any]]:
    """Builder for deps.dev style package payloads."""
    return _versions_payload
