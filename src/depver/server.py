"""
MCP server exposing the version tools over stdio.

Registers one MCP tool per VersionTools operation. Registry and request
errors are returned to the client as tool errors whose text is the uniform
error object (statusCode, endpoint, message, kind).
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable

import orjson
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from depver.exceptions import DepverError
from depver.logging import get_logger
from depver.registry.errors import error_payload
from depver.schemas import PackageQuery
from depver.tools import VersionTools
from depver.types import Ecosystem

logger = get_logger(__name__)

SERVER_NAME = "depver"


async def _run_tool(call: Awaitable[dict[str, Any]]) -> dict[str, Any]:
    try:
        return await call
    except DepverError as e:
        logger.warning("Tool call failed", error=str(e))
        raise ToolError(orjson.dumps(error_payload(e)).decode("utf-8")) from e


def create_server(tools: VersionTools) -> FastMCP:
    """Build the MCP server around a VersionTools instance."""

    @asynccontextmanager
    async def lifespan(_: FastMCP) -> AsyncIterator[dict[str, Any]]:
        try:
            yield {}
        finally:
            await tools.client.close()

    mcp = FastMCP(SERVER_NAME, lifespan=lifespan)

    @mcp.tool(
        name="get_package_versions",
        description=(
            "Get all versions for a package in a specific ecosystem "
            "(NPM, CARGO, PYPI, GO, RUBYGEMS, NUGET)"
        ),
    )
    async def get_package_versions(ecosystem: Ecosystem, name: str) -> dict[str, Any]:
        return await _run_tool(tools.get_package_versions(ecosystem, name))

    @mcp.tool(name="get_latest_version", description="Get the latest version for a package")
    async def get_latest_version(
        ecosystem: Ecosystem, name: str, include_prerelease: bool = False
    ) -> dict[str, Any]:
        return await _run_tool(tools.get_latest_version(ecosystem, name, include_prerelease))

    @mcp.tool(
        name="check_package_exists",
        description="Check whether a package exists and how many versions it has",
    )
    async def check_package_exists(ecosystem: Ecosystem, name: str) -> dict[str, Any]:
        return await _run_tool(tools.check_package_exists(ecosystem, name))

    @mcp.tool(
        name="get_package_versions_batch",
        description=(
            "Get all versions for multiple packages in parallel. "
            f"Supports up to {tools.settings.BATCH_MAX_PACKAGES} packages per request."
        ),
    )
    async def get_package_versions_batch(packages: list[PackageQuery]) -> dict[str, Any]:
        return await _run_tool(tools.get_package_versions_batch(packages))

    @mcp.tool(
        name="get_latest_versions_batch",
        description=(
            "Get the latest version for multiple packages in parallel. "
            f"Supports up to {tools.settings.BATCH_MAX_PACKAGES} packages per request."
        ),
    )
    async def get_latest_versions_batch(packages: list[PackageQuery]) -> dict[str, Any]:
        return await _run_tool(tools.get_latest_versions_batch(packages))

    @mcp.tool(
        name="generate_purl",
        description=(
            "Generate a Package URL (PURL) for a package. "
            "If version is omitted, the latest version is resolved first."
        ),
    )
    async def generate_purl(
        ecosystem: Ecosystem,
        name: str,
        version: str | None = None,
        include_prerelease: bool = False,
    ) -> dict[str, Any]:
        return await _run_tool(
            tools.generate_purl(ecosystem, name, version, include_prerelease)
        )

    @mcp.tool(
        name="generate_purls_batch",
        description="Generate PURLs for multiple packages. Versions are resolved when omitted.",
    )
    async def generate_purls_batch(packages: list[PackageQuery]) -> dict[str, Any]:
        return await _run_tool(tools.generate_purls_batch(packages))

    return mcp


def serve(tools: VersionTools) -> None:
    """Run the MCP server on stdio until the client disconnects."""
    logger.info("Starting MCP server on stdio", name=SERVER_NAME)
    create_server(tools).run()
