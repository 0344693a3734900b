"""
Tests for the depver CLI.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from depver import __version__
from depver.cli.main import app
from depver.registry.errors import RegistryError

runner = CliRunner()


def _mock_tools() -> MagicMock:
    tools = MagicMock()
    tools.client.close = AsyncMock()
    tools.get_latest_version = AsyncMock(
        return_value={"version": "18.2.0", "isDefault": True}
    )
    tools.check_package_exists = AsyncMock(return_value={"exists": False, "versionCount": 0})
    tools.generate_purl = AsyncMock(
        return_value={
            "purl": "pkg:npm/react@18.2.0",
            "ecosystem": "NPM",
            "name": "react",
            "version": "18.2.0",
            "source": "latest_fetched",
        }
    )
    return tools


class TestCommands:
    """Tests for CLI commands."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_latest(self) -> None:
        tools = _mock_tools()
        with patch("depver.cli.main.create_tools", return_value=tools):
            result = runner.invoke(app, ["latest", "npm", "react"])

        assert result.exit_code == 0
        assert "18.2.0" in result.stdout
        tools.get_latest_version.assert_awaited_once_with("npm", "react", False)
        tools.client.close.assert_awaited_once()

    def test_latest_json(self) -> None:
        tools = _mock_tools()
        with patch("depver.cli.main.create_tools", return_value=tools):
            result = runner.invoke(app, ["latest", "npm", "react", "--pre", "--json"])

        assert result.exit_code == 0
        assert '"version": "18.2.0"' in result.stdout
        tools.get_latest_version.assert_awaited_once_with("npm", "react", True)

    def test_registry_error_exits_nonzero(self) -> None:
        tools = _mock_tools()
        tools.get_latest_version = AsyncMock(
            side_effect=RegistryError(404, "GET /systems/NPM/packages/ghost", "HTTP 404: not found")
        )
        with patch("depver.cli.main.create_tools", return_value=tools):
            result = runner.invoke(app, ["latest", "npm", "ghost"])

        assert result.exit_code == 1
        tools.client.close.assert_awaited_once()

    def test_exists_missing_exits_one(self) -> None:
        with patch("depver.cli.main.create_tools", return_value=_mock_tools()):
            result = runner.invoke(app, ["exists", "pypi", "nope"])

        assert result.exit_code == 1
        assert "was not found" in result.stdout

    def test_purl(self) -> None:
        with patch("depver.cli.main.create_tools", return_value=_mock_tools()):
            result = runner.invoke(app, ["purl", "npm", "react"])

        assert result.exit_code == 0
        assert "pkg:npm/react@18.2.0" in result.stdout

    def test_batch_with_failed_item(self) -> None:
        tools = _mock_tools()
        tools.get_latest_versions_batch = AsyncMock(
            return_value={
                "results": [
                    {
                        "ecosystem": "NPM",
                        "packageName": "react",
                        "cached": True,
                        "value": {"version": "18.2.0"},
                    },
                    {
                        "ecosystem": "NPM",
                        "packageName": "x",
                        "cached": False,
                        "error": "HTTP 400: invalid name [/x]",
                    },
                ],
                "summary": {"total": 2, "successful": 1, "failed": 1, "cached": 1},
            }
        )
        with patch("depver.cli.main.create_tools", return_value=tools):
            result = runner.invoke(app, ["batch", "NPM:react", "npm:x", "--pre"])

        assert result.exit_code == 0, result.output
        assert "18.2.0" in result.stdout
        assert "[/x]" in result.stdout
        assert "total=2 successful=1 failed=1 cached=1" in result.stdout
        tools.get_latest_versions_batch.assert_awaited_once_with([
            {"ecosystem": "NPM", "name": "react", "include_prerelease": True},
            {"ecosystem": "npm", "name": "x", "include_prerelease": True},
        ])

    def test_batch_all_versions(self) -> None:
        tools = _mock_tools()
        tools.get_package_versions_batch = AsyncMock(
            return_value={
                "results": [
                    {
                        "ecosystem": "CARGO",
                        "packageName": "serde",
                        "cached": False,
                        "value": {
                            "ecosystem": "CARGO",
                            "packageName": "serde",
                            "versions": [{"version": "1.0.0"}, {"version": "1.0.1"}],
                        },
                    },
                ],
                "summary": {"total": 1, "successful": 1, "failed": 0, "cached": 0},
            }
        )
        with patch("depver.cli.main.create_tools", return_value=tools):
            result = runner.invoke(app, ["batch", "CARGO:serde", "--all-versions"])

        assert result.exit_code == 0, result.output
        assert "2 versions" in result.stdout

    def test_error_message_with_brackets(self) -> None:
        tools = _mock_tools()
        tools.get_latest_version = AsyncMock(
            side_effect=RegistryError(
                400, "GET /systems/NPM/packages/x", "HTTP 400: invalid name [/x]"
            )
        )
        with patch("depver.cli.main.create_tools", return_value=tools):
            result = runner.invoke(app, ["latest", "npm", "x"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)

    def test_batch_rejects_bad_package_spec(self) -> None:
        result = runner.invoke(app, ["batch", "react"])

        assert result.exit_code == 2

    def test_config(self) -> None:
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "REGISTRY_API_BASE" in result.stdout
