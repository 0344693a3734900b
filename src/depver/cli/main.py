"""
CLI for depver.

Commands:
    depver versions ECOSYSTEM NAME - List all versions of a package
    depver latest ECOSYSTEM NAME - Resolve the latest version
    depver exists ECOSYSTEM NAME - Check that a package exists
    depver batch ECO:NAME... - Resolve many packages concurrently
    depver purl ECOSYSTEM NAME - Generate a Package URL
    depver serve - Run the MCP server on stdio
    depver config - Show current configuration
    depver version - Print version
"""

from __future__ import annotations

import asyncio
from typing import Annotated, Any, Awaitable, Callable, Optional

import orjson
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from depver import __version__
from depver.config import Settings, clear_settings_cache, get_settings
from depver.exceptions import ConfigurationError, DepverError
from depver.logging import setup_logging
from depver.tools import VersionTools, create_tools

app = typer.Typer(
    name="depver",
    help="Package version lookup across NPM, Cargo, PyPI, Go, RubyGems and NuGet",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)

JsonOption = Annotated[bool, typer.Option("--json", help="Print raw JSON")]
PrereleaseOption = Annotated[
    bool, typer.Option("--pre", help="Include prerelease versions")
]


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except ConfigurationError:
        return None


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'depver config' to see what's wrong."
        )
        raise typer.Exit(1)
    return settings


def _run(operation: Callable[[VersionTools], Awaitable[dict[str, Any]]]) -> dict[str, Any]:
    """Run one tool operation with a fresh client and report failures."""
    settings = _require_settings()

    async def runner() -> dict[str, Any]:
        tools = create_tools(settings)
        try:
            return await operation(tools)
        finally:
            await tools.client.close()

    try:
        return asyncio.run(runner())
    except DepverError as e:
        error_console.print(f"[red]Error:[/red] {escape(e.message)}")
        raise typer.Exit(1)


def _print_json(data: dict[str, Any]) -> None:
    console.print_json(orjson.dumps(data).decode("utf-8"))


def _split_package(spec: str) -> dict[str, Any]:
    ecosystem, sep, name = spec.partition(":")
    if not sep or not name:
        raise typer.BadParameter(f"Expected ECOSYSTEM:NAME, got {spec!r}")
    return {"ecosystem": ecosystem, "name": name}


@app.callback()
def main() -> None:
    """Configure logging before any command runs."""
    settings = _get_settings_safe()
    if settings is not None:
        setup_logging(settings.LOG_LEVEL, settings.LOG_FILE)
    else:
        setup_logging()


@app.command()
def versions(
    ecosystem: Annotated[str, typer.Argument(help="Package ecosystem (e.g., NPM)")],
    name: Annotated[str, typer.Argument(help="Package name")],
    limit: Annotated[
        int, typer.Option("--limit", "-l", help="Show at most this many versions")
    ] = 20,
    as_json: JsonOption = False,
) -> None:
    """List all versions of a package, in registry order."""
    data = _run(lambda tools: tools.get_package_versions(ecosystem, name))
    if as_json:
        _print_json(data)
        return

    table = Table(
        title=escape(f"{data['packageName']} ({data['ecosystem']})"),
        show_header=True,
    )
    table.add_column("Version", style="cyan")
    table.add_column("Published", style="dim")
    table.add_column("Default", justify="center")
    table.add_column("Deprecated", justify="center")

    shown = data["versions"][-limit:] if limit > 0 else data["versions"]
    for v in shown:
        table.add_row(
            escape(v["version"]),
            escape(v.get("publishedAt") or ""),
            "[green]✓[/green]" if v["isDefault"] else "",
            "[red]✗[/red]" if v["isDeprecated"] else "",
        )

    console.print(table)
    hidden = len(data["versions"]) - len(shown)
    if hidden > 0:
        console.print(f"[dim]{hidden} older versions not shown (use --limit 0)[/dim]")


@app.command()
def latest(
    ecosystem: Annotated[str, typer.Argument(help="Package ecosystem (e.g., NPM)")],
    name: Annotated[str, typer.Argument(help="Package name")],
    pre: PrereleaseOption = False,
    as_json: JsonOption = False,
) -> None:
    """Resolve the latest stable version of a package."""
    data = _run(lambda tools: tools.get_latest_version(ecosystem, name, pre))
    if as_json:
        _print_json(data)
        return

    details = f"[bold]Version:[/bold] {escape(data['version'])}"
    if data.get("publishedAt"):
        details += f"\n[bold]Published:[/bold] {escape(data['publishedAt'])}"
    if data.get("isDefault") is not None:
        details += f"\n[bold]Registry default:[/bold] {data['isDefault']}"
    console.print(
        Panel(
            details,
            title=f"[bold cyan]{escape(name)} ({escape(ecosystem.upper())})[/bold cyan]",
            border_style="cyan",
        )
    )


@app.command()
def exists(
    ecosystem: Annotated[str, typer.Argument(help="Package ecosystem (e.g., NPM)")],
    name: Annotated[str, typer.Argument(help="Package name")],
) -> None:
    """Check whether a package exists."""
    data = _run(lambda tools: tools.check_package_exists(ecosystem, name))
    if data["exists"]:
        console.print(
            f"[green]{escape(name)}[/green] exists with {data['versionCount']} versions"
        )
    else:
        console.print(
            f"[yellow]{escape(name)}[/yellow] was not found in {escape(ecosystem.upper())}"
        )
        raise typer.Exit(1)


@app.command()
def batch(
    packages: Annotated[
        list[str], typer.Argument(help="Packages as ECOSYSTEM:NAME (e.g., NPM:react)")
    ],
    all_versions: Annotated[
        bool,
        typer.Option("--all-versions", help="Fetch full version lists instead of the latest"),
    ] = False,
    pre: PrereleaseOption = False,
    as_json: JsonOption = False,
) -> None:
    """Resolve many packages concurrently."""
    requests = [{**_split_package(p), "include_prerelease": pre} for p in packages]
    if all_versions:
        data = _run(lambda tools: tools.get_package_versions_batch(requests))
    else:
        data = _run(lambda tools: tools.get_latest_versions_batch(requests))

    if as_json:
        _print_json(data)
        return

    table = Table(title="Batch results", show_header=True)
    table.add_column("Ecosystem", style="cyan")
    table.add_column("Package")
    table.add_column("Result", style="green")
    table.add_column("Cached", justify="center")

    for item in data["results"]:
        if "error" in item:
            outcome = f"[red]{escape(item['error'])}[/red]"
        elif all_versions:
            outcome = f"{len(item['value']['versions'])} versions"
        else:
            outcome = escape(item["value"]["version"])
        table.add_row(
            item["ecosystem"],
            escape(item["packageName"]),
            outcome,
            "✓" if item["cached"] else "",
        )

    console.print(table)
    summary = data["summary"]
    console.print(
        f"[dim]total={summary['total']} successful={summary['successful']} "
        f"failed={summary['failed']} cached={summary['cached']}[/dim]"
    )


@app.command()
def purl(
    ecosystem: Annotated[str, typer.Argument(help="Package ecosystem (e.g., NPM)")],
    name: Annotated[str, typer.Argument(help="Package name")],
    version: Annotated[
        Optional[str],
        typer.Option("--version", "-v", help="Explicit version (default: latest)"),
    ] = None,
    pre: PrereleaseOption = False,
) -> None:
    """Generate a Package URL for a package."""
    data = _run(lambda tools: tools.generate_purl(ecosystem, name, version, pre))
    console.print(data["purl"])


@app.command()
def serve() -> None:
    """Run the MCP server on stdio."""
    from depver.server import serve as serve_stdio

    settings = _require_settings()
    serve_stdio(create_tools(settings))


@app.command()
def config() -> None:
    """Show current configuration."""
    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid.[/red]")
        error_console.print()
        error_console.print("Check these environment variables:")
        error_console.print("  - CACHE_TTL_OVERRIDES (JSON object of ECOSYSTEM -> seconds)")
        error_console.print(
            "  - RETRY_BASE_DELAY_SECONDS must not exceed RETRY_MAX_DELAY_SECONDS"
        )
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.display().items():
        display_value = escape(str(value)) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"depver {__version__}")


if __name__ == "__main__":
    app()
