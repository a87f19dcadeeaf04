"""Sources management commands."""

import asyncio
from typing import List, Optional

import typer
from rich.table import Table

from ..config import Config, SourceConfig, find_source, save_sources
from ..errors import ConfigurationError
from ..ingestion import FeedFetcher, FeedResult
from .common import build_fetcher, console

sources_app = typer.Typer(help="Manage feed sources")


def _config(ctx: typer.Context) -> Config:
    obj = ctx.obj or {}
    return Config(obj.get("config_path"))


def _load(config: Config) -> List[SourceConfig]:
    try:
        return config.get_sources()
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


@sources_app.command("list")
def sources_list(ctx: typer.Context) -> None:
    """List all configured sources."""
    sources = _load(_config(ctx))

    if not sources:
        console.print("[yellow]No sources configured.[/yellow]")
        return

    table = Table(title="Configured Sources")
    table.add_column("Name", style="cyan")
    table.add_column("Category", style="magenta")
    table.add_column("Reliability", style="green")
    table.add_column("Timeout", style="dim")
    table.add_column("Enabled", style="yellow")
    table.add_column("URL", style="blue")

    for source in sources:
        table.add_row(
            source.name,
            source.category,
            f"{source.reliability:.2f}",
            f"{source.timeout:.1f}s",
            "✓" if source.enabled else "✗",
            source.url,
        )

    console.print(table)


@sources_app.command("add")
def sources_add(
    ctx: typer.Context,
    name: str = typer.Option(..., "--name", "-n", help="Source name"),
    url: str = typer.Option(..., "--url", "-u", help="RSS/Atom feed URL"),
    category: str = typer.Option(
        "international", "--category", "-c", help="Source category"
    ),
    reliability: float = typer.Option(
        1.0, "--reliability", "-r", help="Reliability score (0.0-1.0)", min=0.0, max=1.0
    ),
    timeout_ms: int = typer.Option(
        10000, "--timeout-ms", help="Fetch timeout in milliseconds", min=500, max=120000
    ),
    fallback_urls: Optional[List[str]] = typer.Option(
        None, "--fallback-url", help="Mirror URL tried when the primary fails (repeatable)"
    ),
) -> None:
    """Add a new feed source."""
    config = _config(ctx)
    sources = _load(config)

    if any(s.name == name or s.url == url for s in sources):
        console.print(f"[red]Source '{name}' or URL already exists.[/red]")
        raise typer.Exit(1)

    try:
        new_source = SourceConfig(
            name=name,
            url=url,
            fallback_urls=fallback_urls or [],
            category=category,
            reliability=reliability,
            timeout_ms=timeout_ms,
            enabled=True,
        )
    except ValueError as e:
        console.print(f"[red]Invalid source: {e}[/red]")
        raise typer.Exit(1)

    sources.append(new_source)
    save_sources(sources, config.sources_path)

    console.print(f"[green]✅ Added source: {name}[/green]")


@sources_app.command("remove")
def sources_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Source name to remove"),
) -> None:
    """Remove a source."""
    config = _config(ctx)
    sources = _load(config)

    if find_source(sources, name) is None:
        console.print(f"[red]Source '{name}' not found.[/red]")
        raise typer.Exit(1)

    save_sources([s for s in sources if s.name != name], config.sources_path)
    console.print(f"[green]✅ Removed source: {name}[/green]")


@sources_app.command("test")
def sources_test(
    ctx: typer.Context,
    name: Optional[str] = typer.Argument(None, help="Source name to test (or test all)"),
) -> None:
    """Fetch and parse feeds without storing anything."""
    config = _config(ctx)
    sources = _load(config)

    if name:
        source = find_source(sources, name)
        if source is None:
            console.print(f"[red]Source '{name}' not found.[/red]")
            raise typer.Exit(1)
        sources = [source]

    for source in sources:
        if not source.enabled:
            console.print(f"[yellow]⚠️  {source.name}: Disabled[/yellow]")

    try:
        fetcher = build_fetcher(config)
    except ConfigurationError:
        # No config.yaml yet, use default fetch settings
        fetcher = FeedFetcher()

    async def fetch_all() -> List[FeedResult]:
        return await fetcher.fetch_all(sources)

    failures = 0
    for result in asyncio.run(fetch_all()):
        if result.success:
            console.print(
                f"[green]✅ {result.source_name}: OK ({result.entry_count} entries, "
                f"{result.attempts} attempt(s))[/green]"
            )
        else:
            failures += 1
            console.print(f"[red]❌ {result.source_name}: {result.error.kind} - {result.error.message}[/red]")

    if failures:
        raise typer.Exit(1)
