"""Run and classify command implementations."""

import asyncio
from typing import Any, Dict, Optional

import typer

from ..errors import WarTrackerError
from ..pipeline import ClassificationStats, CycleStats
from .common import console, failure_json, load_cli_config, open_pipeline, print_cycle_summary


def run_command(
    ctx: typer.Context,
    batch_size: Optional[int] = typer.Option(
        None,
        "--batch-size",
        min=1,
        help="Unprocessed articles to classify this cycle. Default: from config",
    ),
    max_concurrent: Optional[int] = typer.Option(
        None,
        "--max-concurrent",
        min=1,
        help="Simultaneous classification calls. Default: from config",
    ),
    summary: bool = typer.Option(
        True,
        "--summary/--no-summary",
        help="Print a summary table to stderr",
    ),
) -> None:
    """Run one ingestion and classification cycle now."""
    config = load_cli_config(ctx)

    overrides: Dict[str, Any] = {}
    if batch_size is not None:
        overrides["batch_size"] = batch_size
    if max_concurrent is not None:
        overrides["max_concurrent"] = max_concurrent

    async def execute() -> CycleStats:
        async with open_pipeline(config) as orchestrator:
            return await orchestrator.run_cycle(trigger="manual", overrides=overrides)

    try:
        stats = asyncio.run(execute())
    except WarTrackerError as e:
        console.print(f"[red]Pipeline failed: {e}[/red]")
        typer.echo(failure_json(e, trigger="manual"))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Pipeline interrupted by user[/yellow]")
        raise typer.Exit(1)

    typer.echo(stats.model_dump_json(indent=2))
    if summary:
        print_cycle_summary(stats)

    if stats.status == "failed":
        raise typer.Exit(1)


def classify_command(
    ctx: typer.Context,
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", min=1, help="Articles to classify. Default: from config"
    ),
    max_concurrent: Optional[int] = typer.Option(
        None, "--max-concurrent", min=1, help="Simultaneous classification calls"
    ),
) -> None:
    """Classify pending articles without fetching feeds."""
    config = load_cli_config(ctx)

    async def execute() -> ClassificationStats:
        async with open_pipeline(config, need_llm=True) as orchestrator:
            return await orchestrator.classify_pending(
                batch_size=batch_size, max_concurrent=max_concurrent
            )

    try:
        stats = asyncio.run(execute())
    except WarTrackerError as e:
        console.print(f"[red]Classification failed: {e}[/red]")
        typer.echo(failure_json(e))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Classification interrupted by user[/yellow]")
        raise typer.Exit(1)

    typer.echo(stats.model_dump_json(indent=2))
    if stats.status == "failed":
        raise typer.Exit(1)
