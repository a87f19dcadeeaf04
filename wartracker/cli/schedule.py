"""Schedule command implementation."""

import asyncio
from typing import Optional

import typer

from ..errors import WarTrackerError
from ..pipeline import CycleStats, PipelineScheduler
from .common import console, failure_json, load_cli_config, open_pipeline, print_cycle_summary


def schedule_command(
    ctx: typer.Context,
    interval: Optional[int] = typer.Option(
        None, "--interval", min=1, help="Minutes between cycles. Default: from config"
    ),
    run_on_start: Optional[bool] = typer.Option(
        None,
        "--run-on-start/--no-run-on-start",
        help="Run a cycle immediately. Default: from config",
    ),
) -> None:
    """Run the pipeline on a fixed interval until interrupted."""
    config = load_cli_config(ctx)
    settings = config.config.scheduler

    def report(stats: CycleStats) -> None:
        typer.echo(stats.model_dump_json())
        print_cycle_summary(stats)

    async def serve() -> None:
        async with open_pipeline(config) as orchestrator:
            scheduler = PipelineScheduler(
                orchestrator,
                interval_minutes=interval or settings.interval_minutes,
                run_on_start=settings.run_on_start if run_on_start is None else run_on_start,
                on_cycle=report,
            )
            console.print(
                f"[bold blue]Scheduling cycles every {scheduler.interval_minutes} minutes. "
                f"Press Ctrl+C to stop.[/bold blue]"
            )
            await scheduler.serve()

    try:
        asyncio.run(serve())
    except WarTrackerError as e:
        console.print(f"[red]Scheduler failed: {e}[/red]")
        typer.echo(failure_json(e, trigger="scheduled"))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")
