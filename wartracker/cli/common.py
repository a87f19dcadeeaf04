"""Shared helpers for CLI commands."""

import json
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import AsyncIterator, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..classification import ClassificationGateway, create_provider
from ..config import Config
from ..db import (
    ArticleUpsertEngine,
    Database,
    PostgresArticleRepository,
    PostgresWarEventRepository,
    RunManager,
    validate_connection,
)
from ..errors import ConfigurationError, PersistenceError
from ..ingestion import FeedFetcher
from ..pipeline import ClassificationStats, CycleStats, PipelineOrchestrator
from ..utils import setup_logging

# Human-readable output goes to stderr; stdout carries JSON stats only
console = Console(stderr=True)


def load_cli_config(ctx: typer.Context) -> Config:
    """Load configuration for a command and set up logging from it."""
    obj = ctx.obj or {}
    config = Config(obj.get("config_path"))
    try:
        settings = config.config
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    setup_logging(obj.get("log_level") or settings.logging.level, settings.logging.file)
    return config


def build_fetcher(config: Config) -> FeedFetcher:
    """Feed fetcher configured from the ingestion section."""
    ingestion = config.config.ingestion
    return FeedFetcher(
        max_retries=ingestion.max_retries,
        base_delay=ingestion.base_delay,
        max_delay=ingestion.max_delay,
        max_entries=ingestion.max_entries_per_feed,
        max_concurrent=ingestion.feed_concurrency,
        user_agent=ingestion.user_agent,
    )


@asynccontextmanager
async def open_pipeline(
    config: Config,
    need_llm: Optional[bool] = None,
) -> AsyncIterator[PipelineOrchestrator]:
    """
    Wire the orchestrator to Postgres and the LLM provider.

    The LLM key is required only when classification will run; without it
    the mock provider stands in.

    Raises:
        ConfigurationError: missing credentials, checked before any connection
        PersistenceError: the database is unreachable
    """
    settings = config.config
    if need_llm is None:
        need_llm = settings.classification.enabled
    config.require_credentials(need_llm=need_llm)

    llm_config = config.get_llm_config()
    if not need_llm:
        llm_config["provider"] = "mock"
    provider = create_provider(llm_config)

    async with Database(config.get_db_config()) as db:
        if not await validate_connection(db):
            raise PersistenceError(
                "Database connection failed. Check the postgres settings and that Postgres is running."
            )

        articles = PostgresArticleRepository(db)
        yield PipelineOrchestrator(
            config=settings,
            sources=config.get_sources(),
            fetcher=build_fetcher(config),
            upsert_engine=ArticleUpsertEngine(
                articles,
                chunk_size=settings.ingestion.upsert_chunk_size,
                chunk_delay=settings.ingestion.upsert_chunk_delay,
                similarity_threshold=settings.ingestion.similarity_threshold,
                similarity_window=timedelta(hours=settings.ingestion.similarity_window_hours),
                similarity_candidates=settings.ingestion.similarity_candidates,
            ),
            articles=articles,
            events=PostgresWarEventRepository(db),
            gateway=ClassificationGateway(
                provider,
                threshold=settings.classification.confidence_threshold,
                max_tokens=settings.llm.max_tokens,
                temperature=settings.llm.temperature,
            ),
            runs=RunManager(db),
        )


def print_cycle_summary(stats: CycleStats) -> None:
    """Print a per-source table and a closing panel."""
    table = Table(title="Cycle Summary")
    table.add_column("Source", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Fetched", justify="right")
    table.add_column("New", justify="right", style="green")
    table.add_column("Updated", justify="right", style="yellow")
    table.add_column("Skipped", justify="right", style="dim")
    table.add_column("Dupes", justify="right", style="dim")
    table.add_column("Details", style="dim")

    for source in stats.sources:
        if source.status in ("success", "not_modified"):
            status = "[green]✓[/green]"
        elif source.status in ("partial", "paused"):
            status = "[yellow]~[/yellow]"
        else:
            status = "[red]✗[/red]"
        details = source.error or ("not modified" if source.status == "not_modified" else "")
        table.add_row(
            source.name,
            status,
            str(source.fetched),
            str(source.inserted),
            str(source.updated),
            str(source.skipped),
            str(source.duplicates),
            details,
        )

    console.print(table)

    lines = [
        f"Feeds: {stats.feeds_succeeded}/{stats.feeds_total} ok, {stats.feeds_failed} failed, "
        f"{stats.feeds_paused} paused",
        f"Articles: {stats.inserted} new, {stats.updated} updated, {stats.skipped} unchanged, "
        f"{stats.duplicates} near duplicates, {stats.failed} failed",
    ]
    if stats.classification is not None:
        lines.append(_classification_line(stats.classification))
    lines.append(f"Duration: {stats.duration_seconds:.1f} seconds")
    if stats.error:
        lines.append(f"Error: {stats.error}")

    style = {"success": "green", "partial": "yellow"}.get(stats.status, "red")
    console.print(Panel("\n".join(lines), title=f"Cycle {stats.status}", style=style))


def _classification_line(stats: ClassificationStats) -> str:
    if stats.status in ("idle", "disabled"):
        return f"Classification: {stats.status}"
    return (
        f"Classification: {stats.attempted}/{stats.pending} attempted, "
        f"{stats.events_created} events, {stats.keyword_skipped} keyword-skipped, "
        f"{stats.errors} errors"
    )


def failure_json(error: Exception, trigger: Optional[str] = None) -> str:
    """JSON printed when a command fails before producing stats."""
    payload = {"status": "failed", "error": str(error)}
    if trigger:
        payload["trigger"] = trigger
    return json.dumps(payload)


def default_config_dir() -> Path:
    return Path.home() / ".config" / "wartracker"
