"""Init command implementation."""

import asyncio
from pathlib import Path

import typer
from rich.panel import Panel

from ..config import DEFAULT_SOURCES, ConfigModel, save_config, save_sources
from ..db import Database, init_database, validate_connection
from .common import console, default_config_dir


async def _prepare_database(db_config: dict) -> bool:
    async with Database(db_config) as db:
        if not await validate_connection(db):
            return False
        await init_database(db)
    return True


def init_command(
    config_dir: Path = typer.Option(
        default_config_dir(),
        "--config-dir",
        "-c",
        help="Configuration directory",
    ),
    db_host: str = typer.Option("localhost", "--db-host", help="Postgres host"),
    db_port: int = typer.Option(5432, "--db-port", help="Postgres port"),
    db_name: str = typer.Option("wartracker", "--db-name", help="Database name"),
    db_user: str = typer.Option("wartracker", "--db-user", help="Database user"),
    seed_sources: bool = typer.Option(
        True,
        "--seed-sources/--no-seed-sources",
        help="Seed the built-in news sources",
    ),
    setup_db: bool = typer.Option(
        True,
        "--setup-db/--no-setup-db",
        help="Create the database schema",
    ),
) -> None:
    """Initialize War Tracker configuration and database."""
    console.print(Panel.fit("War Tracker - Initialization", style="bold blue"))

    # Create configuration directory
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    sources_path = config_dir / "sources.yaml"

    # Create default configuration
    config = ConfigModel(
        postgres={
            "host": db_host,
            "port": db_port,
            "database": db_name,
            "user": db_user,
            "password_env": "WARTRACKER_DB_PASSWORD",
        },
    )

    save_config(config, config_path)
    console.print(f"✅ Created config: {config_path}")

    if seed_sources:
        sources = list(DEFAULT_SOURCES)
        save_sources(sources, sources_path)
        console.print(f"✅ Created sources: {sources_path} (seeded with {len(sources)} sources)")
    else:
        save_sources([], sources_path)
        console.print(f"✅ Created sources: {sources_path} (empty)")

    if setup_db:
        console.print("\n[bold]Initializing database schema...[/bold]")
        db_config = config.postgres.model_dump()
        try:
            connected = asyncio.run(_prepare_database(db_config))
        except Exception as e:
            console.print(f"[red]❌ Failed to initialize database: {e}[/red]")
            raise typer.Exit(1)

        if not connected:
            console.print(
                "[red]❌ Database connection failed![/red]\n"
                "Please ensure Postgres is running and credentials are correct.\n"
                "Set the password via environment variable: "
                "[bold]export WARTRACKER_DB_PASSWORD=your_password[/bold]"
            )
            raise typer.Exit(1)

        console.print("✅ Database schema initialized")

    console.print(
        Panel(
            f"[green]✅ War Tracker initialized successfully![/green]\n\n"
            f"Configuration: {config_path}\n"
            f"Sources: {sources_path}\n\n"
            f"Next steps:\n"
            f"1. Set database password: [bold]export WARTRACKER_DB_PASSWORD=your_password[/bold]\n"
            f"2. Set LLM API key: [bold]export OPENROUTER_API_KEY=your_key[/bold]\n"
            f"3. Run: [bold]wartracker run[/bold] or [bold]wartracker schedule[/bold]",
            style="green",
        )
    )
