"""Main CLI application."""

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

from .init import init_command
from .run import classify_command, run_command
from .schedule import schedule_command
from .sources import sources_app

app = typer.Typer(
    name="wartracker",
    help="War Tracker - conflict news ingestion and classification pipeline",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        envvar="WARTRACKER_CONFIG",
        help="Path to config.yaml. Default: ~/.config/wartracker/config.yaml",
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Override the configured log level"
    ),
) -> None:
    ctx.obj = {"config_path": config_path, "log_level": log_level}


# Register commands
app.command("init")(init_command)
app.command("run")(run_command)
app.command("classify")(classify_command)
app.command("schedule")(schedule_command)
app.add_typer(sources_app, name="sources", help="Manage feed sources")


if __name__ == "__main__":
    app()
