"""Unified CLI entry point for Waymark.

Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml -> env vars (WAYMARK_* with double underscores) -> CLI flags.
"""

from __future__ import annotations

from typing import Optional

import typer

from waymark.cli.journey_cmd import journey_app
from waymark.cli.settings_cmd import settings_app

try:
    from importlib.metadata import version

    VERSION = version("waymark")
except Exception:
    VERSION = "unknown"

APP_HELP = (
    "waymark — validate, optimize and run declarative browser journeys. "
    "Config precedence: settings.default.toml -> settings.{env}.toml -> settings.local.toml -> env vars (WAYMARK_* with __) -> CLI flags."
)

app = typer.Typer(add_completion=True, help=APP_HELP)

app.add_typer(journey_app, name="journey")
app.add_typer(settings_app, name="settings")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(False, "--version", help="Show version and exit."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Override the configured log level."),
) -> None:
    """Show help when no subcommand is provided."""
    if version:
        typer.echo(f"waymark {VERSION}")
        raise typer.Exit()
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()

    from waymark.logging_config import configure_logging
    from waymark.settings import get_settings

    logging_settings = get_settings().logging
    configure_logging(log_level or logging_settings.level, logging_settings.json_format)


if __name__ == "__main__":
    app()
