"""CLI commands for journeys.

Subcommands for listing, validating, optimizing and running journey files.
Only ``run`` launches a browser.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import typer
from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from waymark.models.journey import JourneyResult

journey_app = typer.Typer(help="Work with journey files — list, validate, optimize and run.")
console = Console()


def _get_journey_dir() -> Path:
    """Return the resolved journey directory from settings."""
    from waymark.settings import get_settings

    return Path(get_settings().journey.journey_dir)


def _read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]File not found:[/red] {path}")
        raise typer.Exit(code=1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ Invalid JSON:[/red] {e}")
        raise typer.Exit(code=1) from None


# ---------------------------------------------------------------------------
# waymark journey list
# ---------------------------------------------------------------------------


@journey_app.command("list")
def journey_list(
    json_output: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
    directory: Optional[Path] = typer.Option(None, "--dir", "-d", help="Override journey directory."),
) -> None:
    """List the valid journeys in the journey directory."""
    from waymark.journey.loader import load_journeys_from_dir

    journey_dir = directory or _get_journey_dir()
    journeys = load_journeys_from_dir(journey_dir)

    if not journeys:
        console.print(f"No journeys found in {journey_dir}")
        return

    if json_output:
        data = [
            {"name": j.name, "steps": len(j.steps), "maxDurationMs": j.max_duration_ms}
            for j in journeys
        ]
        console.print_json(json.dumps(data, indent=2))
        return

    table = Table(title=f"Journeys ({journey_dir})")
    table.add_column("Name", style="cyan")
    table.add_column("Steps", justify="right")
    table.add_column("Actions", style="dim", max_width=60)
    for j in journeys:
        table.add_row(j.name, str(len(j.steps)), ", ".join(s.action.value for s in j.steps))
    console.print(table)
    console.print(f"\n[bold]{len(journeys)}[/bold] journey(s) loaded")


# ---------------------------------------------------------------------------
# waymark journey validate
# ---------------------------------------------------------------------------


@journey_app.command("validate")
def journey_validate(
    path: Path = typer.Argument(..., help="Path to a journey JSON file."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output the report as JSON."),
) -> None:
    """Validate a journey file without running it."""
    from waymark.journey.validation import validate_journey_definition

    report = validate_journey_definition(_read_json(path))

    if json_output:
        console.print_json(report.model_dump_json(by_alias=True, indent=2))
    else:
        if report.is_valid:
            console.print(f"[green]✓[/green] Valid journey: {path.name} ({report.step_count} steps)")
        else:
            console.print("[red]✗ Validation errors:[/red]")
            for err in report.errors:
                console.print(f"  {err}")
        for warning in report.warnings:
            console.print(f"  [yellow]warning:[/yellow] {warning}")

    if not report.is_valid:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# waymark journey optimize
# ---------------------------------------------------------------------------


@journey_app.command("optimize")
def journey_optimize(
    path: Path = typer.Argument(..., help="Path to a journey JSON file."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the optimized journey here."),
) -> None:
    """Coalesce redundant waits and report the result."""
    from waymark.exceptions import JourneyValidationError
    from waymark.journey.optimizer import optimize_journey_definition
    from waymark.journey.loader import journey_from_data

    try:
        journey = journey_from_data(_read_json(path), path.stem)
    except JourneyValidationError as e:
        console.print("[red]✗ Validation errors:[/red]")
        for err in e.errors:
            console.print(f"  {err}")
        raise typer.Exit(code=1) from None

    result = optimize_journey_definition(journey)
    console.print(result.summary)

    if output is not None:
        optimized = journey.model_copy(update={"steps": result.optimized_steps})
        output.write_text(
            optimized.model_dump_json(by_alias=True, exclude_none=True, indent=2) + "\n",
            encoding="utf-8",
        )
        console.print(f"[green]✓[/green] Wrote {output}")
    else:
        data = [s.model_dump(mode="json", by_alias=True, exclude_none=True) for s in result.optimized_steps]
        console.print_json(json.dumps(data, indent=2))


# ---------------------------------------------------------------------------
# waymark journey run
# ---------------------------------------------------------------------------


async def _run_in_browser(
    journey: Any,
    url: str | None,
    headed: bool,
    video: bool,
) -> JourneyResult:
    from waymark.browser.manager import BrowserSession
    from waymark.orchestrator import Orchestrator
    from waymark.settings import get_settings

    settings = get_settings()
    async with BrowserSession(
        settings.browser,
        headless=False if headed else None,
        record_video=True if video else None,
    ) as driver:
        orchestrator = Orchestrator(driver, settings)
        try:
            if url:
                await orchestrator.initialize_page(url=url, wait_for_stable=True)
            return await orchestrator.run_journey(journey, record_video=video)
        finally:
            orchestrator.close()


@journey_app.command("run")
def journey_run(
    path: Path = typer.Argument(..., help="Path to a journey JSON file."),
    url: Optional[str] = typer.Option(None, "--url", "-u", help="Load this URL before the first step."),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window."),
    video: bool = typer.Option(False, "--video", help="Record a video of the run."),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output the result as JSON."),
) -> None:
    """Run a journey in a fresh Chromium browser."""
    from waymark.exceptions import JourneyValidationError
    from waymark.journey.loader import journey_from_data

    try:
        journey = journey_from_data(_read_json(path), path.stem)
    except JourneyValidationError as e:
        console.print("[red]✗ Validation errors:[/red]")
        for err in e.errors:
            console.print(f"  {err}")
        raise typer.Exit(code=1) from None

    result = asyncio.run(_run_in_browser(journey, url, headed, video))

    if json_output:
        console.print_json(result.model_dump_json(by_alias=True, indent=2))
    else:
        status = "[green]✓ SUCCESS[/green]" if result.success else "[red]✗ FAILED[/red]"
        console.print(f"{status} {result.name}: {result.completed_step_count}/{len(journey.steps)} steps in {result.duration_ms:.0f}ms")

        table = Table(title="Step timings")
        table.add_column("Step", style="cyan")
        table.add_column("ms", justify="right")
        for step_id, ms in result.per_step_timings_ms.items():
            table.add_row(step_id, f"{ms:.0f}")
        console.print(table)

        if result.skipped_steps:
            console.print(f"  Skipped: {', '.join(result.skipped_steps)}")
        for err in result.errors:
            console.print(f"  [red]{err.step_id}[/red] ({err.action}): {err.message}")
        if result.video_path:
            console.print(f"  Video: {result.video_path}")

    if not result.success:
        raise typer.Exit(code=1)
