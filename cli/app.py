from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_reading, render_readings, render_reconciliation, render_threshold


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the dam level monitoring service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _require_actor(state: CLIState) -> None:
    if not state.config.actor_id:
        raise typer.BadParameter(
            "This command needs an actor id (--actor or DAMLEVEL_ACTOR_ID)."
        )


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    actor: Optional[str] = typer.Option(
        None,
        "--actor",
        "-a",
        help="Operator or admin id sent as X-Actor-Id (defaults to DAMLEVEL_ACTOR_ID env).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="HTTP timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, actor_id=actor, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    alerts: bool = typer.Option(False, "--alerts", help="Only show records above the threshold."),
) -> None:
    """List water level records, newest first."""
    state = _get_state(ctx)
    items = state.client.list_readings(alerts_only=alerts)
    render_readings(items, title="Alerts" if alerts else "Water Levels")


@app.command("record")
def record_command(
    ctx: typer.Context,
    level: float = typer.Argument(..., help="Observed water level."),
    timestamp: Optional[datetime] = typer.Option(
        None, "--timestamp", "-t", help="Observation time (defaults to now)."
    ),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Optional notes."),
) -> None:
    """Submit a water level reading."""
    state = _get_state(ctx)
    _require_actor(state)
    reading = state.client.record_reading(level, timestamp=timestamp, notes=notes)
    typer.secho(f"Recorded. id={reading.get('id')}", fg=typer.colors.GREEN)
    render_reading(reading)


@app.command("update")
def update_command(
    ctx: typer.Context,
    reading_id: str = typer.Argument(..., help="Record identifier."),
    level: Optional[float] = typer.Option(None, "--level", "-l", help="Corrected level."),
    timestamp: Optional[datetime] = typer.Option(None, "--timestamp", "-t", help="Corrected time."),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Replacement notes."),
) -> None:
    """Update level, timestamp or notes of a record."""
    state = _get_state(ctx)
    _require_actor(state)
    changes: Dict[str, Any] = {}
    if level is not None:
        changes["level"] = level
    if timestamp is not None:
        changes["timestamp"] = timestamp.isoformat()
    if notes is not None:
        changes["notes"] = notes
    reading = state.client.update_reading(reading_id, changes)
    render_reading(reading)


@app.command("delete")
def delete_command(
    ctx: typer.Context,
    reading_id: str = typer.Argument(..., help="Record identifier."),
) -> None:
    """Delete a water level record."""
    state = _get_state(ctx)
    _require_actor(state)
    state.client.delete_reading(reading_id)
    typer.secho(f"Deleted {reading_id}.", fg=typer.colors.GREEN)


@app.command("threshold")
def threshold_command(ctx: typer.Context) -> None:
    """Show the current critical threshold."""
    state = _get_state(ctx)
    render_threshold(state.client.get_threshold())


@app.command("set-threshold")
def set_threshold_command(
    ctx: typer.Context,
    value: float = typer.Argument(..., help="New critical threshold."),
) -> None:
    """Change the critical threshold and re-evaluate every record."""
    state = _get_state(ctx)
    _require_actor(state)
    threshold = state.client.set_threshold(value)
    typer.secho("Threshold updated and records reconciled.", fg=typer.colors.GREEN)
    render_threshold(threshold)


@app.command("reconcile")
def reconcile_command(ctx: typer.Context) -> None:
    """Re-run alert reconciliation against the stored threshold."""
    state = _get_state(ctx)
    _require_actor(state)
    render_reconciliation(state.client.reconcile())
