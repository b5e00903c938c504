from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Water Level Record")
    echo_key_values(
        [
            ("id", payload.get("id")),
            ("level", payload.get("level")),
            ("timestamp", payload.get("timestamp")),
            ("recorded_by", payload.get("recorded_by")),
            ("notes", payload.get("notes") or "-"),
            ("is_alert", payload.get("is_alert")),
        ]
    )


def render_readings(readings: Iterable[Dict[str, Any]], title: str = "Water Levels") -> None:
    items = list(readings)
    echo_heading(f"{title} ({len(items)})")
    if not items:
        typer.echo("No records.")
        return
    for reading in items:
        line = f"  - {reading.get('timestamp')}  {reading.get('level')}  id={reading.get('id')}"
        if reading.get("is_alert"):
            typer.secho(f"{line}  ALERT", fg=typer.colors.RED)
        else:
            typer.echo(line)


def render_threshold(payload: Dict[str, Any]) -> None:
    echo_heading("Critical Threshold")
    echo_key_values(
        [
            ("value", payload.get("value")),
            ("updated_by", payload.get("updated_by") or "-"),
            ("updated_at", payload.get("updated_at")),
            ("version", payload.get("version")),
        ]
    )


def render_reconciliation(payload: Dict[str, Any]) -> None:
    echo_heading("Reconciliation")
    changed = payload.get("changed_ids") or []
    echo_key_values(
        [
            ("threshold", payload.get("threshold")),
            ("visited", payload.get("visited")),
            ("changed", len(changed)),
        ]
    )
    for reading_id in changed:
        typer.echo(f"  - {reading_id}")
