from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

LOW_LEVEL_MARK = 30.0


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _level_color(level: Any) -> str | None:
    if isinstance(level, (int, float)) and level < LOW_LEVEL_MARK:
        return typer.colors.RED
    return None


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    echo_key_values(
        [
            ("device_id", payload.get("deviceId")),
            ("distance", payload.get("distance")),
            ("timestamp", payload.get("timestamp")),
        ]
    )
    level = payload.get("levelPercentage")
    typer.secho(f"level_percentage: {level}", fg=_level_color(level))


def render_reading_line(payload: Dict[str, Any]) -> None:
    level = payload.get("levelPercentage")
    typer.secho(
        f"{payload.get('timestamp')}  level={level}%  distance={payload.get('distance')}",
        fg=_level_color(level),
    )


def render_history(device_id: str, readings: List[Dict[str, Any]]) -> None:
    echo_heading(f"History for {device_id}")
    if not readings:
        typer.echo("No readings recorded.")
        return
    for reading in readings:
        render_reading_line(reading)


def render_alert(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Alert")
    echo_key_values(
        [
            ("alert_id", payload.get("alertId")),
            ("device_id", payload.get("deviceId")),
            ("message", payload.get("message")),
            ("timestamp", payload.get("timestamp")),
        ]
    )
