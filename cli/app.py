from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import DEFAULT_HISTORY_LIMIT, CLIConfig, load_config
from cli.render import render_alert, render_history, render_reading, render_reading_line


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for sending and inspecting tank water level readings.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


def _not_found(message: str) -> None:
    typer.secho(message, fg=typer.colors.YELLOW, err=True)
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    poll_interval: Optional[float] = typer.Option(
        None,
        "--poll-interval",
        help="Seconds between polls when watching a device.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Maximum seconds to keep watching a device.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        base_url=base_url,
        poll_interval=poll_interval,
        poll_timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("send")
def send_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device phone number."),
    distance: float = typer.Argument(..., help="Measured distance in sensor units."),
    level: float = typer.Argument(..., help="Fill level percentage."),
) -> None:
    """Submit one reading, as a tank sensor would."""
    state = _get_state(ctx)
    reading = state.client.send_reading(device_id, distance, level)
    typer.secho(
        f"Reading accepted at {reading.get('timestamp')} for {device_id}",
        fg=typer.colors.GREEN,
    )


@app.command("latest")
def latest_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device phone number."),
) -> None:
    """Show the most recent reading for a device."""
    state = _get_state(ctx)
    reading = state.client.get_latest(device_id)
    if reading is None:
        _not_found(f"No data found for {device_id}.")
    render_reading(reading)


@app.command("history")
def history_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device phone number."),
    limit: int = typer.Option(DEFAULT_HISTORY_LIMIT, "--limit", "-n", min=1, help="Number of readings."),
) -> None:
    """List recent readings, newest first."""
    state = _get_state(ctx)
    render_history(device_id, state.client.get_history(device_id, limit))


@app.command("alert")
def alert_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device phone number."),
) -> None:
    """Show the most recent low-level alert for a device."""
    state = _get_state(ctx)
    alert = state.client.get_latest_alert(device_id)
    if alert is None:
        _not_found(f"No alert found for {device_id}.")
    render_alert(alert)


@app.command("watch")
def watch_command(
    ctx: typer.Context,
    device_id: str = typer.Argument(..., help="Device phone number."),
) -> None:
    """Poll a device and print each new reading until the timeout elapses."""
    state = _get_state(ctx)
    interval = state.config.poll_interval
    timeout = state.config.poll_timeout
    typer.echo(f"Watching {device_id} (interval={interval}s, timeout={timeout}s)...")
    seen = state.client.watch_latest(device_id, interval, timeout, render_reading_line)
    typer.echo(f"Stopped after {seen} reading(s).")
