from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_history, render_reading


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for querying the sensor history service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("health")
def health_command(ctx: typer.Context) -> None:
    """Check that the service is up."""
    state = _get_state(ctx)
    payload = state.client.health()
    typer.secho(f"{state.config.base_url}: {payload.get('status')}", fg=typer.colors.GREEN)


@app.command("latest")
def latest_command(ctx: typer.Context) -> None:
    """Show the most recent reading."""
    state = _get_state(ctx)
    render_reading(state.client.get_latest())


@app.command("history")
def history_command(
    ctx: typer.Context,
    period: str = typer.Option(
        "1d",
        "--period",
        "-p",
        help="Time range to sample: 1d, 1w, 1m or 1y.",
    ),
    points: int = typer.Option(50, "--points", "-n", min=1, max=1000, help="Number of points."),
    aggregate_window: Optional[int] = typer.Option(
        None,
        "--aggregate-window",
        "-w",
        min=1,
        max=500,
        help="Also compute +/-N reading statistics for each point.",
    ),
) -> None:
    """Show evenly sampled history for a time period."""
    if period not in {"1d", "1w", "1m", "1y"}:
        raise typer.BadParameter("period must be one of 1d, 1w, 1m, 1y.", param_hint="--period")
    state = _get_state(ctx)
    payload = state.client.get_history(period, points, aggregate_window=aggregate_window)
    render_history(payload)
