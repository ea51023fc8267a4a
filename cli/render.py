from __future__ import annotations

from typing import Any, Dict, Iterable, Optional

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.2f}"


def render_reading(payload: Dict[str, Any]) -> None:
    echo_heading("Latest Reading")
    echo_key_values(
        [
            ("id", payload.get("id")),
            ("timestamp", payload.get("timestamp")),
            ("temperature", _fmt(payload.get("temperature"))),
            ("humidity", _fmt(payload.get("humidity"))),
            ("ac_outlet_temperature", _fmt(payload.get("ac_outlet_temperature"))),
            ("ac_outlet_humidity", _fmt(payload.get("ac_outlet_humidity"))),
        ]
    )
    if payload.get("is_outlier"):
        typer.secho("Flagged as a probable sensor fault.", fg=typer.colors.YELLOW)


def render_history(payload: Dict[str, Any]) -> None:
    echo_heading("History")
    echo_key_values(
        [
            ("time_period", payload.get("time_period")),
            ("start_time", payload.get("start_time")),
            ("end_time", payload.get("end_time")),
            ("total_count", payload.get("total_count")),
            ("returned_count", payload.get("returned_count")),
        ]
    )

    typer.echo()
    points = payload.get("data") or []
    if not points:
        typer.echo("No data points returned.")
        return

    for point in points:
        if point.get("kind") == "gap":
            typer.echo(f"  {point.get('timestamp')}  (no data)")
            continue
        line = (
            f"  {point.get('timestamp')}  T={_fmt(point.get('temperature'))}"
            f"  H={_fmt(point.get('humidity'))}"
        )
        aggregated = point.get("aggregated") or {}
        temperature = aggregated.get("temperature")
        if temperature:
            line += (
                f"  [T avg={_fmt(temperature.get('average'))}"
                f" min={_fmt(temperature.get('minimum'))}"
                f" max={_fmt(temperature.get('maximum'))}"
                f" n={temperature.get('count')}]"
            )
        if point.get("is_outlier"):
            line += "  outlier"
        typer.echo(line)
