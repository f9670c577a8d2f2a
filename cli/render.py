from __future__ import annotations

from typing import Any, Dict, Iterable

import typer


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Generator Status")
    echo_key_values(
        [
            ("running", payload.get("is_running")),
            ("sensor_type", payload.get("sensor_type")),
            ("frequency", payload.get("frequency")),
            ("last_generated", payload.get("last_generated") or "never"),
            ("total_sent", payload.get("total_sent")),
            ("errors", payload.get("errors")),
        ]
    )


def render_reading(reading: Dict[str, Any]) -> None:
    typer.echo(
        f"  - #{reading.get('id')} {reading.get('sensor_type')}="
        f"{reading.get('sensor_value')} [{reading.get('id1')}/{reading.get('id2')}] "
        f"at {reading.get('timestamp')}"
    )


def render_page(payload: Dict[str, Any]) -> None:
    echo_heading("Readings")
    echo_key_values(
        [
            ("page", f"{payload.get('page')}/{payload.get('total_pages')}"),
            ("total", payload.get("total")),
        ]
    )
    readings = payload.get("data") or []
    typer.echo()
    if readings:
        for reading in readings:
            render_reading(reading)
    else:
        typer.echo("No readings found.")
