from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_page, render_reading, render_status
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for running and controlling the sensor telemetry services.",
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
    generator_url: Optional[str] = typer.Option(
        None,
        "--generator-url",
        "-g",
        help="Generator API base URL (defaults to GENERATOR_API_URL env or http://localhost:8081).",
    ),
    storage_url: Optional[str] = typer.Option(
        None,
        "--storage-url",
        "-s",
        help="Storage API base URL (defaults to STORAGE_API_URL env or http://localhost:8080).",
    ),
    email: Optional[str] = typer.Option(None, "--email", help="Login used for storage queries."),
    password: Optional[str] = typer.Option(None, "--password", help="Password used for storage queries."),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(
        generator_url=generator_url,
        storage_url=storage_url,
        email=email,
        password=password,
        timeout=timeout,
    )
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("status")
def status_command(ctx: typer.Context) -> None:
    """Show the generator state and counters."""
    state = _get_state(ctx)
    render_status(state.client.get_status())


@app.command("start")
def start_command(ctx: typer.Context) -> None:
    """Start periodic generation."""
    state = _get_state(ctx)
    typer.secho(state.client.start(), fg=typer.colors.GREEN)


@app.command("stop")
def stop_command(ctx: typer.Context) -> None:
    """Stop periodic generation."""
    state = _get_state(ctx)
    typer.secho(state.client.stop(), fg=typer.colors.GREEN)


@app.command("frequency")
def frequency_command(
    ctx: typer.Context,
    value: Optional[str] = typer.Argument(
        None, help="New cadence such as '2s' or '500ms'; omit to show the current one."
    ),
) -> None:
    """Show or change the generation cadence."""
    state = _get_state(ctx)
    if value is None:
        payload = state.client.get_frequency()
        typer.echo(f"frequency: {payload.get('duration')}")
        return
    payload = state.client.set_frequency(value)
    typer.secho(f"Frequency set to {payload.get('duration')}", fg=typer.colors.GREEN)


@app.command("readings")
def readings_command(
    ctx: typer.Context,
    page: int = typer.Option(1, "--page", help="Page number, starting at 1."),
    page_size: int = typer.Option(10, "--page-size", help="Readings per page (1-100)."),
    sensor_type: Optional[str] = typer.Option(None, "--sensor-type", help="Only this sensor type."),
    sort: Optional[str] = typer.Option(None, "--sort", help="Field to sort by."),
    order: Optional[str] = typer.Option(None, "--order", help="asc or desc."),
) -> None:
    """List stored readings from the storage service."""
    state = _get_state(ctx)
    payload = state.client.list_readings(
        {
            "page": page,
            "page_size": page_size,
            "sensor_type": sensor_type,
            "sort": sort,
            "order": order,
        }
    )
    render_page(payload)


@app.command("reading")
def reading_command(
    ctx: typer.Context,
    reading_id: int = typer.Argument(..., help="Stored reading id."),
) -> None:
    """Show one stored reading."""
    state = _get_state(ctx)
    render_reading(state.client.get_reading(reading_id))


@app.command("serve-generator")
def serve_generator_command(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: Optional[int] = typer.Option(None, "--port", help="Defaults to GENERATOR_PORT."),
) -> None:
    """Run the generator HTTP service."""
    settings = get_settings()
    uvicorn.run(
        "app.main:create_generator_app",
        factory=True,
        host=host,
        port=port or settings.generator_port,
        log_config=None,
    )


@app.command("serve-storage")
def serve_storage_command(
    host: str = typer.Option("0.0.0.0", "--host"),
    port: Optional[int] = typer.Option(None, "--port", help="Defaults to STORAGE_PORT."),
) -> None:
    """Run the storage HTTP service together with its gRPC ingest server."""
    settings = get_settings()
    uvicorn.run(
        "app.main:create_storage_app",
        factory=True,
        host=host,
        port=port or settings.storage_port,
        log_config=None,
    )
