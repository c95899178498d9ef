from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import render_all_stats, render_history, render_sample, render_stats


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the sensor telemetry server and relay.",
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
    server_url: Optional[str] = typer.Option(
        None,
        "--server-url",
        "-s",
        help="Sensor server base URL (defaults to SENSOR_API_URL env or http://localhost:8080).",
    ),
    relay_url: Optional[str] = typer.Option(
        None,
        "--relay-url",
        "-r",
        help="Relay base URL (defaults to RELAY_API_URL env or http://localhost:8081).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(server_url=server_url, relay_url=relay_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("stream")
def stream_command(
    ctx: typer.Context,
    sensor_id: Optional[int] = typer.Option(None, "--sensor-id", "-i", help="Sensor to stream."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Number of samples."),
    direct: bool = typer.Option(
        False,
        "--direct/--via-relay",
        help="Read from the sensor server instead of the relay.",
    ),
) -> None:
    """Print samples for one sensor as they arrive."""
    state = _get_state(ctx)
    received = 0
    for sample in state.client.stream_sensor(sensor_id, limit, direct=direct):
        render_sample(sample)
        received += 1
    typer.secho(f"Stream finished. samples={received}", fg=typer.colors.GREEN)


@app.command("multi")
def multi_command(
    ctx: typer.Context,
    sensor_count: Optional[int] = typer.Option(None, "--sensor-count", "-c", help="Number of sensors."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Total number of samples."),
    direct: bool = typer.Option(
        False,
        "--direct/--via-relay",
        help="Read from the sensor server instead of the relay.",
    ),
) -> None:
    """Print samples for several sensors streamed in parallel."""
    state = _get_state(ctx)
    received = 0
    for sample in state.client.stream_multi(sensor_count, limit, direct=direct):
        render_sample(sample)
        received += 1
    typer.secho(f"Stream finished. samples={received}", fg=typer.colors.GREEN)


@app.command("history")
def history_command(
    ctx: typer.Context,
    sensor_id: int = typer.Argument(..., help="Sensor whose retained samples to show."),
    limit: int = typer.Option(0, "--limit", "-n", help="Maximum rows; 0 shows everything."),
) -> None:
    """Show the retained history window of a sensor."""
    state = _get_state(ctx)
    render_history(sensor_id, state.client.get_history(sensor_id, limit))


@app.command("stats")
def stats_command(
    ctx: typer.Context,
    sensor_id: Optional[int] = typer.Argument(None, help="Sensor id; omit for every sensor."),
) -> None:
    """Show running temperature statistics."""
    state = _get_state(ctx)
    if sensor_id is None:
        render_all_stats(state.client.get_stats())
        metrics = state.client.get_metrics()
        typer.echo()
        typer.echo(f"total_generated: {metrics.get('total_generated')}")
        return
    render_stats(state.client.get_stats(sensor_id), title=f"sensor_{sensor_id}")


@app.command("clear")
def clear_command(ctx: typer.Context) -> None:
    """Drop all history and statistics held by the server."""
    state = _get_state(ctx)
    state.client.clear_history()
    typer.secho("Sensor history cleared.", fg=typer.colors.GREEN)
