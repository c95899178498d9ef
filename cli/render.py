from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

import typer

from models.records import Sample


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_sample(sample: Sample) -> None:
    line = (
        f"sensor={sample.sensor_id} ts={sample.timestamp} "
        f"temperature={sample.temperature:.3f} humidity={sample.humidity:.3f} "
        f"pressure={sample.pressure:.3f} value={sample.value:.3f}"
    )
    if sample.anomaly:
        typer.secho(f"{line} ANOMALY", fg=typer.colors.RED)
    else:
        typer.echo(line)


def render_stats(stats: Mapping[str, Any], title: str = "Temperature Statistics") -> None:
    echo_heading(title)
    echo_key_values(
        [
            ("count", stats.get("count")),
            ("sum", stats.get("sum")),
            ("min", stats.get("min")),
            ("max", stats.get("max")),
            ("average", stats.get("average")),
        ]
    )


def render_all_stats(stats_by_sensor: Dict[str, Dict[str, Any]]) -> None:
    if not stats_by_sensor:
        typer.echo("No sensor statistics recorded.")
        return
    for index, key in enumerate(sorted(stats_by_sensor)):
        if index:
            typer.echo()
        render_stats(stats_by_sensor[key], title=key)


def render_history(sensor_id: int, samples: Iterable[Mapping[str, Any]]) -> None:
    echo_heading(f"History for sensor {sensor_id}")
    rows = list(samples)
    if not rows:
        typer.echo("No samples retained.")
        return
    for row in rows:
        typer.echo(
            f"  - ts={row.get('timestamp')} temperature={row.get('temperature')} "
            f"value={row.get('value')}"
        )
