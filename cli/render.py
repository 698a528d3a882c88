from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

UNAVAILABLE = "N/A"


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {UNAVAILABLE if value is None else value}")


def _score_color(score: float) -> str:
    if score >= 8:
        return typer.colors.GREEN
    if score >= 6:
        return typer.colors.YELLOW
    if score >= 4:
        return typer.colors.BRIGHT_YELLOW
    return typer.colors.RED


def render_score(payload: Dict[str, Any]) -> None:
    echo_heading("Living Condition Score")
    status = payload.get("status")
    if status != "live":
        echo_key_values([("status", status), ("error", payload.get("error"))])
        return

    score = float(payload.get("score") or 0.0)
    typer.secho(f"{score:.1f} / 10 ({payload.get('label')})", fg=_score_color(score), bold=True)
    echo_key_values([("timestamp", payload.get("timestamp")), ("updated_at", payload.get("updated_at"))])

    metrics = payload.get("metrics") or {}
    typer.echo()
    echo_heading("Metrics")
    if not metrics:
        typer.echo("No metric values available.")
        return
    for name, item in metrics.items():
        typer.echo(
            f"  - {name}: {item.get('value')} "
            f"(sub-score {float(item.get('sub_score') or 0):.1f}, {item.get('status')})"
        )


def render_alerts(alerts: List[Dict[str, Any]]) -> None:
    echo_heading("Recent Alerts")
    if not alerts:
        typer.echo("No alerts raised.")
        return
    for alert in alerts:
        color = typer.colors.RED if alert.get("kind") == "poor" else typer.colors.GREEN
        typer.secho(
            f"  {alert.get('raised_at')} [{alert.get('kind')}] score={alert.get('score')} "
            f"{alert.get('message')}",
            fg=color,
        )


def render_hourly(payload: Dict[str, Any]) -> None:
    echo_heading(f"Hourly Pattern {payload.get('day')} ({payload.get('source')})")
    hours = payload.get("hours") or []
    if not hours:
        typer.echo("No hourly data available.")
        return
    for hour in hours:
        averages = hour.get("averages") or {}
        parts = " ".join(f"{name}={value:.1f}" for name, value in averages.items())
        typer.echo(f"  {hour.get('label')} readings={hour.get('reading_count')} {parts}".rstrip())


def render_report(payload: Dict[str, Any]) -> None:
    echo_heading("Analytics Report")
    echo_key_values(
        [
            ("window", payload.get("window")),
            ("generated_at", payload.get("generated_at")),
            ("reading_count", payload.get("reading_count")),
            ("skipped_count", payload.get("skipped_count")),
        ]
    )

    typer.echo()
    echo_heading("Statistics")
    statistics = payload.get("statistics") or {}
    if statistics:
        for metric, stats in statistics.items():
            typer.echo(
                f"  - {metric}: avg={_cell(stats.get('avg'))} min={_cell(stats.get('min'))} "
                f"max={_cell(stats.get('max'))} latest={_cell(stats.get('latest'))}"
            )
    else:
        typer.echo("No statistics available.")

    for metric, distribution in (payload.get("distributions") or {}).items():
        typer.echo()
        echo_heading(f"Distribution: {metric}")
        if not distribution.get("has_data"):
            typer.echo("No data.")
            continue
        for item in distribution.get("bins") or []:
            typer.echo(f"  {item.get('label')}: {item.get('count')}")

    correlation = payload.get("correlation") or {}
    typer.echo()
    echo_heading("Correlation")
    typer.echo(
        f"{correlation.get('x_metric')} vs {correlation.get('y_metric')}: "
        f"{len(correlation.get('points') or [])} paired samples"
    )

    hourly = payload.get("hourly")
    if hourly:
        typer.echo()
        render_hourly(hourly)


def _cell(value: Any) -> Any:
    return UNAVAILABLE if value is None else value
