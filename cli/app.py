from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import WINDOWS, CLIConfig, load_config
from cli.render import render_alerts, render_hourly, render_report, render_score


Window = Enum("Window", {f"last_{value}": value for value in WINDOWS}, type=str)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the living condition monitor service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1, message="CLI state is uninitialized.")
    return state


def _window(state: CLIState, window: Optional[Window]) -> str:
    return window.value if window is not None else state.config.default_window


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
    config = load_config(base_url=base_url, request_timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("push")
def push_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON reading file."),
) -> None:
    """Send one raw reading to the service."""
    state = _get_state(ctx)
    key = state.client.push_reading(file)
    typer.secho(f"Reading accepted. key={key}", fg=typer.colors.GREEN)


@app.command("score")
def score_command(ctx: typer.Context) -> None:
    """Show the current living condition score."""
    state = _get_state(ctx)
    render_score(state.client.get_score())


@app.command("alerts")
def alerts_command(ctx: typer.Context) -> None:
    """List recent poor and excellent condition alerts."""
    state = _get_state(ctx)
    render_alerts(state.client.get_alerts())


@app.command("analytics")
def analytics_command(
    ctx: typer.Context,
    window: Optional[Window] = typer.Option(
        None, "--range", "-r", help="Historical window (defaults to CLI_DEFAULT_RANGE or 7d)."
    ),
    day: Optional[str] = typer.Option(None, "--day", help="Day (YYYY-MM-DD) for the hourly pattern."),
) -> None:
    """Summarize historical readings for a window."""
    state = _get_state(ctx)
    render_report(state.client.get_report(_window(state, window), day=day))


@app.command("hourly")
def hourly_command(
    ctx: typer.Context,
    day: Optional[str] = typer.Option(None, "--day", help="Day (YYYY-MM-DD), defaults to today."),
) -> None:
    """Show per-hour averages for one day."""
    state = _get_state(ctx)
    render_hourly(state.client.get_hourly(day))


@app.command("export")
def export_command(
    ctx: typer.Context,
    window: Optional[Window] = typer.Option(
        None, "--range", "-r", help="Historical window (defaults to CLI_DEFAULT_RANGE or 7d)."
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", dir_okay=False, help="Write CSV here instead of stdout."
    ),
) -> None:
    """Download the window's readings as CSV."""
    state = _get_state(ctx)
    body = state.client.export_csv(_window(state, window))
    if output is None:
        typer.echo(body)
        return
    output.write_text(body + "\n", encoding="utf-8")
    typer.secho(f"Wrote {output}", fg=typer.colors.GREEN)
