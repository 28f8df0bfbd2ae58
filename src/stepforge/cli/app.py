"""Main Typer application: entry point for the ``stepforge`` CLI."""

from __future__ import annotations

import logging

import typer

from stepforge import __version__
from stepforge._internal.config import load_config
from stepforge._internal.errors import ConfigError
from stepforge._internal.logging import setup_logging
from stepforge.cli.check import validate_cmd
from stepforge.cli.init_cmd import init_cmd
from stepforge.cli.resolve import resolve_cmd, send_cmd

app = typer.Typer(
    name="stepforge",
    help="Define, validate and resolve HTTP load-test scenarios.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("validate", help="Parse and validate a scenario file.")(validate_cmd)
app.command("resolve", help="Resolve one step's placeholders and print it as JSON.")(resolve_cmd)
app.command("send", help="Resolve one step and send it once.")(send_cmd)
app.command("init", help="Scaffold a new scenario file.")(init_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"stepforge {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
) -> None:
    """StepForge: define, validate and resolve HTTP load-test scenarios."""
    try:
        config = load_config()
    except ConfigError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    setup_logging(
        logging.DEBUG if verbose else logging.WARNING,
        json_format=config.json_logs,
    )
