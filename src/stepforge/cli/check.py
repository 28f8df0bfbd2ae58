"""``stepforge validate``: parse and validate a scenario file."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from stepforge._internal.errors import StepForgeError
from stepforge.scenario.parser import load_scenario

console = Console(stderr=True)


def validate_cmd(
    scenario_file: Path = typer.Argument(
        ...,
        help="Path to the scenario YAML file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Parse and validate a scenario file, then print a step summary."""
    try:
        scenario = load_scenario(scenario_file)
    except StepForgeError as exc:
        console.print(f"[red]Invalid scenario:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    table = Table(
        title=f"{scenario.name} ({scenario.base_url})",
        show_header=True,
        header_style="bold cyan",
        expand=True,
    )
    table.add_column("#", justify="right")
    table.add_column("Request", style="bold")
    table.add_column("Delay", justify="right")
    table.add_column("Next Steps")

    for index, step in enumerate(scenario.steps):
        transitions = ", ".join(
            f"{escape(edge.request)} [{'|'.join(edge.status_codes) or '*'}]"
            for edge in step.next_steps
        )
        table.add_row(str(index), escape(step.request), step.delay.format(), transitions or "-")

    console.print(table)
    console.print(
        f"[green]Scenario is valid:[/green] {len(scenario.steps)} steps, "
        f"{scenario.virtual_users} users, {scenario.duration}s",
    )
