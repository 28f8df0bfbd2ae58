"""``stepforge init``: scaffold a new scenario definition file."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console

from stepforge.scenario.duration import MILLISECOND, Delay
from stepforge.scenario.model import NextStep, Scenario, Step
from stepforge.scenario.parser import dump_scenario

console = Console(stderr=True)


def _starter_scenario(name: str) -> Scenario:
    """Build a small login -> profile scenario to edit from."""
    return Scenario(
        name=name,
        base_url="http://localhost:8080",
        virtual_users=10,
        duration=60,
        variables={"username": "demo", "password": "secret"},
        steps=(
            Step(
                request="POST /auth/login",
                headers={"Content-Type": "application/json"},
                body={"username": "${username}", "password": "${password}"},
                save_to_context={"token": "response.token"},
                next_steps=(
                    NextStep(
                        request="GET /users/${user_id}",
                        status_codes=("2xx",),
                        map={"response.user_id": "variables.user_id"},
                    ),
                ),
            ),
            Step(
                request="GET /users/${user_id}",
                headers={"Authorization": "Bearer ${token}"},
                delay=Delay(500 * MILLISECOND),
            ),
        ),
    )


def init_cmd(
    name: str = typer.Argument(
        "my_scenario",
        help="Name for the scenario (also used for the file name).",
    ),
) -> None:
    """Write a starter scenario YAML file into the current directory."""
    safe_name = "".join(c if c.isalnum() or c in "_-" else "_" for c in name).lower()
    if not safe_name:
        safe_name = "scenario"

    target = Path.cwd() / f"{safe_name}.yaml"
    if target.exists():
        console.print(f"[red]File already exists:[/red] {target.name}")
        raise typer.Exit(code=1)

    display_name = name.replace("_", " ").replace("-", " ").strip() or safe_name
    target.write_text(dump_scenario(_starter_scenario(display_name)), encoding="utf-8")
    console.print(f"[green]Created scenario:[/green] {target.name}")
    console.print(f"Check it with: stepforge validate {target.name}")
