"""``stepforge resolve`` and ``stepforge send``: work with a single step."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from stepforge._internal.config import load_config
from stepforge._internal.errors import StepForgeError
from stepforge.engine.executor import Executor, build_request
from stepforge.scenario.parser import load_scenario
from stepforge.scenario.substitution import apply_to_step, encode_json

if TYPE_CHECKING:
    from stepforge.engine.executor import HttpRequest, HttpResponse
    from stepforge.scenario.model import Scenario, Step

console = Console(stderr=True)

_BODY_PREVIEW = 2048


def _parse_vars(values: list[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` pairs into a dict.

    Raises:
        typer.BadParameter: If a pair has no ``=``.
    """
    parsed: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep:
            msg = f"--var expects KEY=VALUE, got: {item!r}"
            raise typer.BadParameter(msg)
        parsed[key] = value
    return parsed


def _resolve(scenario_file: Path, request: str, variables: list[str]) -> tuple[Scenario, Step]:
    """Load *scenario_file* and resolve the step named *request*.

    The scenario's own variables are overlaid with the ``--var`` values.
    Exits with code 1 on any StepForge error.
    """
    context = _parse_vars(variables)
    try:
        scenario = load_scenario(scenario_file)
        step = scenario.find_step(request)
        if step is None:
            console.print(f"[red]Error:[/red] no step named {escape(repr(request))} in {scenario_file}")
            raise typer.Exit(code=1)
        resolved = apply_to_step(step, {**scenario.variables, **context})
    except StepForgeError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    return scenario, resolved


def _step_document(step: Step) -> dict[str, object]:
    return {
        "request": step.request,
        "headers": step.headers or {},
        "query": step.query or {},
        "path_params": step.path_params or {},
        "body": step.body,
        "delay": step.delay.format(),
    }


_SCENARIO_ARGUMENT = typer.Argument(
    ...,
    help="Path to the scenario YAML file.",
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
)
_REQUEST_ARGUMENT = typer.Argument(..., help="Step request identifier, e.g. 'GET /users/${id}'.")
_VAR_OPTION = typer.Option(
    [],
    "--var",
    "-e",
    help="Extra variable as KEY=VALUE; overrides the scenario's variables. Repeatable.",
)


def resolve_cmd(
    scenario_file: Path = _SCENARIO_ARGUMENT,
    request: str = _REQUEST_ARGUMENT,
    var: list[str] = _VAR_OPTION,
) -> None:
    """Resolve one step against the variable context and print it as JSON."""
    _, resolved = _resolve(scenario_file, request, var)
    try:
        typer.echo(encode_json(_step_document(resolved), path="step"))
    except StepForgeError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


async def _send(request: HttpRequest, timeout: float) -> HttpResponse:
    async with Executor(timeout=timeout) as executor:
        return await executor.execute(request)


def send_cmd(
    scenario_file: Path = _SCENARIO_ARGUMENT,
    request: str = _REQUEST_ARGUMENT,
    var: list[str] = _VAR_OPTION,
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Request timeout in seconds (default: STEPFORGE_TIMEOUT or 30).",
        min=0.001,
    ),
) -> None:
    """Resolve one step, send it once and show the response."""
    scenario, resolved = _resolve(scenario_file, request, var)

    try:
        config = load_config()
        base_url = config.base_url_override or scenario.base_url
        http_request = build_request(resolved, base_url)
        response = asyncio.run(_send(http_request, timeout or config.request_timeout))
    except StepForgeError as exc:
        console.print(f"[red]Request failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    colour = "green" if response.status_code < 400 else "red"
    preview = response.body[:_BODY_PREVIEW].decode("utf-8", errors="replace")
    next_steps = resolved.next_steps_for(response.status_code)
    console.print(
        Panel(
            f"[bold]Request:[/bold] {http_request.method} {http_request.url}\n"
            f"[bold]Status:[/bold]  [{colour}]{response.status_code} {response.reason}[/{colour}]\n"
            f"[bold]Elapsed:[/bold] {response.elapsed * 1000:.1f}ms\n"
            f"[bold]Size:[/bold]    {len(response.body)} bytes\n"
            f"[bold]Next:[/bold]    {', '.join(edge.request for edge in next_steps) or '-'}",
            title=scenario.name,
            border_style="cyan",
        )
    )
    typer.echo(preview)
