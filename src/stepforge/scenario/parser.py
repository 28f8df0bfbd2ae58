"""Decoding scenario definition documents into the scenario model.

Definitions are YAML (JSON documents are accepted as a subset)::

    name: checkout
    base_url: https://shop.example.com
    virtual_users: 20
    duration: 300
    variables:
      user: alice
    steps:
      - request: POST /login
        body: {username: "${user}"}
        next_steps:
          - request: GET /cart
            status_codes: ["2xx"]
            map: {response.token: headers.Authorization}
      - request: GET /cart
        delay: 500ms
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from stepforge._internal.errors import ParseError
from stepforge._internal.logging import get_logger
from stepforge.scenario.duration import Delay
from stepforge.scenario.model import NextStep, Scenario, Step
from stepforge.scenario.validator import validate

if TYPE_CHECKING:
    from stepforge._internal.types import StringMap

logger = get_logger("scenario.parser")

_SCENARIO_FIELDS = frozenset({"name", "base_url", "virtual_users", "duration", "variables", "steps"})
_STEP_FIELDS = frozenset(
    {
        "request",
        "headers",
        "query",
        "path_params",
        "body",
        "delay",
        "save_to_context",
        "next_steps",
    }
)
_NEXT_STEP_FIELDS = frozenset({"request", "status_codes", "map"})

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


class _ScenarioLoader(yaml.SafeLoader):
    """SafeLoader that leaves timestamp-looking scalars as plain strings."""


_ScenarioLoader.yaml_implicit_resolvers = {
    first_char: [(tag, regexp) for tag, regexp in resolvers if tag != _TIMESTAMP_TAG]
    for first_char, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}


# ---------------------------------------------------------------------------
# Field decoders
# ---------------------------------------------------------------------------


def _scalar_text(value: object, path: str) -> str:
    """Coerce a YAML scalar into the string the model stores."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    msg = f"{path}: expected a string, got {type(value).__name__}"
    raise ParseError(msg)


def _integer(value: object, path: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        msg = f"{path}: expected an integer, got {type(value).__name__}"
        raise ParseError(msg)
    return value


def _mapping(value: object, path: str) -> dict[Any, Any]:
    if not isinstance(value, dict):
        msg = f"{path}: expected a mapping, got {type(value).__name__}"
        raise ParseError(msg)
    return value


def _sequence(value: object, path: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"{path}: expected a list, got {type(value).__name__}"
        raise ParseError(msg)
    return value


def _string_map(value: object, path: str) -> StringMap | None:
    if value is None:
        return None
    raw = _mapping(value, path)
    result: StringMap = {}
    for key, item in raw.items():
        name = _scalar_text(key, path)
        if name in result:
            msg = f"{path}: duplicate key {name!r}"
            raise ParseError(msg)
        result[name] = _scalar_text(item, f"{path}.{name}")
    return result


def _body(value: object, path: str) -> Any:
    """Check that *value* is representable as JSON and return it unchanged."""
    if value is None or isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            msg = f"{path}: non-finite number {value!r} is not allowed"
            raise ParseError(msg)
        return value
    if isinstance(value, list):
        for index, item in enumerate(value):
            _body(item, f"{path}[{index}]")
        return value
    if isinstance(value, dict):
        for key, item in value.items():
            if not isinstance(key, str):
                msg = f"{path}: keys must be strings, got {type(key).__name__} {key!r}"
                raise ParseError(msg)
            _body(item, f"{path}.{key}")
        return value
    msg = f"{path}: expected a JSON value, got {type(value).__name__}"
    raise ParseError(msg)


def _warn_unknown(raw: dict[Any, Any], allowed: frozenset[str], path: str) -> None:
    for key in raw:
        if key not in allowed:
            logger.warning("Ignoring unknown field %r in %s", key, path)


def _decode_next_step(value: object, path: str) -> NextStep:
    raw = _mapping(value, path)
    _warn_unknown(raw, _NEXT_STEP_FIELDS, path)
    status_codes = tuple(
        _scalar_text(code, f"{path}.status_codes[{index}]")
        for index, code in enumerate(_sequence(raw.get("status_codes"), f"{path}.status_codes"))
    )
    return NextStep(
        request=_scalar_text(raw.get("request"), f"{path}.request"),
        status_codes=status_codes,
        map=_string_map(raw.get("map"), f"{path}.map") or {},
    )


def _decode_step(value: object, path: str) -> Step:
    raw = _mapping(value, path)
    _warn_unknown(raw, _STEP_FIELDS, path)

    try:
        delay = Delay.decode(raw.get("delay"))
    except ParseError as exc:
        msg = f"{path}.delay: {exc}"
        raise ParseError(msg) from exc

    next_steps = tuple(
        _decode_next_step(item, f"{path}.next_steps[{index}]")
        for index, item in enumerate(_sequence(raw.get("next_steps"), f"{path}.next_steps"))
    )
    return Step(
        request=_scalar_text(raw.get("request"), f"{path}.request"),
        headers=_string_map(raw.get("headers"), f"{path}.headers"),
        query=_string_map(raw.get("query"), f"{path}.query"),
        path_params=_string_map(raw.get("path_params"), f"{path}.path_params"),
        body=_body(raw.get("body"), f"{path}.body"),
        delay=delay,
        save_to_context=_string_map(raw.get("save_to_context"), f"{path}.save_to_context"),
        next_steps=next_steps,
    )


def _decode_scenario(document: object) -> Scenario:
    raw = _mapping(document, "scenario")
    _warn_unknown(raw, _SCENARIO_FIELDS, "scenario")
    steps = tuple(
        _decode_step(item, f"steps[{index}]")
        for index, item in enumerate(_sequence(raw.get("steps"), "steps"))
    )
    return Scenario(
        name=_scalar_text(raw.get("name"), "name"),
        base_url=_scalar_text(raw.get("base_url"), "base_url"),
        virtual_users=_integer(raw.get("virtual_users"), "virtual_users"),
        duration=_integer(raw.get("duration"), "duration"),
        variables=_string_map(raw.get("variables"), "variables") or {},
        steps=steps,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(data: bytes | str) -> Scenario:
    """Decode a scenario definition document.

    Args:
        data: YAML (or JSON) document text.

    Returns:
        The decoded, not yet validated, Scenario.

    Raises:
        ParseError: If the document is malformed or a field has the wrong
            type. No partially decoded scenario is returned.
    """
    try:
        document = yaml.load(data, Loader=_ScenarioLoader)
    except yaml.YAMLError as exc:
        msg = f"failed to parse YAML: {exc}"
        raise ParseError(msg) from exc

    if document is None:
        msg = "scenario document is empty"
        raise ParseError(msg)

    scenario = _decode_scenario(document)
    logger.debug("Decoded scenario %r with %d steps", scenario.name, len(scenario.steps))
    return scenario


def parse_file(file_path: str | Path) -> Scenario:
    """Read and decode a scenario definition file.

    Raises:
        ParseError: If the file cannot be read or decoded.
    """
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as exc:
        msg = f"failed to read scenario file {path}: {exc}"
        raise ParseError(msg) from exc
    return parse(data)


def load_scenario(file_path: str | Path) -> Scenario:
    """Read, decode and validate a scenario file in one fail-fast pass.

    Raises:
        ParseError: If the file cannot be read or decoded.
        ValidationError: If the scenario violates a structural invariant.
    """
    scenario = parse_file(file_path)
    validate(scenario)
    logger.info(
        "Loaded scenario %r from %s (%d steps)",
        scenario.name,
        file_path,
        len(scenario.steps),
        extra={"scenario": scenario.name},
    )
    return scenario


def _step_document(step: Step) -> dict[str, Any]:
    document: dict[str, Any] = {"request": step.request}
    for name in ("headers", "query", "path_params"):
        value = getattr(step, name)
        if value is not None:
            document[name] = dict(value)
    if step.body is not None:
        document["body"] = step.body
    if not step.delay.is_zero():
        document["delay"] = step.delay.format()
    if step.save_to_context is not None:
        document["save_to_context"] = dict(step.save_to_context)
    if step.next_steps:
        document["next_steps"] = [
            {
                "request": edge.request,
                "status_codes": list(edge.status_codes),
                **({"map": dict(edge.map)} if edge.map else {}),
            }
            for edge in step.next_steps
        ]
    return document


def dump_scenario(scenario: Scenario) -> str:
    """Serialize a scenario back into a YAML definition document.

    Absent optional fields are omitted and delays are written in their
    canonical literal form, so ``parse(dump_scenario(s)) == s`` holds for any
    scenario produced by :func:`parse`.
    """
    document: dict[str, Any] = {
        "name": scenario.name,
        "base_url": scenario.base_url,
        "virtual_users": scenario.virtual_users,
        "duration": scenario.duration,
    }
    if scenario.variables:
        document["variables"] = dict(scenario.variables)
    document["steps"] = [_step_document(step) for step in scenario.steps]
    return yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
