"""Structural validation of decoded scenarios.

Validation runs once at load time and is fail-fast: steps are walked in
declaration order and the first violation found is raised as a
:class:`ValidationError`. Nothing is accumulated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from stepforge._internal.errors import ValidationError
from stepforge._internal.logging import get_logger
from stepforge.scenario.duration import MAX_DELAY

if TYPE_CHECKING:
    from stepforge.scenario.model import Scenario

logger = get_logger("scenario.validator")

VALID_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD")
BODYLESS_METHODS = frozenset({"GET", "HEAD"})

MAPPING_SOURCES = ("response", "headers", "query", "path_params", "body", "cookies", "variables")
MAPPING_TARGETS = ("headers", "query", "path_params", "body", "cookies", "variables")

MAX_DURATION_SECONDS = 31_556_952


def parse_request_id(request: str) -> tuple[str, str]:
    """Split a request identifier into method and path.

    Args:
        request: Identifier of the form ``"METHOD /path"``. Only the first
            space separates the two parts.

    Returns:
        ``(method, path)``.

    Raises:
        ValidationError: If the identifier is empty, has no space, names an
            unsupported method, or has a path not starting with ``/``.
    """
    if not request:
        msg = "request cannot be empty"
        raise ValidationError(msg, field="request", value=request)

    parts = request.split(" ", 1)
    if len(parts) != 2:
        msg = f"invalid request format {request!r}, expected 'METHOD /path'"
        raise ValidationError(msg, field="request", value=request)

    method, path = parts
    if method not in VALID_METHODS:
        msg = f"invalid HTTP method {method!r}, must be one of: {', '.join(VALID_METHODS)}"
        raise ValidationError(msg, field="request", value=request)

    if not path.startswith("/"):
        msg = f"path must start with '/', got: {path!r}"
        raise ValidationError(msg, field="request", value=request)

    return method, path


def validate_status_pattern(code: str) -> None:
    """Check one status-code pattern.

    Accepts exact codes ``"100"`` to ``"599"`` and class wildcards ``"1xx"``
    to ``"5xx"``.

    Raises:
        ValidationError: For anything else, e.g. ``"20"``, ``"6xx"``,
            ``"099"`` or ``"abc"``.
    """
    if not code:
        msg = "status code cannot be empty"
        raise ValidationError(msg, field="status_codes", value=code)

    if len(code) == 3 and code[1:] == "xx":
        if code[0] not in "12345":
            msg = f"wildcard must be 1xx-5xx, got: {code!r}"
            raise ValidationError(msg, field="status_codes", value=code)
        return

    if not (len(code) == 3 and code.isascii() and code.isdigit()):
        msg = f"invalid status code format {code!r}"
        raise ValidationError(msg, field="status_codes", value=code)

    status = int(code)
    if not 100 <= status <= 599:
        msg = f"status code must be 100-599, got: {status}"
        raise ValidationError(msg, field="status_codes", value=code)


def split_mapping_key(key: str) -> tuple[str, str]:
    """Split ``"prefix.field"`` on its first dot.

    Raises:
        ValidationError: If *key* contains no dot.
    """
    prefix, dot, name = key.partition(".")
    if not dot:
        msg = f"expected 'prefix.field', got: {key!r}"
        raise ValidationError(msg, field="map", value=key)
    return prefix, name


def validate_mapping(source: str, target: str) -> None:
    """Check one ``source.field -> target.field`` data-propagation rule.

    ``response`` is a valid source but never a valid target.

    Raises:
        ValidationError: If either side is malformed or uses an unknown
            prefix.
    """
    try:
        source_prefix, _ = split_mapping_key(source)
    except ValidationError as exc:
        msg = f"invalid source format: {exc}"
        raise ValidationError(msg, field="map", value=source) from exc
    if source_prefix not in MAPPING_SOURCES:
        msg = f"invalid source {source_prefix!r}, must be one of: {', '.join(MAPPING_SOURCES)}"
        raise ValidationError(msg, field="map", value=source)

    try:
        target_prefix, _ = split_mapping_key(target)
    except ValidationError as exc:
        msg = f"invalid target format: {exc}"
        raise ValidationError(msg, field="map", value=target) from exc
    if target_prefix not in MAPPING_TARGETS:
        msg = f"invalid target {target_prefix!r}, must be one of: {', '.join(MAPPING_TARGETS)}"
        raise ValidationError(msg, field="map", value=target)


def _validate_header(scenario: Scenario) -> None:
    if not scenario.name:
        msg = "scenario.name is required"
        raise ValidationError(msg, field="name")
    if not scenario.base_url:
        msg = "scenario.base_url is required"
        raise ValidationError(msg, field="base_url")
    if scenario.virtual_users <= 0:
        msg = "scenario.virtual_users must be greater than 0"
        raise ValidationError(msg, field="virtual_users", value=scenario.virtual_users)
    if scenario.duration <= 0:
        msg = "scenario.duration must be greater than 0"
        raise ValidationError(msg, field="duration", value=scenario.duration)
    if scenario.duration > MAX_DURATION_SECONDS:
        msg = f"scenario.duration must not exceed 1 year ({MAX_DURATION_SECONDS} seconds)"
        raise ValidationError(msg, field="duration", value=scenario.duration)
    if not scenario.steps:
        msg = "scenario.steps: at least one step is required"
        raise ValidationError(msg, field="steps")


def _rewrap(exc: ValidationError, prefix: str, step_index: int) -> ValidationError:
    """Copy *exc* with a location prefix and the step index attached."""
    return ValidationError(
        f"{prefix}: {exc}",
        step_index=step_index,
        field=exc.field,
        value=exc.value,
    )


def validate(scenario: Scenario) -> None:
    """Check every structural invariant of *scenario*.

    Scenario-level fields are checked first, then each step in declaration
    order, then each of that step's next steps in order. Mapping rules are
    checked in lexicographic order of their source key.

    Args:
        scenario: A decoded scenario.

    Raises:
        ValidationError: For the first violation encountered. Only one
            error is ever reported per call.
    """
    _validate_header(scenario)

    seen: set[str] = set()
    for i, step in enumerate(scenario.steps):
        location = f"step[{i}]"
        if not step.request:
            msg = f"{location}: request field is required"
            raise ValidationError(msg, step_index=i, field="request")

        if step.request in seen:
            msg = f"{location}: duplicate request {step.request!r}"
            raise ValidationError(msg, step_index=i, field="request", value=step.request)
        seen.add(step.request)

        try:
            method, _ = parse_request_id(step.request)
        except ValidationError as exc:
            raise _rewrap(exc, location, i) from exc

        location = f"step[{i}] ({step.request})"
        if method in BODYLESS_METHODS and step.body is not None:
            msg = f"{location}: GET and HEAD requests cannot have a body"
            raise ValidationError(msg, step_index=i, field="body")

        if step.delay.nanoseconds < 0:
            msg = f"{location}: delay must be non-negative"
            raise ValidationError(msg, step_index=i, field="delay", value=str(step.delay))
        if step.delay > MAX_DELAY:
            msg = f"{location}: delay must not exceed {MAX_DELAY}"
            raise ValidationError(msg, step_index=i, field="delay", value=str(step.delay))

        for j, edge in enumerate(step.next_steps):
            location = f"step[{i}], next_step[{j}]"
            if not edge.request:
                msg = f"{location}: request field is required"
                raise ValidationError(msg, step_index=i, field="next_steps")

            try:
                parse_request_id(edge.request)
            except ValidationError as exc:
                raise _rewrap(exc, location, i) from exc

            if scenario.find_step(edge.request) is None:
                msg = f"{location}: target step {edge.request!r} not found"
                raise ValidationError(msg, step_index=i, field="next_steps", value=edge.request)

            for k, code in enumerate(edge.status_codes):
                try:
                    validate_status_pattern(code)
                except ValidationError as exc:
                    raise _rewrap(exc, f"{location}, status_code[{k}]", i) from exc

            for source in sorted(edge.map):
                target = edge.map[source]
                try:
                    validate_mapping(source, target)
                except ValidationError as exc:
                    prefix = f"{location}: invalid mapping {source!r} -> {target!r}"
                    raise _rewrap(exc, prefix, i) from exc

    logger.debug("Scenario %r passed validation", scenario.name, extra={"scenario": scenario.name})
