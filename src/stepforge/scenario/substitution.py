"""Variable substitution: turning step templates into concrete requests.

Placeholders have the form ``${name}``, where *name* is any run of
characters other than ``}`` (possibly empty). Every operation here is pure:
it reads the step and the variable context, never modifies either, and
returns freshly built values. A single failure aborts the whole operation
and no partial result is returned.

Map-valued fields (headers, query, path params) are resolved in
lexicographic key order, so when several entries reference undefined
variables the one with the smallest key is reported.

Structured bodies take one of two paths:

* No placeholder anywhere in the body: the same object is returned
  as-is, with its native values (``int``, ``float``, ...) untouched.
* At least one placeholder: variable values are escaped as JSON string
  fragments, the body is serialized to JSON text, placeholders are replaced
  in that text and the result is parsed back. Floats come back as
  :class:`decimal.Decimal` so their decimal text survives exactly; integers
  come back as ``int``.

So the same body shape can carry ``float`` values on one path and
``Decimal`` values on the other depending on whether any field contains a
placeholder. Callers that compare numbers should compare their decimal
text.

Bodies loaded from YAML already hold binary floats: a literal ``1.10``
arrives as ``1.1`` and mantissas longer than a float can hold are rounded
at load time. Only the text a ``float`` prints as survives the round-trip.
Numbers that must stay exact belong in integers or quoted strings.
"""

from __future__ import annotations

import dataclasses
import json
import math
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from stepforge._internal.errors import SubstitutionError
from stepforge._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from stepforge._internal.types import Body, StringMap, Variables
    from stepforge.scenario.model import Step

logger = get_logger("scenario.substitution")

_OPEN = "${"
_CLOSE = "}"


# ---------------------------------------------------------------------------
# Core primitive
# ---------------------------------------------------------------------------


def iter_placeholders(template: str) -> Iterator[tuple[int, int, str]]:
    """Yield ``(start, end, name)`` for each placeholder, left to right.

    ``template[start:end]`` is the full ``${name}`` span. Braces do not nest:
    ``"${a${b}"`` is one placeholder named ``"a${b"``. An opening ``${``
    with no closing brace is plain text.
    """
    pos = 0
    while True:
        start = template.find(_OPEN, pos)
        if start == -1:
            return
        end = template.find(_CLOSE, start + len(_OPEN))
        if end == -1:
            return
        yield start, end + 1, template[start + len(_OPEN) : end]
        pos = end + 1


def has_placeholders(template: str) -> bool:
    """Return True if *template* contains at least one placeholder."""
    return next(iter_placeholders(template), None) is not None


def substitute(template: str, context: Variables) -> str:
    """Replace every placeholder in *template* with its context value.

    Values are inserted verbatim. ``${}`` looks up the empty-string key.

    Args:
        template: Text possibly containing ``${name}`` placeholders.
        context: Variable name to value mapping.

    Returns:
        The resolved text.

    Raises:
        SubstitutionError: If any placeholder is missing from *context*;
            names the first one in scan order.
    """
    pieces: list[str] = []
    last = 0
    for start, end, name in iter_placeholders(template):
        try:
            value = context[name]
        except KeyError:
            msg = f"undefined variable {name!r}"
            raise SubstitutionError(msg, variable=name) from None
        pieces.append(template[last:start])
        pieces.append(value)
        last = end
    if not pieces:
        return template
    pieces.append(template[last:])
    return "".join(pieces)


# ---------------------------------------------------------------------------
# JSON text round-trip
# ---------------------------------------------------------------------------


def _encode_string(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _encode(value: object, path: str) -> str:
    if isinstance(value, dict):
        members = []
        for key, item in value.items():
            if not isinstance(key, str):
                msg = f"cannot serialize non-string key {key!r} at {path}"
                raise SubstitutionError(msg, field=path)
            members.append(f"{_encode_string(key)}:{_encode(item, f'{path}.{key}')}")
        return "{" + ",".join(members) + "}"
    if isinstance(value, (list, tuple)):
        items = (_encode(item, f"{path}[{index}]") for index, item in enumerate(value))
        return "[" + ",".join(items) + "]"
    if isinstance(value, str):
        return _encode_string(value)
    if value is None or isinstance(value, (bool, int)):
        return json.dumps(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            msg = f"cannot serialize non-finite number {value!r} at {path}"
            raise SubstitutionError(msg, field=path)
        return json.dumps(value)
    if isinstance(value, Decimal):
        if not value.is_finite():
            msg = f"cannot serialize non-finite number {value!r} at {path}"
            raise SubstitutionError(msg, field=path)
        return str(value)
    msg = f"cannot serialize value of type {type(value).__name__} at {path}"
    raise SubstitutionError(msg, field=path)


def encode_json(body: Body, *, path: str = "body") -> str:
    """Serialize a structured body to compact JSON text.

    Key order is preserved and :class:`~decimal.Decimal` values are written
    with their exact decimal text.

    Args:
        body: Nested dicts, lists and JSON scalars.
        path: Name used for the root in error messages.

    Returns:
        JSON text.

    Raises:
        SubstitutionError: If some value cannot be represented in JSON;
            names its field path (e.g. ``body.items[2]``).
    """
    return _encode(body, path)


def _escape_for_json(value: str) -> str:
    """Escape *value* so it can sit inside a JSON string literal."""
    return _encode_string(value)[1:-1]


# ---------------------------------------------------------------------------
# Field-level operations
# ---------------------------------------------------------------------------


def apply_to_url(path: str, context: Variables) -> str:
    """Resolve placeholders in a URL path such as ``"/users/${user_id}"``.

    Raises:
        SubstitutionError: If a placeholder is undefined.
    """
    return substitute(path, context)


def _apply_to_map(mapping: Mapping[str, str] | None, context: Variables, kind: str) -> StringMap:
    if not mapping:
        return {}
    resolved: StringMap = {}
    for key in sorted(mapping):
        try:
            resolved[key] = substitute(mapping[key], context)
        except SubstitutionError as exc:
            msg = f"{kind} {key!r} substitution failed: {exc}"
            raise SubstitutionError(msg, variable=exc.variable, field=key) from exc
    return {key: resolved[key] for key in mapping}


def apply_to_headers(headers: Mapping[str, str] | None, context: Variables) -> StringMap:
    """Return a new header map with every value resolved.

    A missing map yields ``{}``.

    Raises:
        SubstitutionError: For the first failing header in key order.
    """
    return _apply_to_map(headers, context, "header")


def apply_to_query(query: Mapping[str, str] | None, context: Variables) -> StringMap:
    """Return a new query parameter map with every value resolved.

    Raises:
        SubstitutionError: For the first failing parameter in key order.
    """
    return _apply_to_map(query, context, "query param")


def apply_to_path_params(path_params: Mapping[str, str] | None, context: Variables) -> StringMap:
    """Return a new path parameter map with every value resolved.

    Raises:
        SubstitutionError: For the first failing parameter in key order.
    """
    return _apply_to_map(path_params, context, "path param")


def apply_to_body(body: Body, context: Variables) -> Body:
    """Resolve placeholders in a request body.

    * ``None`` is returned unchanged.
    * A string body is substituted directly, without JSON escaping.
    * A structured body with no placeholders is returned as the very same
      object, native numbers intact.
    * Otherwise the body goes through a JSON text round-trip with escaped
      variable values; floats are decoded as ``Decimal``.

    Raises:
        SubstitutionError: If a placeholder is undefined, or the body cannot
            be serialized or parsed back.
    """
    if body is None:
        return None

    if isinstance(body, str):
        return substitute(body, context)

    text = encode_json(body)
    if not has_placeholders(text):
        return body

    escaped = {name: _escape_for_json(value) for name, value in context.items()}
    substituted = substitute(text, escaped)

    try:
        return json.loads(substituted, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        msg = f"body parsing after substitution failed: {exc}"
        raise SubstitutionError(msg, field="body") from exc


def apply_to_step(step: Step, context: Variables) -> Step:
    """Return a copy of *step* with every placeholder resolved.

    The method token is left as-is; the path, headers, query, path params
    and body are resolved in that order, each only if the step declares it.
    The input step and its maps are never modified.

    Args:
        step: The step template.
        context: Variable context for this resolution.

    Returns:
        A new Step.

    Raises:
        SubstitutionError: Wrapping the first failure, with ``field`` set to
            the step field that failed.
    """
    changes: dict[str, object] = {}

    method, space, path = step.request.partition(" ")
    if space:
        changes["request"] = f"{method} {_resolve_field('request', apply_to_url, path, context)}"

    if step.headers is not None:
        changes["headers"] = _resolve_field("headers", apply_to_headers, step.headers, context)
    if step.query is not None:
        changes["query"] = _resolve_field("query", apply_to_query, step.query, context)
    if step.path_params is not None:
        changes["path_params"] = _resolve_field(
            "path_params", apply_to_path_params, step.path_params, context
        )
    if step.body is not None:
        changes["body"] = _resolve_field("body", apply_to_body, step.body, context)
    if step.save_to_context is not None:
        changes["save_to_context"] = dict(step.save_to_context)

    resolved = dataclasses.replace(step, **changes)
    logger.debug("Resolved %s -> %s", step.request, resolved.request, extra={"request": step.request})
    return resolved


def _resolve_field(
    name: str,
    apply: Callable[[Any, Variables], Any],
    value: Any,
    context: Variables,
) -> Any:
    """Run one field resolver, tagging any failure with the field name."""
    try:
        return apply(value, context)
    except SubstitutionError as exc:
        msg = f"{name} substitution failed: {exc}"
        raise SubstitutionError(msg, variable=exc.variable, field=name) from exc
