"""Scenario, step and transition records.

These are passive, immutable values. The parser builds them once from a
definition document and nothing mutates them afterwards; substitution
produces new :class:`Step` instances instead of editing existing ones.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from stepforge.scenario.duration import Delay

if TYPE_CHECKING:
    from stepforge._internal.types import Body, StringMap


def _status_matches(pattern: str, status_code: int) -> bool:
    """Return True if *status_code* satisfies one status pattern."""
    if len(pattern) == 3 and pattern[1:] == "xx":
        return pattern[0] == str(status_code // 100)
    try:
        return int(pattern) == status_code
    except ValueError:
        return False


@dataclass(frozen=True)
class NextStep:
    """A status-gated edge from one step to another.

    Attributes:
        request: Request identifier of the target step (``"METHOD /path"``).
        status_codes: Exact codes (``"201"``) or class wildcards (``"2xx"``).
        map: ``source.field -> target.field`` rules carrying data from the
            current response or context into the target step.
    """

    request: str
    status_codes: tuple[str, ...] = ()
    map: StringMap = field(default_factory=dict)

    def matches(self, status_code: int) -> bool:
        """Return True if any of this edge's patterns accepts *status_code*."""
        return any(_status_matches(pattern, status_code) for pattern in self.status_codes)


@dataclass(frozen=True)
class Step:
    """One HTTP request template plus its outgoing transitions.

    Optional maps are ``None`` when the definition omits them, which lets
    substitution skip fields that were never declared.

    Attributes:
        request: ``"METHOD /path"``. Unique within a scenario; doubles as
            the step's key in the scenario graph.
        headers: Header templates.
        query: Query parameter templates.
        path_params: Path parameter templates.
        body: Request body: a string template, or nested lists and
            string-keyed maps with templates at any depth.
        delay: Pause before the request is sent.
        save_to_context: Values to store in the variable context after the
            response arrives.
        next_steps: Outgoing edges, in declaration order.
    """

    request: str
    headers: StringMap | None = None
    query: StringMap | None = None
    path_params: StringMap | None = None
    body: Body = None
    delay: Delay = field(default_factory=Delay)
    save_to_context: StringMap | None = None
    next_steps: tuple[NextStep, ...] = ()

    @property
    def method(self) -> str:
        """HTTP method token of the request identifier."""
        return self.request.split(" ", 1)[0]

    @property
    def path(self) -> str:
        """Path part of the request identifier (empty if malformed)."""
        parts = self.request.split(" ", 1)
        return parts[1] if len(parts) == 2 else ""

    def next_steps_for(self, status_code: int) -> tuple[NextStep, ...]:
        """Return the outgoing edges whose patterns accept *status_code*."""
        return tuple(edge for edge in self.next_steps if edge.matches(status_code))


@dataclass(frozen=True)
class Scenario:
    """A complete load-test definition.

    Attributes:
        name: Human-readable scenario name.
        base_url: Target base URL that step paths are appended to.
        virtual_users: Number of concurrent virtual users.
        duration: Total run time in seconds.
        variables: Initial variable context.
        steps: Steps in declaration order.
    """

    name: str
    base_url: str
    virtual_users: int
    duration: int
    variables: StringMap = field(default_factory=dict)
    steps: tuple[Step, ...] = ()

    def find_step(self, request: str) -> Step | None:
        """Look up a step by exact request identifier.

        Args:
            request: Identifier such as ``"GET /users/${id}"``.

        Returns:
            The first step declared with that identifier, or None.
        """
        for step in self.steps:
            if step.request == request:
                return step
        return None
