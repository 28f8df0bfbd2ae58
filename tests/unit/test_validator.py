"""Tests for structural scenario validation."""

from __future__ import annotations

import dataclasses

import pytest

from stepforge._internal.errors import ValidationError
from stepforge.scenario.duration import MAX_DELAY, Delay
from stepforge.scenario.model import NextStep, Scenario, Step
from stepforge.scenario.validator import (
    parse_request_id,
    validate,
    validate_mapping,
    validate_status_pattern,
)


def _scenario(*steps: Step, **overrides: object) -> Scenario:
    base = Scenario(
        name="validator",
        base_url="http://localhost",
        virtual_users=2,
        duration=30,
        steps=steps or (Step(request="GET /"),),
    )
    return dataclasses.replace(base, **overrides)


# =========================================================================
# parse_request_id
# =========================================================================


class TestParseRequestId:
    """Tests for parse_request_id."""

    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"])
    def test_valid_methods(self, method: str):
        """All supported methods are accepted."""
        assert parse_request_id(f"{method} /users") == (method, "/users")

    def test_splits_on_first_space_only(self):
        """Everything after the first space is the path."""
        assert parse_request_id("GET /a b c") == ("GET", "/a b c")

    @pytest.mark.parametrize(
        ("request_id", "match"),
        [
            ("", "cannot be empty"),
            ("GET", "expected 'METHOD /path'"),
            ("OPTIONS /", "invalid HTTP method"),
            ("get /", "invalid HTTP method"),
            ("GET users", "must start with '/'"),
            ("GET  /double-space", "must start with '/'"),
        ],
    )
    def test_invalid(self, request_id: str, match: str):
        """Malformed identifiers are rejected."""
        with pytest.raises(ValidationError, match=match):
            parse_request_id(request_id)


# =========================================================================
# validate_status_pattern / validate_mapping
# =========================================================================


class TestValidateStatusPattern:
    """Tests for validate_status_pattern."""

    @pytest.mark.parametrize("code", ["100", "200", "404", "599", "1xx", "2xx", "5xx"])
    def test_accepted(self, code: str):
        """Exact codes 100-599 and 1xx-5xx wildcards are accepted."""
        validate_status_pattern(code)

    @pytest.mark.parametrize(
        "code", ["", "20", "abc", "6xx", "0xx", "099", "600", "1000", "2XX", "x2x", "+20", "２００"]
    )
    def test_rejected(self, code: str):
        """Anything else is rejected."""
        with pytest.raises(ValidationError):
            validate_status_pattern(code)


class TestValidateMapping:
    """Tests for validate_mapping."""

    @pytest.mark.parametrize(
        ("source", "target"),
        [
            ("response.body", "variables.token"),
            ("headers.X-Id", "path_params.id"),
            ("cookies.session", "cookies.session"),
            ("body.user.id", "body.owner.id"),
            ("response.", "query."),
        ],
    )
    def test_accepted(self, source: str, target: str):
        """Known prefixes on both sides are accepted."""
        validate_mapping(source, target)

    @pytest.mark.parametrize(
        ("source", "target", "match"),
        [
            ("foo.bar", "variables.x", "invalid source 'foo'"),
            ("response.body", "response.x", "invalid target 'response'"),
            ("response", "variables.x", "invalid source format"),
            ("response.body", "variables", "invalid target format"),
        ],
    )
    def test_rejected(self, source: str, target: str, match: str):
        """Unknown prefixes, response as a target, and missing dots are rejected."""
        with pytest.raises(ValidationError, match=match):
            validate_mapping(source, target)


# =========================================================================
# validate
# =========================================================================


class TestValidateScenario:
    """Tests for scenario-level checks."""

    def test_valid(self):
        """A minimal valid scenario passes."""
        validate(_scenario())

    @pytest.mark.parametrize(
        ("overrides", "match"),
        [
            ({"name": ""}, "name is required"),
            ({"base_url": ""}, "base_url is required"),
            ({"virtual_users": 0}, "virtual_users must be greater than 0"),
            ({"virtual_users": -1}, "virtual_users must be greater than 0"),
            ({"duration": 0}, "duration must be greater than 0"),
            ({"duration": 31_556_953}, "must not exceed 1 year"),
            ({"steps": ()}, "at least one step"),
        ],
    )
    def test_scenario_fields(self, overrides: dict[str, object], match: str):
        """Scenario-level invariants are enforced."""
        with pytest.raises(ValidationError, match=match):
            validate(_scenario(**overrides))

    def test_duration_upper_bound_inclusive(self):
        """Exactly one year is allowed."""
        validate(_scenario(duration=31_556_952))


class TestValidateSteps:
    """Tests for step-level checks."""

    def test_duplicate_request(self):
        """Request identifiers must be unique."""
        with pytest.raises(ValidationError, match=r"step\[1\]: duplicate request") as info:
            validate(_scenario(Step(request="GET /a"), Step(request="GET /a")))
        assert info.value.step_index == 1
        assert info.value.value == "GET /a"

    def test_empty_request(self):
        """Every step needs a request identifier."""
        with pytest.raises(ValidationError, match=r"step\[0\]: request field is required"):
            validate(_scenario(Step(request="")))

    def test_malformed_request(self):
        """Malformed identifiers are reported with the step index."""
        with pytest.raises(ValidationError, match=r"step\[0\]: invalid HTTP method") as info:
            validate(_scenario(Step(request="FETCH /a")))
        assert info.value.step_index == 0
        assert info.value.field == "request"

    @pytest.mark.parametrize("method", ["GET", "HEAD"])
    def test_bodyless_methods(self, method: str):
        """GET and HEAD steps cannot carry a body."""
        with pytest.raises(ValidationError, match="cannot have a body") as info:
            validate(_scenario(Step(request=f"{method} /a", body={"x": 1})))
        assert info.value.field == "body"

    def test_empty_structured_body_still_counts(self):
        """An empty body is still a body."""
        with pytest.raises(ValidationError, match="cannot have a body"):
            validate(_scenario(Step(request="GET /a", body={})))

    def test_post_with_body(self):
        """Other methods may carry a body."""
        validate(_scenario(Step(request="POST /a", body="raw")))

    def test_negative_delay(self):
        """Delays cannot be negative."""
        with pytest.raises(ValidationError, match="delay must be non-negative"):
            validate(_scenario(Step(request="GET /a", delay=Delay(-1))))

    def test_delay_limit(self):
        """Delays are capped at ten minutes, inclusive."""
        validate(_scenario(Step(request="GET /a", delay=MAX_DELAY)))
        too_long = Delay(MAX_DELAY.nanoseconds + 1)
        with pytest.raises(ValidationError, match="must not exceed 10m0s"):
            validate(_scenario(Step(request="GET /a", delay=too_long)))


class TestValidateNextSteps:
    """Tests for transition checks."""

    def _with_edge(self, edge: NextStep) -> Scenario:
        return _scenario(
            Step(request="POST /login", next_steps=(edge,)),
            Step(request="GET /me"),
        )

    def test_valid_edge(self):
        """A well-formed edge to an existing step passes."""
        validate(
            self._with_edge(
                NextStep(
                    request="GET /me",
                    status_codes=("200", "2xx"),
                    map={"response.token": "headers.Authorization"},
                )
            )
        )

    def test_missing_target(self):
        """Edges must point at an existing step."""
        with pytest.raises(ValidationError, match=r"next_step\[0\]: target step 'GET /nope' not found"):
            validate(self._with_edge(NextStep(request="GET /nope")))

    def test_empty_target(self):
        """Edges need a request identifier."""
        with pytest.raises(ValidationError, match="request field is required"):
            validate(self._with_edge(NextStep(request="")))

    def test_malformed_target(self):
        """Edge identifiers are parsed like step identifiers."""
        with pytest.raises(ValidationError, match=r"next_step\[0\]: path must start"):
            validate(self._with_edge(NextStep(request="GET me")))

    def test_bad_status_code_reports_position(self):
        """Status code errors name their position in the list."""
        edge = NextStep(request="GET /me", status_codes=("200", "6xx"))
        with pytest.raises(ValidationError, match=r"status_code\[1\]: wildcard must be 1xx-5xx"):
            validate(self._with_edge(edge))

    def test_bad_mapping(self):
        """Mapping errors name both sides of the rule."""
        edge = NextStep(request="GET /me", map={"response.body": "response.x"})
        with pytest.raises(
            ValidationError, match=r"invalid mapping 'response.body' -> 'response.x'"
        ):
            validate(self._with_edge(edge))

    def test_bad_mappings_reported_in_key_order(self):
        """With several bad rules, the smallest source key is reported."""
        edge = NextStep(request="GET /me", map={"zzz.a": "variables.a", "aaa.b": "variables.b"})
        with pytest.raises(ValidationError, match="'aaa.b'"):
            validate(self._with_edge(edge))

    def test_self_loop_allowed(self):
        """A step may transition to itself."""
        validate(_scenario(Step(request="GET /poll", next_steps=(NextStep(request="GET /poll"),))))


class TestFailFast:
    """validate reports only the first violation."""

    def test_earliest_step_wins(self):
        """With two invalid steps, only the first one is reported."""
        scenario = _scenario(
            Step(request="GET /ok"),
            Step(request="GET /first", body="not allowed"),
            Step(request="BREW /second"),
        )
        with pytest.raises(ValidationError) as info:
            validate(scenario)
        assert info.value.step_index == 1
        assert "second" not in str(info.value)

    def test_step_checks_precede_later_steps_edges(self):
        """A step's own problems surface before a later step's edge problems."""
        scenario = _scenario(
            Step(request="GET /a", delay=Delay(-1)),
            Step(request="GET /b", next_steps=(NextStep(request="GET /missing"),)),
        )
        with pytest.raises(ValidationError, match="delay") as info:
            validate(scenario)
        assert info.value.step_index == 0
