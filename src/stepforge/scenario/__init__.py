"""Scenario model, parser, validator and substitution engine."""

from __future__ import annotations

from stepforge.scenario.duration import MAX_DELAY, Delay, format_duration, parse_duration
from stepforge.scenario.model import NextStep, Scenario, Step
from stepforge.scenario.parser import dump_scenario, load_scenario, parse, parse_file
from stepforge.scenario.substitution import (
    apply_to_body,
    apply_to_headers,
    apply_to_path_params,
    apply_to_query,
    apply_to_step,
    apply_to_url,
    encode_json,
    iter_placeholders,
    substitute,
)
from stepforge.scenario.validator import (
    parse_request_id,
    validate,
    validate_mapping,
    validate_status_pattern,
)

__all__ = [
    "MAX_DELAY",
    "Delay",
    "NextStep",
    "Scenario",
    "Step",
    "apply_to_body",
    "apply_to_headers",
    "apply_to_path_params",
    "apply_to_query",
    "apply_to_step",
    "apply_to_url",
    "dump_scenario",
    "encode_json",
    "format_duration",
    "iter_placeholders",
    "load_scenario",
    "parse",
    "parse_duration",
    "parse_file",
    "parse_request_id",
    "substitute",
    "validate",
    "validate_mapping",
    "validate_status_pattern",
]
