"""StepForge: define, validate and resolve HTTP load-test scenarios."""

from __future__ import annotations

from stepforge._internal.errors import (
    ParseError,
    StepForgeError,
    SubstitutionError,
    ValidationError,
)
from stepforge.scenario.duration import Delay
from stepforge.scenario.model import NextStep, Scenario, Step
from stepforge.scenario.parser import dump_scenario, load_scenario, parse, parse_file
from stepforge.scenario.substitution import apply_to_step, substitute
from stepforge.scenario.validator import validate

__version__ = "0.1.0"

__all__ = [
    "Delay",
    "NextStep",
    "ParseError",
    "Scenario",
    "Step",
    "StepForgeError",
    "SubstitutionError",
    "ValidationError",
    "apply_to_step",
    "dump_scenario",
    "load_scenario",
    "parse",
    "parse_file",
    "substitute",
    "validate",
]
