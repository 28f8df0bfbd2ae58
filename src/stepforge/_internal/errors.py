"""Custom exception hierarchy for StepForge."""

from __future__ import annotations


class StepForgeError(Exception):
    """Base exception for all StepForge errors.

    All custom exceptions in StepForge inherit from this class, making it
    easy to catch any StepForge-specific error with a single except clause.
    """


class ParseError(StepForgeError):
    """Raised when a scenario definition document cannot be decoded.

    Examples:
        - The document is not valid YAML or JSON.
        - ``steps`` is not a list, or ``virtual_users`` is not an integer.
        - A ``delay`` is neither a duration literal nor an integer.
    """


class ValidationError(StepForgeError):
    """Raised when a decoded scenario violates a structural invariant.

    Validation is fail-fast: exactly one violation is reported per call.

    Attributes:
        step_index: Index of the offending step, or None for scenario-level
            violations.
        field: Name of the offending field (e.g. ``"delay"``).
        value: The offending value, when there is one.
    """

    def __init__(
        self,
        message: str,
        *,
        step_index: int | None = None,
        field: str | None = None,
        value: object = None,
    ) -> None:
        super().__init__(message)
        self.step_index = step_index
        self.field = field
        self.value = value


class SubstitutionError(StepForgeError):
    """Raised when a template cannot be resolved against a variable context.

    Attributes:
        variable: The first unresolved placeholder name, if the failure was an
            undefined variable.
        field: The step field or body path that failed, if known.
    """

    def __init__(
        self,
        message: str,
        *,
        variable: str | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.variable = variable
        self.field = field


class ConfigError(StepForgeError):
    """Raised when configuration is invalid or missing.

    Examples:
        - Required environment variable has an invalid value.
        - Configuration value is out of acceptable range.
    """


class ExecutionError(StepForgeError):
    """Raised when a resolved request cannot be sent or its response read."""
