"""Configuration loading for StepForge."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from stepforge._internal.errors import ConfigError

_LOG_FORMATS = ("text", "json")


@dataclass(frozen=True)
class StepForgeConfig:
    """Global StepForge configuration.

    Attributes:
        base_url_override: When non-empty, replaces the scenario's
            ``base_url`` for requests sent from the CLI.
        request_timeout: Default request timeout in seconds.
        log_format: ``"text"`` or ``"json"``.
    """

    base_url_override: str = ""
    request_timeout: float = 30.0
    log_format: str = "text"

    @property
    def json_logs(self) -> bool:
        """Whether structured JSON logging is requested."""
        return self.log_format == "json"


def load_config() -> StepForgeConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        STEPFORGE_BASE_URL: Base URL override for sent requests.
        STEPFORGE_TIMEOUT: Request timeout in seconds (default: 30.0).
        STEPFORGE_LOG_FORMAT: ``text`` (default) or ``json``.

    Returns:
        Populated StepForgeConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    timeout_str = os.environ.get("STEPFORGE_TIMEOUT", "30.0")
    log_format = os.environ.get("STEPFORGE_LOG_FORMAT", "text").strip().lower()

    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"STEPFORGE_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None

    if not math.isfinite(timeout):
        msg = f"STEPFORGE_TIMEOUT must be finite, got: {timeout_str!r}"
        raise ConfigError(msg)

    if timeout <= 0:
        msg = f"STEPFORGE_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    if log_format not in _LOG_FORMATS:
        msg = f"STEPFORGE_LOG_FORMAT must be one of {', '.join(_LOG_FORMATS)}, got: {log_format!r}"
        raise ConfigError(msg)

    return StepForgeConfig(
        base_url_override=os.environ.get("STEPFORGE_BASE_URL", "").rstrip("/"),
        request_timeout=timeout,
        log_format=log_format,
    )
