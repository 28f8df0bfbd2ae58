"""Logging setup for StepForge."""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

# Record attributes forwarded into JSON output when passed via ``extra=``.
_CONTEXT_KEYS = ("scenario", "request", "step_index")


class _JsonFormatter(logging.Formatter):
    """One-line JSON log formatter.

    Emits objects with keys ``timestamp``, ``level``, ``logger`` and
    ``message``, plus any scenario context attached through ``extra=``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as a JSON string.

        Args:
            record: The log record to format.

        Returns:
            A single-line JSON string.
        """
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in _CONTEXT_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(
    level: int = logging.INFO,
    *,
    json_format: bool = False,
) -> logging.Logger:
    """Configure and return the ``stepforge`` logger.

    Repeated calls only adjust the level of the existing handler, so the CLI
    and library callers can both call this safely.

    Args:
        level: Logging level (e.g., ``logging.DEBUG``). Defaults to INFO.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The configured ``stepforge`` logger.
    """
    logger = logging.getLogger("stepforge")
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a child logger under the ``stepforge`` namespace.

    Args:
        name: Dotted suffix, e.g. ``get_logger("scenario.parser")`` returns
            ``logging.getLogger("stepforge.scenario.parser")``.

    Returns:
        The child logger.
    """
    return logging.getLogger(f"stepforge.{name}")
