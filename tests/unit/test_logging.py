"""Tests for logging setup."""

from __future__ import annotations

import json
import logging

from stepforge._internal.logging import _JsonFormatter, get_logger, setup_logging


def test_get_logger_namespace():
    """Child loggers live under the stepforge namespace."""
    assert get_logger("scenario.parser").name == "stepforge.scenario.parser"


def test_setup_logging_is_idempotent():
    """Repeated setup keeps a single handler and updates its level."""
    logger = setup_logging(logging.INFO)
    handlers = list(logger.handlers)
    logger = setup_logging(logging.DEBUG)
    assert logger.handlers == handlers
    assert all(handler.level == logging.DEBUG for handler in logger.handlers)
    assert logger.propagate is False


def test_json_formatter_includes_context():
    """Scenario context passed via ``extra`` appears in JSON output."""
    record = logging.LogRecord(
        name="stepforge.scenario.parser",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Loaded %s",
        args=("checkout",),
        exc_info=None,
    )
    record.scenario = "checkout"
    entry = json.loads(_JsonFormatter().format(record))
    assert entry["message"] == "Loaded checkout"
    assert entry["level"] == "INFO"
    assert entry["scenario"] == "checkout"
    assert "request" not in entry
