"""Tests for the CONSOLE/JSON logging configuration."""

import io
import json
import logging

import pytest

from core.logging_config import (
    LOGGING_TYPE_CONSOLE,
    LOGGING_TYPE_JSON,
    configure_logging,
    normalize_logging_type,
)


@pytest.mark.parametrize(
    "raw, expected",
    [(None, LOGGING_TYPE_CONSOLE), ("", LOGGING_TYPE_CONSOLE), (" json ", LOGGING_TYPE_JSON), ("Console", LOGGING_TYPE_CONSOLE)],
)
def test_normalize_logging_type(raw, expected):
    assert normalize_logging_type(raw) == expected


def test_normalize_logging_type_rejects_unknown():
    with pytest.raises(ValueError, match="unsupported logging type xml"):
        normalize_logging_type("xml")


def test_console_output_is_plain_message():
    stream = io.StringIO()
    logger = configure_logging("CONSOLE", stream=stream)

    logging.getLogger("ghttp.test").info("Serving HTTP on 0.0.0.0 port 8000", extra={"event": "test.event", "port": 8000})
    logger.warning("careful")

    assert stream.getvalue().splitlines() == [
        "Serving HTTP on 0.0.0.0 port 8000",
        "WARNING: careful",
    ]


def test_json_output_includes_event_and_extras():
    stream = io.StringIO()
    configure_logging("JSON", stream=stream)

    logging.getLogger("ghttp.certs").info(
        "Installed", extra={"event": "certs.setup.installed", "serial_number": 42}
    )

    payload = json.loads(stream.getvalue())
    assert payload["msg"] == "Installed"
    assert payload["level"] == "info"
    assert payload["logger"] == "ghttp.certs"
    assert payload["event"] == "certs.setup.installed"
    assert payload["serial_number"] == 42
    assert payload["ts"].endswith("Z")


def test_json_output_contains_trace_for_errors():
    stream = io.StringIO()
    configure_logging("JSON", stream=stream)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logging.getLogger("ghttp.test").exception("failed", extra={"event": "test.failed"})

    payload = json.loads(stream.getvalue())
    assert payload["level"] == "error"
    assert "RuntimeError: boom" in payload["trace"]


def test_reconfiguring_replaces_handler():
    first = io.StringIO()
    second = io.StringIO()
    configure_logging("CONSOLE", stream=first)
    logger = configure_logging("JSON", stream=second)

    logger.info("hello")

    assert first.getvalue() == ""
    assert json.loads(second.getvalue())["msg"] == "hello"
    assert sum(1 for h in logger.handlers if getattr(h, "_is_ghttp_handler", False)) == 1
