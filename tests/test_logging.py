"""Tests for logging setup and per-run context."""

import json
import logging

import pytest
import structlog

from tokenomics import __version__
from tokenomics.logging import (
    SERVICE_NAME,
    _add_service,
    bind_run_context,
    clear_run_context,
    get_logger,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def test_service_fields_are_added() -> None:
    event = _add_service(None, "info", {"event": "indexing_started"})
    assert event == {
        "event": "indexing_started",
        "service": SERVICE_NAME,
        "version": __version__,
    }


def test_service_fields_do_not_override() -> None:
    event = _add_service(None, "info", {"event": "x", "service": "other"})
    assert event["service"] == "other"


def test_run_context_bind_and_clear(restore_logging) -> None:
    bind_run_context("2025-01-02", True)
    assert structlog.contextvars.get_contextvars() == {
        "index_date": "2025-01-02",
        "force": True,
    }

    clear_run_context()
    assert structlog.contextvars.get_contextvars() == {}


def test_json_lines_carry_run_context(restore_logging, capsys) -> None:
    setup_logging("INFO", "json")
    bind_run_context("2025-01-02", False)

    get_logger("tokenomics.test").info("record_stored", url="https://blobs.test/x.json")

    line = json.loads(capsys.readouterr().err.strip().splitlines()[-1])
    assert line["event"] == "record_stored"
    assert line["index_date"] == "2025-01-02"
    assert line["force"] is False
    assert line["service"] == SERVICE_NAME
    assert line["level"] == "info"


def test_noisy_libraries_are_quieted(restore_logging) -> None:
    setup_logging("DEBUG")

    assert logging.getLogger().level == logging.DEBUG
    for name in ("aiohttp", "aiosqlite", "uvicorn.access"):
        assert logging.getLogger(name).level == logging.WARNING


def test_unknown_level_falls_back_to_info(restore_logging) -> None:
    setup_logging("verbose")
    assert logging.getLogger().level == logging.INFO
