# tests/core/test_logging.py
"""Tests for structured logging configuration."""

import json
import logging
from typing import Any

import pytest

from zonetest.contracts import JobState
from zonetest.core.config import LoggingSettings
from zonetest.core.jobs import JobStore
from zonetest.core.logging import configure_logging, get_logger, job_context


def _json_lines(text: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in text.strip().splitlines() if line.startswith("{")]


def _last_record(capsys: pytest.CaptureFixture[str]) -> dict[str, Any]:
    return _json_lines(capsys.readouterr().err)[-1]


class TestLoggingConfig:
    """Tests for logging configuration."""

    def test_json_record_shape(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        get_logger("test").info("job submitted", domain="afnic.fr")

        data = _last_record(capsys)
        assert data["event"] == "job submitted"
        assert data["domain"] == "afnic.fr"
        assert data["level"] == "info"
        assert "timestamp" in data
        assert "_record" not in data
        assert "_from_structlog" not in data

    def test_stdout_left_for_command_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)
        get_logger("test").warning("to stderr")

        captured = capsys.readouterr()
        assert captured.out == ""
        assert "to stderr" in captured.err

    def test_stdlib_logging_routed_through_structlog(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)
        logging.getLogger("some.library").warning("from stdlib")

        data = _last_record(capsys)
        assert data["event"] == "from stdlib"
        assert data["level"] == "warning"

    def test_console_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=False)
        get_logger("test").info("test message", key="value")

        assert "test message" in capsys.readouterr().err

    def test_level_filters_debug(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True, level="INFO")
        get_logger("test").debug("hidden")

        assert "hidden" not in capsys.readouterr().err

    def test_noisy_loggers_quieted_in_debug(self) -> None:
        configure_logging(level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("alembic.runtime.migration").level == logging.WARNING


class TestSettingsDriven:
    def test_settings_applied(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingSettings(level="WARNING", json_output=True))
        logger = get_logger("test")

        logger.info("dropped")
        logger.warning("kept")

        records = _json_lines(capsys.readouterr().err)
        assert [r["event"] for r in records] == ["kept"]

    def test_explicit_arguments_override_settings(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(LoggingSettings(level="WARNING", json_output=False), json_output=True, level="DEBUG")

        get_logger("test").debug("verbose wins")

        assert _last_record(capsys)["event"] == "verbose wins"

    def test_reconfiguring_replaces_handler(self) -> None:
        configure_logging(json_output=True)
        configure_logging(LoggingSettings())
        assert len(logging.getLogger().handlers) == 1


class TestJobContext:
    def test_identity_bound_inside_block(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)
        logger = get_logger("test")

        with job_context("0123456789abcdef", batch_id="b1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _json_lines(capsys.readouterr().err)[-2:]
        assert inside["identity"] == "0123456789abcdef"
        assert inside["batch_id"] == "b1"
        assert "identity" not in outside
        assert "batch_id" not in outside

    def test_stdlib_records_carry_identity(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging(json_output=True)

        with job_context("0123456789abcdef"):
            logging.getLogger("some.library").warning("from stdlib")

        assert _last_record(capsys)["identity"] == "0123456789abcdef"

    def test_store_logs_tagged_with_identity(self, capsys: pytest.CaptureFixture[str], store: JobStore) -> None:
        configure_logging(json_output=True)
        identity = store.submit({"domain": "xa"}).identity
        store.advance(identity, JobState.RUNNING)

        records = {r["event"]: r for r in _json_lines(capsys.readouterr().err)}
        assert records["job submitted"]["identity"] == identity
        assert records["job advanced"]["identity"] == identity
        assert records["job advanced"]["to_state"] == "running"
