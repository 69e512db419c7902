"""Tests for log formatting and setup."""

import json
import logging

import pytest

from matchmaker.utilities import logging as mm_logging


@pytest.fixture
def fresh_logging(monkeypatch):
    """Allow setup_logging to run again and restore root handlers afterwards."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    monkeypatch.setattr(mm_logging, "_configured", False)
    yield
    for handler in root.handlers:
        if handler not in saved_handlers:
            handler.close()
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


class TestJSONFormatter:
    def test_fields(self):
        record = logging.LogRecord(
            name="matchmaker.consumers.scheduler",
            level=logging.WARNING,
            pathname=__file__,
            lineno=42,
            msg="[PASS] Lost lock %s",
            args=("matchmaking-process",),
            exc_info=None,
        )
        data = json.loads(mm_logging.JSONFormatter().format(record))
        assert data["level"] == "WARNING"
        assert data["logger"] == "matchmaker.consumers.scheduler"
        assert data["message"] == "[PASS] Lost lock matchmaking-process"
        assert data["line"] == 42
        assert "exception" not in data


class TestSetupLogging:
    def test_writes_rotating_files(self, tmp_path, fresh_logging):
        mm_logging.setup_logging(log_level="DEBUG", log_dir=tmp_path, use_json=False)
        logging.getLogger("matchmaker.test").error("[POOL] something broke")

        for handler in logging.getLogger().handlers:
            handler.flush()

        assert "[POOL] something broke" in (tmp_path / "matchmaker.log").read_text()
        assert "[POOL] something broke" in (tmp_path / "matchmaker_errors.log").read_text()

    def test_second_call_is_noop(self, tmp_path, fresh_logging):
        mm_logging.setup_logging(log_dir=tmp_path)
        handlers = logging.getLogger().handlers[:]
        mm_logging.setup_logging(log_dir=tmp_path / "other")
        assert logging.getLogger().handlers == handlers
        assert not (tmp_path / "other").exists()

    def test_console_only(self, tmp_path, fresh_logging):
        mm_logging.setup_logging(log_dir=tmp_path / "logs", log_to_files=False)
        assert not (tmp_path / "logs").exists()
