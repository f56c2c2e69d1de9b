# tests/unit/logging/test_logger.py — v1
"""Tests for logging/logger.py — logger factory and formatters."""

from __future__ import annotations

import json
import logging
import sys

from promptrelay.logging.context import clear_context, set_run_context, set_step_context
from promptrelay.logging.logger import JsonFormatter, TextFormatter, get_logger, setup_logging


def _record(msg: str, **kwargs) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0,
        msg=msg, args=(), exc_info=kwargs.get("exc_info"),
    )


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record("Hello")))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "run_id" not in parsed

    def test_format_with_run_context(self):
        set_run_context(7, "summaries")
        set_step_context("draft")
        parsed = json.loads(JsonFormatter().format(_record("step started")))
        assert parsed["run_id"] == 7
        assert parsed["pipeline"] == "summaries"
        assert parsed["step"] == "draft"

    def test_format_with_extra_data(self):
        record = _record("tokens")
        record.data = {"tokens": 12}
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["data"] == {"tokens": 12}

    def test_format_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record("failed", exc_info=sys.exc_info())
        parsed = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in parsed["exception"]


class TestTextFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert output.endswith("test Hello text")
        assert "Hello text" in output
        assert "INFO" in output
        assert "[run" not in output

    def test_format_with_context(self):
        set_run_context(3, "p")
        set_step_context("outline")
        output = TextFormatter().format(_record("working"))
        assert "[run 3/outline]" in output
        assert output.endswith(" working")


class TestGetLogger:
    def test_returns_logger(self):
        logger = get_logger("test_module")
        assert logger.name == "promptrelay.test_module"


class TestSetupLogging:
    def teardown_method(self):
        root = logging.getLogger("promptrelay")
        for handler in root.handlers:
            handler.close()
        root.handlers.clear()
        root.setLevel(logging.NOTSET)

    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("promptrelay")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("promptrelay")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_duplicate_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("promptrelay").handlers) == 1

    def test_setup_with_file(self, tmp_path):
        log_file = tmp_path / "logs" / "relay.log"
        setup_logging(log_file=str(log_file), rotation="1MB", retention=2)
        root = logging.getLogger("promptrelay")
        assert len(root.handlers) == 2
        assert log_file.parent.exists()

    def test_custom_stream(self):
        import io

        buf = io.StringIO()
        setup_logging(log_format="text", stream=buf)
        get_logger("cli").warning("disk almost full")
        assert "disk almost full" in buf.getvalue()

    def test_quiets_http_loggers(self):
        setup_logging()
        assert logging.getLogger("httpx").level == logging.WARNING
