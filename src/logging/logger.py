# src/logging/logger.py — v1
"""Logging setup for the ``promptrelay`` logger tree.

Two formatters share one field extraction: JSON lines for machines, a
compact single-line text form for terminals. Both tag each record with the
run, pipeline and step from the current task's LogContext.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO, Any

from promptrelay.logging.context import get_context

ROOT_LOGGER = "promptrelay"

# Third-party loggers that log every request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore")


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    fields.update(get_context().as_dict())
    return fields


class JsonFormatter(logging.Formatter):
    """One JSON object per record; run context keys sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry = _record_fields(record)
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger [run 3/step] message`` for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        fields = _record_fields(record)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{clock} {fields['level']:<7} {fields['logger']}"

        if "run_id" in fields:
            scope = f"run {fields['run_id']}"
            if "step" in fields:
                scope += f"/{fields['step']}"
            line += f" [{scope}]"

        line += f" {fields['message']}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def get_logger(name: str) -> logging.Logger:
    """Child of the promptrelay logger. Handlers come from setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    stream: IO[str] | None = None,
) -> logging.Logger:
    """Attach handlers to the promptrelay logger, replacing earlier ones.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Optional file, rotated by size.
        rotation: Size that triggers rotation (e.g. "10MB").
        retention: Number of rotated files to keep.
        stream: Console stream; stderr by default so stdout stays free for
            the CLI's event output.
    """
    root_logger = logging.getLogger(ROOT_LOGGER)
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stderr)]
    if log_file:
        from promptrelay.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    for handler in handlers:
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger
