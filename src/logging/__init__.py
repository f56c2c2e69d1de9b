# src/logging/__init__.py — v1
from promptrelay.logging.context import clear_context, get_context, set_run_context, set_step_context
from promptrelay.logging.logger import get_logger, setup_logging

__all__ = [
    "clear_context",
    "get_context",
    "get_logger",
    "set_run_context",
    "set_step_context",
    "setup_logging",
]
