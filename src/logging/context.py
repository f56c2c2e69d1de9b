# src/logging/context.py — v1
"""Run/step context for log records.

One ContextVar holds an immutable LogContext. Each run executes in its own
asyncio task, which copies the context at creation, so concurrent runs
never see each other's run id or step.
"""

from __future__ import annotations

import contextvars
from dataclasses import asdict, dataclass, replace
from typing import Any


@dataclass(frozen=True)
class LogContext:
    """Snapshot of the current run scope."""

    run_id: int | None = None
    pipeline: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields only."""
        return {k: v for k, v in asdict(self).items() if v is not None}


_EMPTY = LogContext()
_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "promptrelay_log_context", default=_EMPTY
)


def get_context() -> LogContext:
    return _current.get()


def set_run_context(run_id: int, pipeline: str) -> None:
    """Enter a run; clears any step left over from a previous run."""
    _current.set(LogContext(run_id=run_id, pipeline=pipeline))


def set_step_context(step: str | None) -> None:
    _current.set(replace(_current.get(), step=step))


def clear_context() -> None:
    _current.set(_EMPTY)
