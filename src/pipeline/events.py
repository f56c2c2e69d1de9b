# src/pipeline/events.py — v1
"""Run lifecycle events and the emitter that hands them to a broadcaster.

Every event serializes to ``{"type": <kind>, "data": {...}}`` with a
``run_id`` in ``data``. Delivery (websocket, SSE, stdout) belongs to the
injected broadcast function.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, ClassVar, Union

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

Broadcast = Callable[[dict[str, Any]], Any]


class RunEvent(BaseModel):
    """Base of all lifecycle events."""

    type: ClassVar[str] = ""
    run_id: int

    def to_message(self) -> dict[str, Any]:
        return {"type": self.type, "data": self.model_dump(mode="json")}


class ExecutionProgress(RunEvent):
    """Issued before a step runs."""

    type: ClassVar[str] = "execution_progress"
    step_id: int
    step_name: str
    status: str = "running"
    progress: float


class PayloadCompleted(RunEvent):
    """Issued after a step's result is stored."""

    type: ClassVar[str] = "payload_completed"
    step_id: int
    step_name: str
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class WorkflowCompleted(RunEvent):
    type: ClassVar[str] = "workflow_completed"
    status: str = "completed"


class WorkflowFailed(RunEvent):
    type: ClassVar[str] = "workflow_failed"
    error: str


AnyRunEvent = Union[ExecutionProgress, PayloadCompleted, WorkflowCompleted, WorkflowFailed]


class EventEmitter:
    """Forwards events to an optional broadcast function (sync or async).

    A failing broadcaster is logged and does not affect the run.
    """

    def __init__(self, broadcast: Broadcast | None = None) -> None:
        self._broadcast = broadcast

    async def emit(self, event: AnyRunEvent) -> None:
        if self._broadcast is None:
            return
        message = event.to_message()
        try:
            result = self._broadcast(message)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("Broadcast of %s failed", event.type, exc_info=True)
