# src/core/models.py — v1
"""Shared Pydantic domain models used across modules.

Fragments are combined into steps, steps into pipelines. A run is one
execution of a pipeline and owns one StepResult per executed step.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

RESULT_TAG = "response"
_SOURCE_STEP_RE = re.compile(r"(?:step|payload)_(\d+)")


class ProtocolDialect(str, Enum):
    """Request/response convention a backend expects."""

    DEFAULT = "default"
    MISTRAL = "mistral"
    LLAMA = "llama"
    LLAMA_CHAT = "llama_chat"
    COMMAND_R = "command_r"


# === AUTHORING MODELS ===


class Fragment(BaseModel):
    """Reusable piece of prompt text.

    A fragment tagged ``response`` is a result placeholder: at assembly time
    it is replaced by the output of the step named in its ``step_<id>`` tag.
    """

    id: int
    title: str = ""
    content: str = ""
    tags: str = ""

    @property
    def tag_list(self) -> list[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]

    @property
    def is_result_placeholder(self) -> bool:
        return RESULT_TAG in self.tag_list

    @property
    def source_step_id(self) -> int | None:
        """Step id embedded in the tags, None when absent or malformed."""
        match = _SOURCE_STEP_RE.search(self.tags)
        return int(match.group(1)) if match else None


class GenerationConfig(BaseModel):
    """Per-step generation settings."""

    temperature: float = 0.6
    max_length: int = 1000
    backend: str = "5001"
    dialect: ProtocolDialect = ProtocolDialect.DEFAULT
    timeout_s: float | None = None

    @field_validator("backend", mode="before")
    @classmethod
    def _coerce_backend(cls, v: Any) -> str:
        return str(v).strip()

    @field_validator("dialect", mode="before")
    @classmethod
    def _coerce_dialect(cls, v: Any) -> Any:
        # "command-r" is how operators usually spell it; unknown names run as default
        if isinstance(v, str):
            name = v.strip().lower().replace("-", "_")
            known = {d.value for d in ProtocolDialect}
            return name if name in known else ProtocolDialect.DEFAULT
        return v


class Step(BaseModel):
    """One LLM invocation template: ordered fragments plus generation config."""

    id: int
    name: str
    fragments: list[Fragment] = Field(default_factory=list)
    config: GenerationConfig = Field(default_factory=GenerationConfig)


class Pipeline(BaseModel):
    """Ordered sequence of steps."""

    id: int
    name: str
    steps: list[Step] = Field(default_factory=list)


# === EXECUTION MODELS ===


RunStatus = Literal["running", "completed", "failed"]


class Run(BaseModel):
    """One execution instance of a pipeline."""

    id: int
    pipeline_id: int
    status: RunStatus
    started_at: datetime | None = None
    completed_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status != "running"


class StepResult(BaseModel):
    """Output of one executed step within a run."""

    id: int
    run_id: int
    step_id: int | None
    step_name: str | None = None
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime | None = None


class RunRecord(BaseModel):
    """Run plus its ordered results, as returned by poll."""

    run: Run
    results: list[StepResult] = Field(default_factory=list)
