# src/llm/candidates.py — v1
"""Endpoint fallback chains as data.

Each dialect maps to an ordered tuple of EndpointCandidate records. The
gateway walks the tuple and returns on the first endpoint that answers with
a recognizable response, so the policy can be tested without any transport.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal

from promptrelay.core.models import ProtocolDialect
from promptrelay.llm import dialects
from promptrelay.llm.models import Message

TimeoutClass = Literal["generation", "metadata"]

_DEFAULT_MODEL = "local-model"
_COMMAND_R_MODEL = "command-r"
_KOBOLD_SAMPLER_ORDER = [6, 0, 1, 3, 4, 2, 5]


@dataclass(frozen=True)
class GenerationRequest:
    """Everything a payload builder may need, resolved once per invocation."""

    prompt: str
    messages: list[Message] = field(default_factory=list)
    temperature: float = 0.7
    max_length: int = 1000
    top_p: float = 0.9
    top_k: int = 40
    model: str | None = None
    stop_sequences: list[str] = field(default_factory=list)


PayloadBuilder = Callable[[GenerationRequest], dict[str, Any]]


@dataclass(frozen=True)
class EndpointCandidate:
    """One (endpoint, payload shape, timeout class) entry of a fallback chain."""

    name: str
    path: str
    build_payload: PayloadBuilder | None = None
    timeout_class: TimeoutClass = "generation"
    method: str = "POST"


# --- Payload builders ---


def chat_payload(req: GenerationRequest) -> dict[str, Any]:
    return {
        "model": req.model or _DEFAULT_MODEL,
        "messages": [m.model_dump() for m in req.messages],
        "max_tokens": req.max_length,
        "temperature": req.temperature,
        "top_p": req.top_p,
        "stream": False,
    }


def kobold_payload(req: GenerationRequest) -> dict[str, Any]:
    return {
        "prompt": req.prompt,
        "max_length": req.max_length,
        "temperature": req.temperature,
        "top_p": req.top_p,
        "top_k": req.top_k,
        "stream": False,
    }


def kobold_sampler_payload(req: GenerationRequest) -> dict[str, Any]:
    """Generic generate payload with explicit sampler settings."""
    payload = kobold_payload(req)
    del payload["stream"]
    payload.update(
        tfs=1.0,
        typical=1.0,
        rep_pen=1.1,
        rep_pen_range=1024,
        rep_pen_slope=0.7,
        sampler_order=list(_KOBOLD_SAMPLER_ORDER),
        seed=-1,
        quiet=False,
    )
    return payload


def command_r_payload(req: GenerationRequest) -> dict[str, Any]:
    return {
        "prompt": req.prompt,
        "model": req.model or _COMMAND_R_MODEL,
        "max_tokens": req.max_length,
        "temperature": req.temperature,
        "stop_sequences": list(req.stop_sequences),
        "return_likelihoods": "NONE",
        "stream": False,
        "truncate": "END",
        "presence_penalty": 0.0,
        "frequency_penalty": 0.0,
    }


def openai_completion_payload(req: GenerationRequest) -> dict[str, Any]:
    return {
        "model": req.model or _DEFAULT_MODEL,
        "prompt": req.prompt,
        "max_tokens": req.max_length,
        "temperature": req.temperature,
        "top_p": req.top_p,
        "stream": False,
    }


# --- Chains ---

DEFAULT_CHAIN: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("kobold_generate", "/api/v1/generate", kobold_payload),
    EndpointCandidate("openai_completions", "/v1/completions", openai_completion_payload),
)

CHAT_CHAIN: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("chat_completions", "/v1/chat/completions", chat_payload),
)

STRUCTURED_CHAIN: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("kobold_generate_sampler", "/api/v1/generate", kobold_sampler_payload),
    EndpointCandidate("command_r_v1_generate", "/v1/generate", command_r_payload),
    EndpointCandidate("command_r_generate", "/generate", command_r_payload),
)

MODEL_INFO_CHAIN: tuple[EndpointCandidate, ...] = (
    EndpointCandidate("kobold_model", "/api/v1/model", timeout_class="metadata", method="GET"),
    EndpointCandidate("openai_models", "/v1/models", timeout_class="metadata", method="GET"),
)

INFO_CANDIDATE = EndpointCandidate("info", "/info", timeout_class="metadata", method="GET")


def build_fallback_chain(dialect: ProtocolDialect) -> tuple[EndpointCandidate, ...]:
    """Ordered candidates for a generation call in the given dialect."""
    if dialects.is_chat(dialect):
        return CHAT_CHAIN + DEFAULT_CHAIN
    if dialects.is_structured(dialect):
        return STRUCTURED_CHAIN + DEFAULT_CHAIN
    return DEFAULT_CHAIN
