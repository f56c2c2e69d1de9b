# src/llm/normalizer.py — v1
"""Map raw backend JSON onto GatewayResponse.

Five response shapes are known. Each one is a variant class with a
``detect`` predicate and a ``to_response`` projection; RESPONSE_SHAPES is
the closed, ordered set of variants. A payload that no variant detects is
rejected with UnrecognizedResponseError, never mapped to default text.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, ValidationError

from promptrelay.core.errors import UnrecognizedResponseError
from promptrelay.llm.models import GatewayResponse, ResponseMetadata
from promptrelay.llm.sanitizer import sanitize_output

logger = logging.getLogger(__name__)


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Usage(_Lenient):
    total_tokens: int | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None


def _metadata(
    tokens: int | None,
    prompt_tokens: int | None,
    completion_tokens: int | None,
    finish_reason: str | None,
    response_type: str,
) -> ResponseMetadata:
    return ResponseMetadata(
        tokens=tokens or 0,
        prompt_tokens=prompt_tokens or 0,
        completion_tokens=completion_tokens or 0,
        finish_reason=finish_reason or "unknown",
        response_type=response_type,
    )


def _first(raw: dict[str, Any], key: str) -> dict[str, Any] | None:
    items = raw.get(key)
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return None


class ResponseShape(_Lenient):
    """Base of all response variants."""

    kind: ClassVar[str] = ""

    @classmethod
    def detect(cls, raw: dict[str, Any]) -> bool:
        raise NotImplementedError

    def to_response(self) -> GatewayResponse:
        raise NotImplementedError


# --- results[] with per-item token counts (Kobold style) ---


class _ResultItem(_Lenient):
    text: str | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    finish_reason: str | None = None


class ResultsShape(ResponseShape):
    kind: ClassVar[str] = "results"
    results: list[_ResultItem]

    @classmethod
    def detect(cls, raw: dict[str, Any]) -> bool:
        return _first(raw, "results") is not None

    def to_response(self) -> GatewayResponse:
        item = self.results[0]
        prompt = item.prompt_tokens or 0
        completion = item.completion_tokens or 0
        return GatewayResponse(
            text=sanitize_output(item.text or ""),
            metadata=_metadata(
                prompt + completion, prompt, completion, item.finish_reason, self.kind,
            ),
        )


# --- generations[] with meta.billed_units (Command-R style) ---


class _Generation(_Lenient):
    text: str | None = None
    finish_reason: str | None = None


class _BilledUnits(_Lenient):
    input_tokens: int | None = None
    output_tokens: int | None = None


class _Meta(_Lenient):
    billed_units: _BilledUnits | None = None


class GenerationsShape(ResponseShape):
    kind: ClassVar[str] = "command-r"
    generations: list[_Generation]
    meta: _Meta | None = None

    @classmethod
    def detect(cls, raw: dict[str, Any]) -> bool:
        return _first(raw, "generations") is not None

    def to_response(self) -> GatewayResponse:
        gen = self.generations[0]
        units = (self.meta.billed_units if self.meta else None) or _BilledUnits()
        prompt = units.input_tokens or 0
        completion = units.output_tokens or 0
        return GatewayResponse(
            text=sanitize_output(gen.text or ""),
            metadata=_metadata(
                prompt + completion, prompt, completion, gen.finish_reason, self.kind,
            ),
        )


# --- choices[].message (chat completions) ---


class _ChatMessage(_Lenient):
    content: str | None = None


class _ChatChoice(_Lenient):
    message: _ChatMessage
    finish_reason: str | None = None


class ChatChoiceShape(ResponseShape):
    kind: ClassVar[str] = "chat"
    choices: list[_ChatChoice]
    usage: _Usage | None = None

    @classmethod
    def detect(cls, raw: dict[str, Any]) -> bool:
        choice = _first(raw, "choices")
        return choice is not None and isinstance(choice.get("message"), dict)

    def to_response(self) -> GatewayResponse:
        choice = self.choices[0]
        usage = self.usage or _Usage()
        return GatewayResponse(
            text=sanitize_output(choice.message.content or ""),
            metadata=_metadata(
                usage.total_tokens, usage.prompt_tokens, usage.completion_tokens,
                choice.finish_reason, self.kind,
            ),
        )


# --- choices[].text (OpenAI-compatible completions) ---


class _TextChoice(_Lenient):
    text: str | None = None
    finish_reason: str | None = None


class TextChoiceShape(ResponseShape):
    kind: ClassVar[str] = "completion"
    choices: list[_TextChoice]
    usage: _Usage | None = None

    @classmethod
    def detect(cls, raw: dict[str, Any]) -> bool:
        return _first(raw, "choices") is not None

    def to_response(self) -> GatewayResponse:
        choice = self.choices[0]
        usage = self.usage or _Usage()
        return GatewayResponse(
            text=sanitize_output(choice.text or ""),
            metadata=_metadata(
                usage.total_tokens, usage.prompt_tokens, usage.completion_tokens,
                choice.finish_reason, self.kind,
            ),
        )


# --- flat {"result": "..."} ---


class FlatResultShape(ResponseShape):
    kind: ClassVar[str] = "result"
    result: str
    tokens: int | None = None
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    finish_reason: str | None = None

    @classmethod
    def detect(cls, raw: dict[str, Any]) -> bool:
        return isinstance(raw.get("result"), str)

    def to_response(self) -> GatewayResponse:
        return GatewayResponse(
            text=sanitize_output(self.result),
            metadata=_metadata(
                self.tokens, self.prompt_tokens, self.completion_tokens,
                self.finish_reason, self.kind,
            ),
        )


# Order matters: chat choices must be tried before text choices.
RESPONSE_SHAPES: tuple[type[ResponseShape], ...] = (
    ResultsShape,
    GenerationsShape,
    ChatChoiceShape,
    TextChoiceShape,
    FlatResultShape,
)


def match_shape(raw: Any) -> ResponseShape:
    """Parse raw JSON into the first variant that detects it.

    Raises:
        UnrecognizedResponseError: No variant matches, or the matching
            variant rejects the field types.
    """
    if not isinstance(raw, dict):
        raise UnrecognizedResponseError(
            f"Unsupported LLM response format: expected a JSON object, got {type(raw).__name__}"
        )
    for shape in RESPONSE_SHAPES:
        if not shape.detect(raw):
            continue
        try:
            return shape.model_validate(raw)
        except ValidationError as exc:
            raise UnrecognizedResponseError(
                f"Malformed {shape.kind} response: {exc.error_count()} invalid field(s)"
            ) from exc
    keys = ", ".join(sorted(raw)) or "<empty>"
    raise UnrecognizedResponseError(f"Unsupported LLM response format (keys: {keys})")


def normalize_response(raw: Any) -> GatewayResponse:
    """Normalize any recognized backend payload into a GatewayResponse."""
    shape = match_shape(raw)
    logger.debug("Detected %s response shape", shape.kind)
    return shape.to_response()
