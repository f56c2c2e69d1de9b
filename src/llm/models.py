# src/llm/models.py — v1
"""LLM-specific types: Message, ResponseMetadata, GatewayResponse, ConnectivityReport."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Single message in a chat-style request."""

    role: Literal["user", "assistant", "system"]
    content: str


class ResponseMetadata(BaseModel):
    """Token accounting and stop reason extracted from a backend response."""

    tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    finish_reason: str = "unknown"
    response_type: str = "unknown"


class GatewayResponse(BaseModel):
    """Normalized response from any backend dialect."""

    text: str
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)
    endpoint: str | None = None
    attempts: int = 1


class ConnectivityReport(BaseModel):
    """Result of probing a backend's metadata endpoints."""

    backend: str
    connected: bool = False
    model_info: Any = None
    error: str | None = None
    kobold_api: bool | None = None
    openai_api: bool | None = None
    api_details: dict[str, Any] = Field(default_factory=dict)
    endpoint_info: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
