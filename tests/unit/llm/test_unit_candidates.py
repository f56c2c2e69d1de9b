# tests/unit/llm/test_unit_candidates.py — v1
"""Tests for llm/candidates.py — fallback chains and payload shapes."""

from __future__ import annotations

import pytest

from promptrelay.core.models import ProtocolDialect
from promptrelay.llm.candidates import (
    GenerationRequest,
    build_fallback_chain,
    chat_payload,
    command_r_payload,
    kobold_payload,
    kobold_sampler_payload,
    openai_completion_payload,
)
from promptrelay.llm.models import Message


def _paths(dialect: ProtocolDialect) -> list[str]:
    return [c.path for c in build_fallback_chain(dialect)]


class TestFallbackChain:
    @pytest.mark.parametrize("dialect", [
        ProtocolDialect.DEFAULT, ProtocolDialect.LLAMA, ProtocolDialect.LLAMA_CHAT,
    ])
    def test_default_chain(self, dialect):
        assert _paths(dialect) == ["/api/v1/generate", "/v1/completions"]

    def test_chat_chain(self):
        assert _paths(ProtocolDialect.MISTRAL) == [
            "/v1/chat/completions", "/api/v1/generate", "/v1/completions",
        ]

    def test_structured_chain(self):
        assert _paths(ProtocolDialect.COMMAND_R) == [
            "/api/v1/generate", "/v1/generate", "/generate",
            "/api/v1/generate", "/v1/completions",
        ]

    def test_every_generation_candidate_builds_payload(self):
        for dialect in ProtocolDialect:
            for candidate in build_fallback_chain(dialect):
                assert candidate.build_payload is not None
                assert candidate.timeout_class == "generation"
                assert candidate.method == "POST"


class TestPayloads:
    @pytest.fixture
    def req(self) -> GenerationRequest:
        return GenerationRequest(
            prompt="Write a haiku",
            messages=[Message(role="user", content="Write a haiku")],
            temperature=0.3,
            max_length=200,
            top_p=0.8,
            top_k=20,
            stop_sequences=["###"],
        )

    def test_kobold(self, req):
        p = kobold_payload(req)
        assert p == {
            "prompt": "Write a haiku", "max_length": 200, "temperature": 0.3,
            "top_p": 0.8, "top_k": 20, "stream": False,
        }

    def test_kobold_sampler(self, req):
        p = kobold_sampler_payload(req)
        assert p["prompt"] == "Write a haiku"
        assert p["sampler_order"] == [6, 0, 1, 3, 4, 2, 5]
        assert "stream" not in p

    def test_chat(self, req):
        p = chat_payload(req)
        assert p["messages"] == [{"role": "user", "content": "Write a haiku"}]
        assert p["max_tokens"] == 200
        assert p["model"] == "local-model"

    def test_command_r(self, req):
        p = command_r_payload(req)
        assert p["model"] == "command-r"
        assert p["max_tokens"] == 200
        assert p["stop_sequences"] == ["###"]

    def test_openai_completion_uses_registered_model(self, req):
        from dataclasses import replace

        p = openai_completion_payload(replace(req, model="mixtral"))
        assert p["model"] == "mixtral"
        assert p["prompt"] == "Write a haiku"
