# tests/integration/conftest.py — v1
"""Integration fixtures: a simulated LLM backend served through httpx.MockTransport.

The whole stack runs for real (httpx transport, gateway, coordinator,
SQLite file database); only the network peer is simulated.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest


class SimulatedBackend:
    """Answers like a local inference server.

    ``api`` selects which generation endpoints exist: "kobold" serves
    /api/v1/generate, "openai" serves /v1/completions and
    /v1/chat/completions. Every request body is recorded.
    """

    def __init__(self, api: str = "kobold", model: str = "sim-7b") -> None:
        self.api = api
        self.model = model
        self.requests: list[tuple[str, str, Any]] = []
        self.fail_next = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))

        if self.fail_next:
            self.fail_next -= 1
            return httpx.Response(503, json={"message": "busy"})

        path = request.url.path
        if path == "/api/v1/model" and self.api == "kobold":
            return httpx.Response(200, json={"result": self.model})
        if path == "/v1/models" and self.api == "openai":
            return httpx.Response(200, json={"data": [{"id": self.model}]})
        if path == "/api/v1/generate" and self.api == "kobold":
            text = f"[{self.model}] {body['prompt'].splitlines()[0]}"
            return httpx.Response(200, json={"results": [{"text": text, "finish_reason": "stop"}]})
        if path == "/v1/completions" and self.api == "openai":
            return httpx.Response(200, json={
                "choices": [{"text": f"completion of {len(body['prompt'])} chars"}],
                "usage": {"total_tokens": 9, "prompt_tokens": 6, "completion_tokens": 3},
            })
        if path == "/v1/chat/completions" and self.api == "openai":
            content = body["messages"][-1]["content"]
            return httpx.Response(200, json={
                "choices": [{"message": {"role": "assistant", "content": content.upper()}}],
            })
        return httpx.Response(404, text="")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def generation_paths(self) -> list[str]:
        return [path for method, path, _ in self.requests if method == "POST"]


@pytest.fixture
def kobold_backend() -> SimulatedBackend:
    return SimulatedBackend(api="kobold")


@pytest.fixture
def openai_backend() -> SimulatedBackend:
    return SimulatedBackend(api="openai")
