# tests/conftest.py — v1
"""Shared test fixtures for all unit and integration tests.

Provides a fake HTTP transport, settings without .env, an in-memory store
and a pipeline seeding helper. No network access, all I/O is faked.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

import pytest
import pytest_asyncio

from promptrelay.config.settings import Settings
from promptrelay.core.errors import TransportError
from promptrelay.core.models import GenerationConfig, Pipeline
from promptrelay.llm.gateway import ModelGateway
from promptrelay.llm.retry import RetryConfig
from promptrelay.llm.transport import BaseTransport
from promptrelay.logging.context import clear_context
from promptrelay.storage.repository import PipelineRepository
from promptrelay.storage.sqlite_store import SqliteStore


# =====================================================================
#  FAKE TRANSPORT — no backend required
# =====================================================================


class FakeTransport(BaseTransport):
    """Transport answering from per-path routes and recording every call.

    A route outcome is a JSON value, an exception to raise, or a callable
    taking the request payload. Queued outcomes are consumed first, then
    the route's default. Unrouted paths fail with HTTP 404.
    """

    def __init__(self) -> None:
        self._defaults: dict[str, Any] = {}
        self._queues: dict[str, list[Any]] = {}
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def set_route(self, path: str, outcome: Any) -> None:
        self._defaults[path] = outcome

    def queue(self, path: str, *outcomes: Any) -> None:
        self._queues.setdefault(path, []).extend(outcomes)

    async def request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> Any:
        path = urlsplit(url).path
        self.calls.append({
            "method": method, "url": url, "path": path,
            "payload": payload, "timeout": timeout,
        })
        queued = self._queues.get(path)
        if queued:
            outcome = queued.pop(0)
        elif path in self._defaults:
            outcome = self._defaults[path]
        else:
            raise TransportError("HTTP Error: 404", url, 404)

        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(payload)
        return outcome

    async def aclose(self) -> None:
        self.closed = True

    def generation_calls(self) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["method"] == "POST"]

    @staticmethod
    def kobold(text: str, prompt_tokens: int = 10, completion_tokens: int = 5) -> dict[str, Any]:
        return {
            "results": [{
                "text": text,
                "prompt_tokens": prompt_tokens,
                "completion_tokens": completion_tokens,
                "finish_reason": "stop",
            }]
        }


# === FIXTURES ===


@pytest.fixture(autouse=True)
def _reset_log_context():
    clear_context()
    yield
    clear_context()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, llm_host="llm.test")


@pytest.fixture
def fake_transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def fast_retry() -> RetryConfig:
    """Default retry count without the inter-attempt sleep."""
    return RetryConfig(max_retries=2, base_delay_s=0)


@pytest.fixture
def gateway(fake_transport: FakeTransport, settings: Settings, fast_retry: RetryConfig) -> ModelGateway:
    return ModelGateway(fake_transport, settings=settings, retry_config=fast_retry)


@pytest_asyncio.fixture
async def store():
    s = SqliteStore()
    await s.initialize()
    yield s
    s.close()


@pytest.fixture
def repo(store: SqliteStore) -> PipelineRepository:
    return PipelineRepository(store)


SeedPipeline = Callable[..., Awaitable[Pipeline]]


@pytest.fixture
def seed_pipeline(repo: PipelineRepository) -> SeedPipeline:
    """Create a pipeline with one literal fragment per step.

    ``await seed_pipeline(["s1", "s2"], prompts={"s2": "Refine {{s1}}"})``
    """

    async def _seed(
        step_names: list[str],
        prompts: dict[str, str] | None = None,
        config: GenerationConfig | None = None,
        name: str = "test pipeline",
    ) -> Pipeline:
        prompts = prompts or {}
        step_ids = []
        for step_name in step_names:
            fragment = await repo.create_fragment(
                prompts.get(step_name, f"Prompt for {step_name}"), title=step_name,
            )
            step = await repo.create_step(step_name, [fragment.id], config or GenerationConfig())
            step_ids.append(step.id)
        return await repo.create_pipeline(name, step_ids)

    return _seed
