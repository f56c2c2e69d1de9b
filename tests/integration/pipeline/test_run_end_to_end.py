# tests/integration/pipeline/test_run_end_to_end.py — v1
"""End-to-end runs against a simulated backend and a SQLite file database."""

from __future__ import annotations

import pytest

from promptrelay.config.settings import Settings
from promptrelay.core.models import GenerationConfig
from promptrelay.llm.transport import HttpxTransport
from promptrelay.pipeline.coordinator_factory import create_coordinator


async def _build(tmp_path, backend, events, **overrides):
    settings = Settings(
        _env_file=None,
        llm_host="sim.local",
        database_path=tmp_path / "relay.db",
        gateway_retry_delay_s=0,
        **overrides,
    )
    return await create_coordinator(
        settings, broadcast=events.append, transport=HttpxTransport(backend.client()),
    )


async def _seed(repo, steps: list[tuple[str, str, GenerationConfig]]) -> int:
    step_ids = []
    for name, prompt, config in steps:
        fragment = await repo.create_fragment(prompt, title=name)
        step_ids.append((await repo.create_step(name, [fragment.id], config)).id)
    return (await repo.create_pipeline("e2e", step_ids)).id


class TestEndToEnd:
    @pytest.mark.asyncio
    async def test_kobold_pipeline(self, tmp_path, kobold_backend):
        events: list[dict] = []
        coordinator = await _build(tmp_path, kobold_backend, events)
        pipeline_id = await _seed(coordinator.repository, [
            ("outline", "Outline a talk", GenerationConfig()),
            ("draft", "Draft from {{outline}}", GenerationConfig(dialect="llama")),
        ])

        record = await coordinator.wait(await coordinator.start(pipeline_id))
        await coordinator.aclose()

        assert record.run.status == "completed"
        assert [r.content for r in record.results] == [
            "[sim-7b] Outline a talk",
            "[sim-7b] <s>[INST] Draft from [sim-7b] Outline a talk [/INST]",
        ]
        assert record.run.metadata["models"][0]["model_info"] == {"result": "sim-7b"}
        assert events[-1]["type"] == "workflow_completed"

    @pytest.mark.asyncio
    async def test_openai_only_backend_falls_back(self, tmp_path, openai_backend):
        events: list[dict] = []
        coordinator = await _build(tmp_path, openai_backend, events)
        pipeline_id = await _seed(coordinator.repository, [
            ("ask", "hello", GenerationConfig(dialect="mistral")),
            ("complete", "12345", GenerationConfig()),
        ])

        record = await coordinator.wait(await coordinator.start(pipeline_id))
        await coordinator.aclose()

        assert record.run.status == "completed"
        assert record.results[0].content == "HELLO"
        assert record.results[1].content.startswith("completion of")
        assert record.results[1].metadata["endpoint"] == "openai_completions"
        assert openai_backend.generation_paths() == [
            "/v1/chat/completions", "/api/v1/generate", "/v1/completions",
        ]

    @pytest.mark.asyncio
    async def test_transient_failure_recovered_by_retry(self, tmp_path, kobold_backend):
        events: list[dict] = []
        coordinator = await _build(tmp_path, kobold_backend, events)
        pipeline_id = await _seed(coordinator.repository, [("only", "ping", GenerationConfig())])

        # two model-info probes and the first generate call are refused
        kobold_backend.fail_next = 3
        run_id = await coordinator.start(pipeline_id)
        record = await coordinator.wait(run_id)
        await coordinator.aclose()

        assert record.run.status == "completed"
        assert record.results[0].metadata["attempts"] == 2

    @pytest.mark.asyncio
    async def test_state_survives_reopen(self, tmp_path, kobold_backend):
        events: list[dict] = []
        coordinator = await _build(tmp_path, kobold_backend, events)
        pipeline_id = await _seed(coordinator.repository, [("only", "ping", GenerationConfig())])
        run_id = await coordinator.start(pipeline_id)
        await coordinator.wait(run_id)
        await coordinator.aclose()

        reopened = await _build(tmp_path, kobold_backend, [])
        record = await reopened.poll(run_id)
        await reopened.aclose()
        assert record.run.status == "completed"
        assert record.results[0].content == "[sim-7b] ping"
