# src/pipeline/coordinator.py — v1
"""Run coordinator: owns the lifecycle of a pipeline run.

start() validates the pipeline, writes the run row and spawns a background
task; the task walks the steps in order (assemble, invoke, persist, emit)
and always ends with exactly one terminal status update. poll() reads the
persisted state back.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from promptrelay.core.errors import NotFoundError, PersistenceError, ValidationError
from promptrelay.core.models import Pipeline, RunRecord, RunStatus, Step, StepResult
from promptrelay.llm.gateway import ModelGateway
from promptrelay.logging.context import set_run_context, set_step_context
from promptrelay.pipeline.admission import AdmissionPolicy, UnrestrictedAdmission
from promptrelay.pipeline.assembler import PromptAssembler
from promptrelay.pipeline.context import ExecutionContext
from promptrelay.pipeline.events import (
    Broadcast,
    EventEmitter,
    ExecutionProgress,
    PayloadCompleted,
    WorkflowCompleted,
    WorkflowFailed,
)
from promptrelay.storage.repository import PipelineRepository

logger = logging.getLogger(__name__)


def tokens_per_second(tokens: int, duration_ms: int) -> int:
    """Throughput rounded to an integer, 0 when nothing was measured."""
    if duration_ms <= 0:
        return 0
    return round(tokens / duration_ms * 1000)


class RunCoordinator:
    """Starts runs, executes their steps and records the outcome.

    Args:
        repository: Pipeline definitions, runs and results.
        gateway: Shared model gateway.
        broadcast: Optional function receiving every lifecycle event.
        assembler: Prompt builder (default separator when omitted).
        admission: Gate around each gateway call; unrestricted by default.
    """

    def __init__(
        self,
        repository: PipelineRepository,
        gateway: ModelGateway,
        broadcast: Broadcast | None = None,
        assembler: PromptAssembler | None = None,
        admission: AdmissionPolicy | None = None,
    ) -> None:
        self._repo = repository
        self._gateway = gateway
        self._emitter = EventEmitter(broadcast)
        self._assembler = assembler or PromptAssembler()
        self._admission = admission or UnrestrictedAdmission()
        self._tasks: dict[int, asyncio.Task[RunStatus]] = {}

    @property
    def repository(self) -> PipelineRepository:
        return self._repo

    @property
    def gateway(self) -> ModelGateway:
        return self._gateway

    @property
    def running_runs(self) -> list[int]:
        return sorted(run_id for run_id, task in self._tasks.items() if not task.done())

    # --- Lifecycle ---

    async def start(self, pipeline_id: int) -> int:
        """Create a run for the pipeline and execute it in the background.

        Returns:
            The new run id, before any step has executed.

        Raises:
            NotFoundError: No pipeline with this id.
            ValidationError: The pipeline has no steps.
        """
        pipeline = await self._repo.get_pipeline(pipeline_id)
        if pipeline is None:
            raise NotFoundError("Pipeline", pipeline_id)
        if not pipeline.steps:
            raise ValidationError(f"Pipeline {pipeline_id} has no steps to execute")

        run = await self._repo.create_run(pipeline)
        logger.info(
            "Started run %d for pipeline '%s' (%d steps)",
            run.id, pipeline.name, len(pipeline.steps),
        )
        task = asyncio.create_task(self._guarded(pipeline, run.id), name=f"run-{run.id}")
        self._tasks[run.id] = task
        task.add_done_callback(lambda _t, rid=run.id: self._tasks.pop(rid, None))
        return run.id

    async def wait(self, run_id: int) -> RunRecord:
        """Wait for an in-flight run (if any) and return its record."""
        task = self._tasks.get(run_id)
        if task is not None:
            await asyncio.shield(task)
            self._tasks.pop(run_id, None)
        return await self.poll(run_id)

    async def shutdown(self) -> None:
        """Let every in-flight run reach its terminal state."""
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def aclose(self) -> None:
        """Drain in-flight runs, then release the gateway and the store."""
        await self.shutdown()
        await self._gateway.aclose()
        self._repo.store.close()

    async def poll(self, run_id: int) -> RunRecord:
        run = await self._repo.get_run(run_id)
        if run is None:
            raise NotFoundError("Run", run_id)
        results = await self._repo.get_results(run_id)
        return RunRecord(run=run, results=results)

    # --- Execution ---

    async def _guarded(self, pipeline: Pipeline, run_id: int) -> RunStatus:
        set_run_context(run_id, pipeline.name)
        try:
            return await self.execute(pipeline, run_id)
        except Exception:
            logger.exception("Run %d crashed outside the step loop", run_id)
            return "failed"

    async def execute(self, pipeline: Pipeline, run_id: int) -> RunStatus:
        """Run every step in order and record the terminal status.

        Any exception raised while assembling, invoking or persisting a step
        fails the run with the exception message; results stored before the
        failure are kept.
        """
        context = ExecutionContext()
        total = len(pipeline.steps)
        results: list[StepResult] = []
        t0 = time.monotonic()

        try:
            for index, step in enumerate(pipeline.steps):
                set_step_context(step.name)
                await self._emitter.emit(ExecutionProgress(
                    run_id=run_id,
                    step_id=step.id,
                    step_name=step.name,
                    progress=index / total * 100,
                ))
                result = await self._execute_step(run_id, step, context)
                results.append(result)
                await self._emitter.emit(PayloadCompleted(
                    run_id=run_id,
                    step_id=step.id,
                    step_name=step.name,
                    content=result.content,
                    metadata=result.metadata,
                ))
            set_step_context(None)

            models = [
                {"step_name": r.step_name, "model_info": r.metadata["model_info"]}
                for r in results
                if r.metadata.get("model_info") is not None
            ]
            won = await self._repo.complete_run(run_id, models)
        except Exception as exc:
            set_step_context(None)
            await self._fail(run_id, exc)
            return "failed"

        if not won:
            logger.warning("Run %d was already terminal, not announcing completion", run_id)
            run = await self._repo.get_run(run_id)
            return run.status if run is not None else "failed"

        logger.info(
            "Run %d completed: %d steps in %.1fs",
            run_id, total, time.monotonic() - t0,
        )
        await self._emitter.emit(WorkflowCompleted(run_id=run_id))
        return "completed"

    async def _execute_step(
        self, run_id: int, step: Step, context: ExecutionContext,
    ) -> StepResult:
        prompt = self._assembler.assemble(step, context)
        backend = step.config.backend
        model_info = await self._gateway.get_model_info(backend)

        t0 = time.monotonic()
        async with self._admission.slot(backend):
            response = await self._gateway.invoke(backend, prompt, step.config)
        duration_ms = int((time.monotonic() - t0) * 1000)

        tokens = response.metadata.tokens
        metadata: dict[str, Any] = {
            **response.metadata.model_dump(),
            "endpoint": response.endpoint,
            "attempts": response.attempts,
            "duration_ms": duration_ms,
            "tokens_per_second": tokens_per_second(tokens, duration_ms),
            "model_info": model_info,
            "llm_config": step.config.model_dump(mode="json"),
        }
        logger.info(
            "Step '%s' done: %d tokens in %dms via %s",
            step.name, tokens, duration_ms, response.endpoint,
        )

        result = await self._repo.append_result(run_id, step, response.text, metadata)
        context.append(step.id, step.name, response.text, metadata)
        return result

    async def _fail(self, run_id: int, exc: Exception) -> None:
        message = str(exc) or type(exc).__name__
        logger.error("Run %d failed: %s", run_id, message)
        recorded = True
        try:
            recorded = await self._repo.fail_run(run_id, message)
        except PersistenceError:
            logger.exception("Could not record failure of run %d", run_id)
        if not recorded:
            logger.warning("Run %d was already terminal, not announcing failure", run_id)
            return
        await self._emitter.emit(WorkflowFailed(run_id=run_id, error=message))
