# src/storage/repository.py — v1
"""Entity-level access to pipelines, runs and results.

Runs move from running to a terminal status exactly once: the terminal
updates are guarded by ``status = 'running'`` and report whether they won.
Results are append-only and read back in insertion order.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Sequence

from promptrelay.core.errors import PersistenceError
from promptrelay.core.models import (
    Fragment,
    GenerationConfig,
    Pipeline,
    Run,
    RunStatus,
    Step,
    StepResult,
)
from promptrelay.storage.base_store import BaseStore, Row

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _loads(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding undecodable metadata column")
        return {}
    return value if isinstance(value, dict) else {}


def _dumps(value: dict[str, Any]) -> str:
    return json.dumps(value, default=str)


def _run_from_row(row: Row) -> Run:
    return Run(
        id=row["id"],
        pipeline_id=row["pipeline_id"],
        status=row["status"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
        metadata=_loads(row["metadata"]),
    )


def _result_from_row(row: Row) -> StepResult:
    return StepResult(
        id=row["id"],
        run_id=row["run_id"],
        step_id=row["step_id"],
        step_name=row.get("step_name"),
        content=row["content"],
        metadata=_loads(row["metadata"]),
        created_at=row["created_at"],
    )


class PipelineRepository:
    """Reads pipeline definitions and records run progress."""

    def __init__(self, store: BaseStore) -> None:
        self._store = store

    @property
    def store(self) -> BaseStore:
        return self._store

    # --- Authoring ---

    async def create_fragment(self, content: str, title: str = "", tags: str = "") -> Fragment:
        res = await self._store.execute(
            "INSERT INTO fragments (title, content, tags) VALUES (?, ?, ?)",
            (title, content, tags),
        )
        return Fragment(id=res.last_row_id, title=title, content=content, tags=tags)

    async def create_step(
        self,
        name: str,
        fragment_ids: Sequence[int] = (),
        config: GenerationConfig | None = None,
    ) -> Step:
        config = config or GenerationConfig()
        async with self._store.transaction():
            res = await self._store.execute(
                """INSERT INTO steps (name, temperature, max_length, backend, dialect, timeout_s)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    name,
                    config.temperature,
                    config.max_length,
                    config.backend,
                    config.dialect.value,
                    config.timeout_s,
                ),
            )
            step_id = res.last_row_id
            for idx, fragment_id in enumerate(fragment_ids):
                await self._store.execute(
                    "INSERT INTO step_fragments (step_id, fragment_id, order_index) VALUES (?, ?, ?)",
                    (step_id, fragment_id, idx),
                )
        step = await self.get_step(step_id)
        if step is None:
            raise PersistenceError(f"Step {step_id} vanished after insert")
        return step

    async def create_pipeline(self, name: str, step_ids: Sequence[int] = ()) -> Pipeline:
        async with self._store.transaction():
            res = await self._store.execute("INSERT INTO pipelines (name) VALUES (?)", (name,))
            pipeline_id = res.last_row_id
            for idx, step_id in enumerate(step_ids):
                await self._store.execute(
                    "INSERT INTO pipeline_steps (pipeline_id, step_id, order_index) VALUES (?, ?, ?)",
                    (pipeline_id, step_id, idx),
                )
        pipeline = await self.get_pipeline(pipeline_id)
        if pipeline is None:
            raise PersistenceError(f"Pipeline {pipeline_id} vanished after insert")
        return pipeline

    # --- Definitions ---

    async def get_step(self, step_id: int) -> Step | None:
        row = await self._store.fetch_one("SELECT * FROM steps WHERE id = ?", (step_id,))
        if row is None:
            return None
        fragments = await self._store.fetch_all(
            """SELECT f.* FROM fragments f
               JOIN step_fragments sf ON f.id = sf.fragment_id
               WHERE sf.step_id = ?
               ORDER BY sf.order_index""",
            (step_id,),
        )
        return Step(
            id=row["id"],
            name=row["name"],
            fragments=[
                Fragment(id=f["id"], title=f["title"], content=f["content"], tags=f["tags"])
                for f in fragments
            ],
            config=GenerationConfig(
                temperature=row["temperature"],
                max_length=row["max_length"],
                backend=row["backend"],
                dialect=row["dialect"],
                timeout_s=row["timeout_s"],
            ),
        )

    async def get_pipeline(self, pipeline_id: int) -> Pipeline | None:
        """Load a pipeline with its steps and their fragments, in declared order."""
        row = await self._store.fetch_one(
            "SELECT * FROM pipelines WHERE id = ?", (pipeline_id,)
        )
        if row is None:
            return None
        step_rows = await self._store.fetch_all(
            """SELECT step_id FROM pipeline_steps
               WHERE pipeline_id = ?
               ORDER BY order_index""",
            (pipeline_id,),
        )
        steps: list[Step] = []
        for step_row in step_rows:
            step = await self.get_step(step_row["step_id"])
            if step is not None:
                steps.append(step)
        return Pipeline(id=row["id"], name=row["name"], steps=steps)

    # --- Runs ---

    async def create_run(self, pipeline: Pipeline) -> Run:
        started_at = _now()
        metadata = {
            "pipeline_name": pipeline.name,
            "step_count": len(pipeline.steps),
            "started_at": started_at,
        }
        res = await self._store.execute(
            """INSERT INTO runs (pipeline_id, status, started_at, metadata)
               VALUES (?, 'running', ?, ?)""",
            (pipeline.id, started_at, _dumps(metadata)),
        )
        run = await self.get_run(res.last_row_id)
        if run is None:
            raise PersistenceError(f"Run {res.last_row_id} vanished after insert")
        return run

    async def append_result(
        self, run_id: int, step: Step, content: str, metadata: dict[str, Any],
    ) -> StepResult:
        created_at = _now()
        res = await self._store.execute(
            """INSERT INTO results (run_id, step_id, content, metadata, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (run_id, step.id, content, _dumps(metadata), created_at),
        )
        return StepResult(
            id=res.last_row_id,
            run_id=run_id,
            step_id=step.id,
            step_name=step.name,
            content=content,
            metadata=metadata,
            created_at=created_at,
        )

    async def _finish_run(
        self, run_id: int, status: RunStatus, updates: dict[str, Any],
    ) -> bool:
        completed_at = _now()
        async with self._store.transaction():
            row = await self._store.fetch_one(
                "SELECT metadata FROM runs WHERE id = ? AND status = 'running'", (run_id,)
            )
            if row is None:
                logger.warning("Run %s is not running, ignoring transition to %s", run_id, status)
                return False
            metadata = _loads(row["metadata"])
            metadata.update(updates)
            metadata["completed_at"] = completed_at
            res = await self._store.execute(
                """UPDATE runs SET status = ?, completed_at = ?, metadata = ?
                   WHERE id = ? AND status = 'running'""",
                (status, completed_at, _dumps(metadata), run_id),
            )
        return res.row_count == 1

    async def complete_run(self, run_id: int, models: list[dict[str, Any]]) -> bool:
        updates: dict[str, Any] = {"models": models} if models else {}
        return await self._finish_run(run_id, "completed", updates)

    async def fail_run(self, run_id: int, error: str) -> bool:
        return await self._finish_run(run_id, "failed", {"error": error})

    async def get_run(self, run_id: int) -> Run | None:
        row = await self._store.fetch_one("SELECT * FROM runs WHERE id = ?", (run_id,))
        return _run_from_row(row) if row else None

    async def get_results(self, run_id: int) -> list[StepResult]:
        rows = await self._store.fetch_all(
            """SELECT r.*, s.name AS step_name
               FROM results r
               LEFT JOIN steps s ON r.step_id = s.id
               WHERE r.run_id = ?
               ORDER BY r.id""",
            (run_id,),
        )
        return [_result_from_row(r) for r in rows]

    async def list_runs(
        self,
        pipeline_id: int | None = None,
        status: RunStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Run]:
        sql = "SELECT * FROM runs WHERE 1=1"
        params: list[Any] = []
        if pipeline_id is not None:
            sql += " AND pipeline_id = ?"
            params.append(pipeline_id)
        if status is not None:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY id DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])
        return [_run_from_row(r) for r in await self._store.fetch_all(sql, params)]
