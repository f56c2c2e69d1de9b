# src/storage/schema.py — v1
"""DDL for the promptrelay datastore."""

from __future__ import annotations

SCHEMA = """
CREATE TABLE IF NOT EXISTS fragments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL DEFAULT '',
    content TEXT NOT NULL DEFAULT '',
    tags TEXT NOT NULL DEFAULT '',
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS steps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    temperature REAL NOT NULL DEFAULT 0.6,
    max_length INTEGER NOT NULL DEFAULT 1000,
    backend TEXT NOT NULL DEFAULT '5001',
    dialect TEXT NOT NULL DEFAULT 'default',
    timeout_s REAL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS step_fragments (
    step_id INTEGER NOT NULL REFERENCES steps (id) ON DELETE CASCADE,
    fragment_id INTEGER NOT NULL REFERENCES fragments (id) ON DELETE CASCADE,
    order_index INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS pipelines (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS pipeline_steps (
    pipeline_id INTEGER NOT NULL REFERENCES pipelines (id) ON DELETE CASCADE,
    step_id INTEGER NOT NULL REFERENCES steps (id) ON DELETE CASCADE,
    order_index INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pipeline_id INTEGER NOT NULL REFERENCES pipelines (id) ON DELETE CASCADE,
    status TEXT NOT NULL CHECK (status IN ('running', 'completed', 'failed')),
    started_at TEXT NOT NULL,
    completed_at TEXT,
    metadata TEXT NOT NULL DEFAULT '{}'
);

CREATE TABLE IF NOT EXISTS results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id INTEGER NOT NULL REFERENCES runs (id) ON DELETE CASCADE,
    step_id INTEGER REFERENCES steps (id) ON DELETE SET NULL,
    content TEXT NOT NULL,
    metadata TEXT NOT NULL DEFAULT '{}',
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_step_fragments_step ON step_fragments (step_id, order_index);
CREATE INDEX IF NOT EXISTS idx_pipeline_steps_pipeline ON pipeline_steps (pipeline_id, order_index);
CREATE INDEX IF NOT EXISTS idx_runs_pipeline ON runs (pipeline_id, status);
CREATE INDEX IF NOT EXISTS idx_results_run ON results (run_id, id);
"""
