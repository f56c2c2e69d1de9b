# src/main.py — v1
"""CLI entry point: one subcommand per pipeline or backend operation.

Usage:
    promptrelay run <pipeline_id> [--db PATH]
    promptrelay poll <run_id> [--db PATH]
    promptrelay runs [--pipeline ID] [--status S] [--limit N]
    promptrelay probe <backend> [--detailed]
    promptrelay backends [--check]

Run events are written to stdout as JSON lines; logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from promptrelay.config.settings import Settings, load_settings
from promptrelay.core.errors import PromptRelayError
from promptrelay.logging.logger import setup_logging
from promptrelay.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except Exception as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except PromptRelayError as exc:
        logger.error("%s", exc)
        return 1
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="promptrelay",
        description=f"promptrelay v{__version__}: prompt pipelines for local LLM backends",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    db_parent = argparse.ArgumentParser(add_help=False)
    db_parent.add_argument(
        "--db", type=Path, default=None,
        help="SQLite database path (default: DATABASE_PATH setting)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- run ---
    p_run = subparsers.add_parser(
        "run", parents=[db_parent], help="Execute a pipeline and stream its events",
    )
    p_run.add_argument("pipeline_id", type=int, help="Pipeline to execute")
    p_run.set_defaults(func=_cmd_run)

    # --- poll ---
    p_poll = subparsers.add_parser(
        "poll", parents=[db_parent], help="Show a run and its results",
    )
    p_poll.add_argument("run_id", type=int, help="Run to inspect")
    p_poll.set_defaults(func=_cmd_poll)

    # --- runs ---
    p_runs = subparsers.add_parser(
        "runs", parents=[db_parent], help="List recent runs",
    )
    p_runs.add_argument(
        "--pipeline", type=int, default=None, dest="pipeline_id",
        help="Only runs of this pipeline",
    )
    p_runs.add_argument(
        "--status", choices=["running", "completed", "failed"], default=None,
        help="Only runs with this status",
    )
    p_runs.add_argument(
        "--limit", type=int, default=20,
        help="Maximum number of runs (default: 20)",
    )
    p_runs.set_defaults(func=_cmd_runs)

    # --- probe ---
    p_probe = subparsers.add_parser(
        "probe", help="Check connectivity to an LLM backend",
    )
    p_probe.add_argument("backend", help="Port, host:port or URL of the backend")
    p_probe.add_argument(
        "--detailed", action="store_true",
        help="Report every API family and the /info payload",
    )
    p_probe.set_defaults(func=_cmd_probe)

    # --- backends ---
    p_backends = subparsers.add_parser(
        "backends", help="List the backends declared in LLM_BACKENDS",
    )
    p_backends.add_argument(
        "--check", action="store_true",
        help="Probe each backend and report its status",
    )
    p_backends.set_defaults(func=_cmd_backends)

    return parser


def _load_settings(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {}
    if getattr(args, "db", None) is not None:
        overrides["database_path"] = args.db
    return load_settings(**overrides)


def _emit_line(message: dict[str, Any]) -> None:
    print(json.dumps(message, ensure_ascii=False), flush=True)


async def _cmd_run(args: argparse.Namespace, settings: Settings) -> int:
    """Start a run, stream its events, and wait for the terminal state."""
    from promptrelay.pipeline.coordinator_factory import create_coordinator

    coordinator = await create_coordinator(settings, broadcast=_emit_line)
    try:
        run_id = await coordinator.start(args.pipeline_id)
        record = await coordinator.wait(run_id)
    finally:
        await coordinator.aclose()

    logger.info("Run %d finished with status %s", record.run.id, record.run.status)
    return 0 if record.run.status == "completed" else 1


async def _cmd_poll(args: argparse.Namespace, settings: Settings) -> int:
    """Print a run record as JSON."""
    from promptrelay.pipeline.coordinator_factory import create_coordinator

    coordinator = await create_coordinator(settings)
    try:
        record = await coordinator.poll(args.run_id)
    finally:
        await coordinator.aclose()

    print(record.model_dump_json(indent=2))
    return 0


async def _cmd_runs(args: argparse.Namespace, settings: Settings) -> int:
    """List runs, newest first."""
    from promptrelay.storage.repository import PipelineRepository
    from promptrelay.storage.store_factory import create_store

    store = await create_store(settings)
    try:
        runs = await PipelineRepository(store).list_runs(
            pipeline_id=args.pipeline_id, status=args.status, limit=args.limit,
        )
    finally:
        store.close()

    if not runs:
        print("No runs found.")
        return 0
    for run in runs:
        print(
            f"{run.id:>6}  pipeline={run.pipeline_id:<4} {run.status:<10} "
            f"started={run.started_at}  completed={run.completed_at or '-'}"
        )
    return 0


async def _cmd_probe(args: argparse.Namespace, settings: Settings) -> int:
    """Print a connectivity report for one backend."""
    from promptrelay.llm.gateway import ModelGateway
    from promptrelay.llm.registry import create_registry
    from promptrelay.llm.transport import HttpxTransport

    gateway = ModelGateway(
        HttpxTransport(), registry=create_registry(settings), settings=settings,
    )
    try:
        if args.detailed:
            report = await gateway.detailed_connectivity(args.backend)
        else:
            report = await gateway.test_connectivity(args.backend)
    finally:
        await gateway.aclose()

    print(report.model_dump_json(indent=2))
    return 0 if report.connected else 1


async def _cmd_backends(args: argparse.Namespace, settings: Settings) -> int:
    """List registered backends, optionally probing each one."""
    from promptrelay.llm.gateway import ModelGateway
    from promptrelay.llm.registry import create_registry
    from promptrelay.llm.transport import HttpxTransport

    registry = create_registry(settings)
    if not registry.instances():
        print("No backends registered. Declare them in LLM_BACKENDS.")
        return 0

    if args.check:
        gateway = ModelGateway(HttpxTransport(), registry=registry, settings=settings)
        try:
            for instance in registry.instances():
                await gateway.test_connectivity(instance.address)
        finally:
            await gateway.aclose()

    for instance in registry.instances():
        print(
            f"{instance.address:<24} {instance.name:<20} {instance.status:<12} "
            f"{json.dumps(instance.defaults, sort_keys=True)}"
        )
    return 0


def _setup_logging(settings: Settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
