# src/pipeline/coordinator_factory.py — v1
"""Wire a RunCoordinator from settings: store, repository, gateway, admission."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from promptrelay.llm.gateway import ModelGateway
from promptrelay.llm.registry import BackendRegistry, create_registry
from promptrelay.llm.transport import BaseTransport, HttpxTransport
from promptrelay.pipeline.admission import create_admission_policy
from promptrelay.pipeline.coordinator import RunCoordinator
from promptrelay.storage.repository import PipelineRepository
from promptrelay.storage.store_factory import create_store

if TYPE_CHECKING:
    from promptrelay.config.settings import Settings
    from promptrelay.pipeline.events import Broadcast

logger = logging.getLogger(__name__)


async def create_coordinator(
    settings: Settings,
    broadcast: Broadcast | None = None,
    transport: BaseTransport | None = None,
    registry: BackendRegistry | None = None,
) -> RunCoordinator:
    """Build a coordinator backed by the configured database.

    Args:
        settings: Application settings.
        broadcast: Receives every run event.
        transport: HTTP transport (httpx by default).
        registry: Known backends; built from ``settings.llm_backends`` when omitted.

    Returns:
        RunCoordinator; call ``aclose()`` when done with it.
    """
    store = await create_store(settings)
    gateway = ModelGateway(
        transport or HttpxTransport(),
        registry=registry if registry is not None else create_registry(settings),
        settings=settings,
    )
    admission = create_admission_policy(settings)
    logger.debug(
        "Coordinator ready (db=%s, admission=%s)",
        settings.database_path, settings.backend_admission,
    )
    return RunCoordinator(
        PipelineRepository(store),
        gateway,
        broadcast=broadcast,
        admission=admission,
    )
