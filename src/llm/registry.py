# src/llm/registry.py — v1
"""Backend registry and address resolution.

A backend address is what a step stores: a bare port ("5001"), a
"host:port" pair, or a full URL. Registering a backend attaches a friendly
name and per-backend sampling defaults; unregistered backends still work
with the global defaults.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from promptrelay.config.settings import Settings

logger = logging.getLogger(__name__)

BackendStatus = Literal["unknown", "available", "unavailable"]


def resolve_base_url(address: str | int, default_host: str) -> str:
    """Turn a backend address into a base URL without trailing slash."""
    addr = str(address).strip()
    if not addr:
        raise ValueError("Backend address is empty")
    if addr.startswith(("http://", "https://")):
        return addr.rstrip("/")
    if addr.isdigit():
        port = int(addr)
        if not 0 < port <= 65535:
            raise ValueError(f"Invalid port number: {addr}")
        return f"http://{default_host}:{port}"
    return f"http://{addr.rstrip('/')}"


class BackendInstance(BaseModel):
    """A registered backend and its sampling defaults."""

    address: str
    name: str
    status: BackendStatus = "unknown"
    last_used: datetime | None = None
    defaults: dict[str, Any] = Field(default_factory=dict)


class BackendRegistry:
    """In-process registry of known backends, keyed by address."""

    def __init__(self) -> None:
        self._instances: dict[str, BackendInstance] = {}

    def register(
        self, address: str | int, name: str, defaults: dict[str, Any] | None = None,
    ) -> BackendInstance:
        key = str(address).strip()
        instance = BackendInstance(address=key, name=name, defaults=dict(defaults or {}))
        self._instances[key] = instance
        logger.info("Registered backend %s (%s)", key, name)
        return instance

    def get(self, address: str | int) -> BackendInstance | None:
        return self._instances.get(str(address).strip())

    def instances(self) -> list[BackendInstance]:
        return list(self._instances.values())

    def defaults_for(self, address: str | int) -> dict[str, Any]:
        instance = self.get(address)
        return dict(instance.defaults) if instance else {}

    def mark_used(self, address: str | int) -> None:
        instance = self.get(address)
        if instance is not None:
            instance.last_used = datetime.now(timezone.utc)

    def set_status(self, address: str | int, status: BackendStatus) -> None:
        instance = self.get(address)
        if instance is not None:
            instance.status = status

    def __contains__(self, address: object) -> bool:
        return str(address).strip() in self._instances

    def __len__(self) -> int:
        return len(self._instances)


def create_registry(settings: Settings) -> BackendRegistry:
    """Registry holding every backend declared in ``settings.llm_backends``.

    A declared backend without a name is registered under its address.
    """
    registry = BackendRegistry()
    for address, spec in settings.llm_backends.items():
        registry.register(address, spec.name or address, spec.defaults)
    return registry
