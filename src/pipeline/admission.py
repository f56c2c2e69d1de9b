# src/pipeline/admission.py — v1
"""Admission policy for concurrent runs sharing a backend.

The coordinator wraps every gateway call in ``policy.slot(backend)``.
Unrestricted admission (the default) lets any number of calls reach a
backend at once; serial admission allows one in-flight call per backend.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Protocol

from promptrelay.config.settings import Settings


class AdmissionPolicy(Protocol):
    def slot(self, backend: str) -> AsyncContextManager[None]: ...


class UnrestrictedAdmission:
    """No admission control."""

    @asynccontextmanager
    async def slot(self, backend: str) -> AsyncIterator[None]:
        yield


class SerialPerBackendAdmission:
    """At most one in-flight gateway call per backend address."""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def slot(self, backend: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(backend, asyncio.Lock())
        async with lock:
            yield


def create_admission_policy(settings: Settings | None = None) -> AdmissionPolicy:
    mode = "none" if settings is None else settings.backend_admission
    if mode == "serial":
        return SerialPerBackendAdmission()
    if mode == "none":
        return UnrestrictedAdmission()
    raise ValueError(f"Unsupported admission policy: {mode!r}")
