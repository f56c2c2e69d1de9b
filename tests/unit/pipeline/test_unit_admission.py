# tests/unit/pipeline/test_unit_admission.py — v1
"""Tests for pipeline/admission.py — per-backend admission policies."""

from __future__ import annotations

import asyncio

import pytest

from promptrelay.config.settings import Settings
from promptrelay.pipeline.admission import (
    SerialPerBackendAdmission,
    UnrestrictedAdmission,
    create_admission_policy,
)


async def _max_in_flight(policy, backends: list[str]) -> int:
    in_flight = 0
    peak = 0

    async def call(backend: str) -> None:
        nonlocal in_flight, peak
        async with policy.slot(backend):
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

    await asyncio.gather(*(call(b) for b in backends))
    return peak


class TestPolicies:
    @pytest.mark.asyncio
    async def test_unrestricted_overlaps(self):
        assert await _max_in_flight(UnrestrictedAdmission(), ["5001"] * 3) == 3

    @pytest.mark.asyncio
    async def test_serial_same_backend(self):
        assert await _max_in_flight(SerialPerBackendAdmission(), ["5001"] * 3) == 1

    @pytest.mark.asyncio
    async def test_serial_different_backends_overlap(self):
        assert await _max_in_flight(SerialPerBackendAdmission(), ["5001", "5002"]) == 2


class TestFactory:
    def test_default(self):
        assert isinstance(create_admission_policy(), UnrestrictedAdmission)

    def test_serial(self):
        settings = Settings(_env_file=None, backend_admission="serial")
        assert isinstance(create_admission_policy(settings), SerialPerBackendAdmission)
