# tests/unit/llm/test_unit_registry.py — v1
"""Tests for llm/registry.py — backend addresses and registry."""

from __future__ import annotations

import pytest

from promptrelay.config.settings import Settings
from promptrelay.llm.registry import BackendRegistry, create_registry, resolve_base_url


class TestResolveBaseUrl:
    def test_port(self):
        assert resolve_base_url("5001", "localhost") == "http://localhost:5001"

    def test_int_port(self):
        assert resolve_base_url(5002, "host.docker.internal") == "http://host.docker.internal:5002"

    def test_host_port(self):
        assert resolve_base_url("gpu-box:8080", "localhost") == "http://gpu-box:8080"

    def test_url_kept(self):
        assert resolve_base_url("https://llm.example.com/", "localhost") == "https://llm.example.com"

    @pytest.mark.parametrize("addr", ["0", "70000"])
    def test_invalid_port(self, addr):
        with pytest.raises(ValueError, match="Invalid port"):
            resolve_base_url(addr, "localhost")

    def test_empty(self):
        with pytest.raises(ValueError, match="empty"):
            resolve_base_url("  ", "localhost")


class TestBackendRegistry:
    def test_register_and_get(self):
        reg = BackendRegistry()
        reg.register(5001, "kobold", {"top_k": 10})
        assert "5001" in reg
        assert len(reg) == 1
        assert reg.get("5001").name == "kobold"
        assert reg.defaults_for(5001) == {"top_k": 10}

    def test_unregistered(self):
        reg = BackendRegistry()
        assert reg.get("9999") is None
        assert reg.defaults_for("9999") == {}
        reg.mark_used("9999")
        reg.set_status("9999", "available")

    def test_defaults_are_copies(self):
        reg = BackendRegistry()
        reg.register("5001", "k", {"top_k": 10})
        reg.defaults_for("5001")["top_k"] = 99
        assert reg.defaults_for("5001")["top_k"] == 10

    def test_mark_used_and_status(self):
        reg = BackendRegistry()
        reg.register("5001", "k")
        reg.mark_used("5001")
        reg.set_status("5001", "unavailable")
        inst = reg.get("5001")
        assert inst.last_used is not None
        assert inst.status == "unavailable"
        assert reg.instances() == [inst]


class TestCreateRegistry:
    def test_empty_by_default(self):
        assert len(create_registry(Settings(_env_file=None))) == 0

    def test_registers_declared_backends(self):
        settings = Settings(
            _env_file=None,
            llm_backends={
                "5001": {"name": "small", "defaults": {"temperature": 0.7, "max_length": 1000}},
                "gpu-box:8080": {},
            },
        )
        registry = create_registry(settings)

        assert [i.address for i in registry.instances()] == ["5001", "gpu-box:8080"]
        assert registry.get("5001").name == "small"
        assert registry.defaults_for("5001") == {"temperature": 0.7, "max_length": 1000}
        assert registry.get("gpu-box:8080").name == "gpu-box:8080"
        assert registry.get("gpu-box:8080").status == "unknown"
