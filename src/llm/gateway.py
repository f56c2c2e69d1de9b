# src/llm/gateway.py — v1
"""Model gateway: one normalized call against a heterogeneous LLM backend.

invoke() formats the prompt for the step's dialect, walks the dialect's
endpoint fallback chain (first success wins), retries the whole chain with
a fixed delay, and normalizes the winning payload into a GatewayResponse.

Created once per process and passed by reference to the coordinator.
"""

from __future__ import annotations

import logging
from typing import Any

from promptrelay.config.settings import Settings
from promptrelay.core.errors import GatewayError, TransportError
from promptrelay.core.models import GenerationConfig
from promptrelay.llm import dialects
from promptrelay.llm.candidates import (
    INFO_CANDIDATE,
    MODEL_INFO_CHAIN,
    EndpointCandidate,
    GenerationRequest,
    build_fallback_chain,
)
from promptrelay.llm.models import ConnectivityReport, GatewayResponse
from promptrelay.llm.normalizer import normalize_response
from promptrelay.llm.registry import BackendRegistry, resolve_base_url
from promptrelay.llm.retry import RetryConfig, with_retry
from promptrelay.llm.transport import BaseTransport

logger = logging.getLogger(__name__)


def _step_or_default(config: GenerationConfig, field: str, defaults: dict[str, Any]) -> Any:
    # Values set on the step win over the backend's registered defaults
    if field in config.model_fields_set or field not in defaults:
        return getattr(config, field)
    return defaults[field]


class ModelGateway:
    """Fault-tolerant, dialect-aware client for LLM backends.

    Args:
        transport: Outbound HTTP transport.
        registry: Known backends and their sampling defaults.
        settings: Host, timeouts and retry policy.
        retry_config: Overrides the retry policy derived from settings.
    """

    def __init__(
        self,
        transport: BaseTransport,
        registry: BackendRegistry | None = None,
        settings: Settings | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._transport = transport
        self._registry = registry if registry is not None else BackendRegistry()
        self._settings = settings or Settings(_env_file=None)  # type: ignore[call-arg]
        self._retry = retry_config or RetryConfig(
            max_retries=self._settings.gateway_retries,
            base_delay_s=self._settings.gateway_retry_delay_s,
        )

    @property
    def registry(self) -> BackendRegistry:
        return self._registry

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    def base_url(self, backend: str | int) -> str:
        return resolve_base_url(backend, self._settings.llm_host)

    # --- Generation ---

    async def invoke(
        self,
        backend: str | int,
        prompt: str,
        config: GenerationConfig,
    ) -> GatewayResponse:
        """Send a prompt and return the normalized response.

        Raises:
            GatewayError: Every candidate failed on every attempt (the last
                endpoint error message is kept verbatim), or the backend
                answered with an unrecognized response shape.
        """
        try:
            base_url = self.base_url(backend)
        except ValueError as exc:
            raise GatewayError(str(exc), backend=str(backend)) from exc

        request = self._build_request(backend, prompt, config)
        chain = build_fallback_chain(config.dialect)
        generation_timeout = self._generation_timeout(backend, config)
        self._registry.mark_used(backend)

        logger.info(
            "Invoking backend %s (dialect=%s, candidates=%d)",
            backend, config.dialect.value, len(chain),
        )
        attempts = 0

        async def attempt() -> tuple[EndpointCandidate, Any]:
            nonlocal attempts
            attempts += 1
            return await self._run_chain(base_url, chain, request, generation_timeout)

        candidate, raw = await with_retry(
            attempt,
            label=f"backend {backend}",
            config=self._retry,
            retry_on=(TransportError,),
        )
        response = normalize_response(raw)
        return response.model_copy(update={"endpoint": candidate.name, "attempts": attempts})

    async def _run_chain(
        self,
        base_url: str,
        chain: tuple[EndpointCandidate, ...],
        request: GenerationRequest,
        generation_timeout: float,
    ) -> tuple[EndpointCandidate, Any]:
        """Try each candidate in order, return the first successful payload."""
        last_error: TransportError | None = None
        for candidate in chain:
            payload = candidate.build_payload(request) if candidate.build_payload else None
            try:
                raw = await self._transport.request(
                    candidate.method,
                    base_url + candidate.path,
                    payload,
                    timeout=self._timeout_for(candidate, generation_timeout),
                )
            except TransportError as exc:
                logger.info("Endpoint %s failed: %s", candidate.name, exc)
                last_error = exc
                continue
            logger.debug("Endpoint %s answered", candidate.name)
            return candidate, raw

        if last_error is None:
            raise TransportError("Fallback chain is empty", base_url)
        raise last_error

    def _build_request(
        self, backend: str | int, prompt: str, config: GenerationConfig,
    ) -> GenerationRequest:
        defaults = self._registry.defaults_for(backend)
        if dialects.is_chat(config.dialect):
            messages = dialects.build_messages(prompt)
        else:
            messages = []
        return GenerationRequest(
            prompt=dialects.format_prompt(prompt, config.dialect),
            messages=messages,
            temperature=_step_or_default(config, "temperature", defaults),
            max_length=_step_or_default(config, "max_length", defaults),
            top_p=defaults.get("top_p", self._settings.llm_top_p),
            top_k=defaults.get("top_k", self._settings.llm_top_k),
            model=defaults.get("model"),
            stop_sequences=list(defaults.get("stop_sequences", [])),
        )

    def _generation_timeout(self, backend: str | int, config: GenerationConfig) -> float:
        if config.timeout_s:
            return config.timeout_s
        return float(
            self._registry.defaults_for(backend).get(
                "timeout_s", self._settings.generation_timeout_s
            )
        )

    def _timeout_for(
        self, candidate: EndpointCandidate, generation_timeout: float | None = None,
    ) -> float:
        if candidate.timeout_class == "metadata":
            return self._settings.metadata_timeout_s
        if generation_timeout is not None:
            return generation_timeout
        return self._settings.generation_timeout_s

    # --- Metadata / health ---

    async def _fetch(self, backend: str | int, candidate: EndpointCandidate) -> Any:
        return await self._transport.request(
            candidate.method,
            self.base_url(backend) + candidate.path,
            None,
            timeout=self._timeout_for(candidate),
        )

    async def fetch_model_info(self, backend: str | int) -> Any:
        """Model descriptor from the first metadata endpoint that answers.

        Raises:
            TransportError: No metadata endpoint answered.
        """
        last_error: TransportError | None = None
        for candidate in MODEL_INFO_CHAIN:
            try:
                return await self._fetch(backend, candidate)
            except TransportError as exc:
                logger.debug("Could not get model info via %s: %s", candidate.name, exc)
                last_error = exc
        if last_error is None:
            raise TransportError("No metadata endpoint configured", self.base_url(backend))
        raise last_error

    async def get_model_info(self, backend: str | int) -> Any:
        """Like fetch_model_info, but degrades to a descriptive dict instead of raising."""
        try:
            return await self.fetch_model_info(backend)
        except (TransportError, ValueError) as exc:
            logger.info("Model info unavailable for backend %s: %s", backend, exc)
            return {
                "success": False,
                "message": "Server reachable but could not get model information",
                "backend": str(backend),
            }

    async def test_connectivity(self, backend: str | int) -> ConnectivityReport:
        """Probe the metadata endpoints and update the registry status."""
        try:
            info = await self.fetch_model_info(backend)
        except (TransportError, ValueError) as exc:
            self._registry.set_status(backend, "unavailable")
            return ConnectivityReport(backend=str(backend), connected=False, error=str(exc))
        self._registry.set_status(backend, "available")
        return ConnectivityReport(backend=str(backend), connected=True, model_info=info)

    async def detailed_connectivity(self, backend: str | int) -> ConnectivityReport:
        """Report which API families the backend speaks, plus its /info payload."""
        report = ConnectivityReport(backend=str(backend), kobold_api=False, openai_api=False)
        kobold, openai = MODEL_INFO_CHAIN
        for candidate, flag in ((kobold, "kobold_api"), (openai, "openai_api")):
            try:
                info = await self._fetch(backend, candidate)
            except (TransportError, ValueError) as exc:
                report.api_details[f"{candidate.name}_error"] = str(exc)
                continue
            setattr(report, flag, True)
            report.connected = True
            report.api_details[candidate.name] = info
            if report.model_info is None:
                report.model_info = info

        if report.connected:
            try:
                report.endpoint_info["info"] = await self._fetch(backend, INFO_CANDIDATE)
            except TransportError:
                logger.debug("Backend %s has no /info endpoint", backend)
        else:
            report.error = "No metadata endpoint answered"

        self._registry.set_status(backend, "available" if report.connected else "unavailable")
        return report

    async def aclose(self) -> None:
        await self._transport.aclose()
