# src/llm/transport.py — v1
"""Outbound HTTP transport used by the gateway.

BaseTransport is the seam tests replace; HttpxTransport is the production
implementation on top of one shared httpx.AsyncClient. Every failure of a
single request surfaces as TransportError.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from promptrelay.core.errors import TransportError

logger = logging.getLogger(__name__)

_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class BaseTransport(ABC):
    """Makes one JSON request with a per-call timeout."""

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> Any:
        """Send the request and return the decoded JSON body.

        Raises:
            TransportError: Connection failure, timeout, non-2xx status or
                an undecodable body.
        """

    async def aclose(self) -> None:
        """Release pooled connections."""


class HttpxTransport(BaseTransport):
    """httpx-backed transport with a lazily created shared client."""

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(headers=_HEADERS)
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        payload: dict[str, Any] | None = None,
        timeout: float = 30.0,
    ) -> Any:
        logger.debug("%s %s (timeout: %.0fs)", method, url, timeout)
        client = self._get_client()
        try:
            resp = await client.request(
                method,
                url,
                json=payload if method in ("POST", "PUT") else None,
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Request timed out after {timeout:.0f}s when connecting to {url}", url,
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Connection error to {url}: {exc}", url) from exc

        body = resp.text
        if not body.strip():
            data: Any = {}
        else:
            try:
                data = json.loads(body)
            except json.JSONDecodeError as exc:
                raise TransportError(
                    f"Failed to parse response from {url}: {exc}", url, resp.status_code,
                ) from exc

        if not resp.is_success:
            message = data.get("message") if isinstance(data, dict) else None
            raise TransportError(
                message or f"HTTP Error: {resp.status_code}", url, resp.status_code,
            )
        return data

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
