# src/core/errors.py — v1
"""Exception hierarchy shared by the coordinator, gateway and store.

ValidationError is raised before a run exists. GatewayError and
PersistenceError are raised while a run executes and end it as failed.
"""

from __future__ import annotations


class PromptRelayError(Exception):
    """Base class for all promptrelay errors."""


class ValidationError(PromptRelayError):
    """Bad input detected before a run is created."""


class NotFoundError(ValidationError):
    """Referenced pipeline or run does not exist."""

    def __init__(self, kind: str, identifier: object):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} {identifier} not found")


class GatewayError(PromptRelayError):
    """An LLM backend call could not produce a usable response."""

    def __init__(self, message: str, backend: str | None = None, attempts: int = 0):
        self.backend = backend
        self.attempts = attempts
        super().__init__(message)


class TransportError(GatewayError):
    """A single endpoint failed: connection, timeout, HTTP status or bad body."""

    def __init__(self, message: str, url: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class UnrecognizedResponseError(GatewayError):
    """Backend answered with a JSON shape no normalizer variant accepts."""


class PersistenceError(PromptRelayError):
    """A store read or write failed."""
