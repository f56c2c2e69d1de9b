# src/llm/retry.py — v1
"""Whole-call retry policy for gateway invocations.

The gateway re-runs its entire endpoint fallback chain on failure. Only the
last attempt's error propagates; earlier ones are logged.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from promptrelay.core.errors import GatewayError

logger = logging.getLogger(__name__)


class RetryExhausted(GatewayError):
    """All attempts failed. The message is the last error's message, verbatim."""

    def __init__(self, label: str, attempts: int, last_error: Exception):
        self.label = label
        self.last_error = last_error
        super().__init__(
            str(last_error),
            backend=getattr(last_error, "backend", None),
            attempts=attempts,
        )


@dataclass(frozen=True)
class RetryConfig:
    """Retry count and inter-attempt delay."""

    max_retries: int = 2
    base_delay_s: float = 2.0


DEFAULT_RETRY_CONFIG = RetryConfig()


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "llm",
    config: RetryConfig | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying up to ``config.max_retries`` times.

    Raises:
        RetryExhausted: After ``max_retries + 1`` failed attempts.
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except retry_on as e:
            attempts += 1
            if attempts > config.max_retries:
                logger.error(
                    "%s: attempt %d/%d failed, giving up: %s",
                    label, attempts, config.max_retries + 1, e,
                )
                raise RetryExhausted(label, attempts, e) from e

            logger.warning(
                "%s: attempt %d/%d failed (%s), retrying in %.1fs",
                label, attempts, config.max_retries + 1, e, config.base_delay_s,
            )
            await asyncio.sleep(config.base_delay_s)
