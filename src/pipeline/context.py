# src/pipeline/context.py — v1
"""Per-run accumulator of step outputs and ``{{name}}`` substitution.

Each successful step appends one entry. Later prompts reference earlier
outputs by step name; a prompt that references nothing gets the latest
output appended under a "Previous response:" label.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

VARIABLE_RE = re.compile(r"\{\{([^}]+)\}\}")
PREVIOUS_RESPONSE_LABEL = "Previous response:"


@dataclass(frozen=True)
class ContextEntry:
    """Output of one completed step."""

    step_id: int
    step_name: str
    text: str
    metadata: dict[str, Any] = field(default_factory=dict)


class ExecutionContext:
    """Ordered outputs of the steps completed so far in one run."""

    def __init__(self) -> None:
        self._entries: list[ContextEntry] = []

    def append(
        self,
        step_id: int,
        step_name: str,
        text: str,
        metadata: dict[str, Any] | None = None,
    ) -> ContextEntry:
        entry = ContextEntry(
            step_id=step_id,
            step_name=step_name,
            text=text.strip(),
            metadata=dict(metadata or {}),
        )
        self._entries.append(entry)
        return entry

    @property
    def entries(self) -> list[ContextEntry]:
        return list(self._entries)

    @property
    def latest(self) -> ContextEntry | None:
        return self._entries[-1] if self._entries else None

    def find_by_step_id(self, step_id: int) -> ContextEntry | None:
        for entry in self._entries:
            if entry.step_id == step_id:
                return entry
        return None

    def find_by_name(self, name: str) -> ContextEntry | None:
        for entry in self._entries:
            if entry.step_name == name:
                return entry
        return None

    def substitute(self, template: str) -> str:
        """Replace ``{{step_name}}`` tokens with accumulated outputs.

        Unknown names are left as-is. If nothing was replaced and at least
        one step has completed, the latest output is appended instead.
        """

        def _replace(match: re.Match[str]) -> str:
            name = match.group(1).strip()
            entry = self.find_by_name(name)
            if entry is None:
                logger.debug("Variable %r not found in context", name)
                return match.group(0)
            return entry.text

        result = VARIABLE_RE.sub(_replace, template)

        if result == template and self._entries:
            latest = self._entries[-1]
            logger.debug("Appending previous response from %r", latest.step_name)
            result = f"{result}\n\n{PREVIOUS_RESPONSE_LABEL}\n{latest.text}"

        return result

    def __len__(self) -> int:
        return len(self._entries)
