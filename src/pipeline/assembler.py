# src/pipeline/assembler.py — v1
"""Assemble a step's fragments into one raw prompt."""

from __future__ import annotations

import logging

from promptrelay.core.models import Fragment, Step
from promptrelay.pipeline.context import ExecutionContext

logger = logging.getLogger(__name__)

FRAGMENT_SEPARATOR = "\n\n"


class PromptAssembler:
    """Builds the prompt for a step from its fragments and the run context."""

    def __init__(self, separator: str = FRAGMENT_SEPARATOR) -> None:
        self._separator = separator

    def effective_text(self, fragment: Fragment, context: ExecutionContext) -> str:
        """Literal text, or the referenced step's output for a placeholder.

        A placeholder whose source step has not run yet (or whose tag carries
        no step id) falls back to its own stored text.
        """
        if not fragment.is_result_placeholder:
            return fragment.content

        source_id = fragment.source_step_id
        if source_id is None:
            logger.debug("Placeholder %r has no source step tag", fragment.title)
            return fragment.content

        entry = context.find_by_step_id(source_id)
        if entry is None:
            logger.debug(
                "No output from step %d yet for placeholder %r", source_id, fragment.title,
            )
            return fragment.content
        return entry.text

    def assemble(self, step: Step, context: ExecutionContext) -> str:
        joined = self._separator.join(
            self.effective_text(fragment, context) for fragment in step.fragments
        )
        return context.substitute(joined)
