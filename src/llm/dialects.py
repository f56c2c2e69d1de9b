# src/llm/dialects.py — v1
"""Dialect-driven prompt pre-formatting.

Chat dialects skip text formatting and send a message list instead.
Instruction-tuned dialects wrap the prompt in their marker tokens.
Every other dialect passes the prompt through unchanged.
"""

from __future__ import annotations

from promptrelay.core.models import ProtocolDialect
from promptrelay.llm.models import Message

CHAT_DIALECTS = frozenset({ProtocolDialect.MISTRAL})
STRUCTURED_DIALECTS = frozenset({ProtocolDialect.COMMAND_R})

LLAMA_SYSTEM_PROMPT = "You are a helpful assistant."

_TEMPLATES: dict[ProtocolDialect, str] = {
    ProtocolDialect.LLAMA: "<s>[INST] {prompt} [/INST]",
    ProtocolDialect.LLAMA_CHAT: (
        "<s>[INST] <<SYS>>\n" + LLAMA_SYSTEM_PROMPT + "\n<</SYS>>\n\n{prompt} [/INST]"
    ),
}


def is_chat(dialect: ProtocolDialect) -> bool:
    return dialect in CHAT_DIALECTS


def is_structured(dialect: ProtocolDialect) -> bool:
    return dialect in STRUCTURED_DIALECTS


def format_prompt(prompt: str, dialect: ProtocolDialect) -> str:
    """Return the text prompt a completion-style endpoint should receive."""
    template = _TEMPLATES.get(dialect)
    if template is None:
        return prompt
    return template.replace("{prompt}", prompt)


def build_messages(prompt: str) -> list[Message]:
    """Message list for chat-completion endpoints."""
    return [Message(role="user", content=prompt)]
