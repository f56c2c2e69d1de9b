# src/llm/sanitizer.py — v1
"""Detect and clean corrupted model output.

Some local backends emit unknown-byte markers or raw control bytes when the
prompt format does not suit the model. Such text is cleaned, and if nothing
meaningful survives it is replaced by CORRUPTED_OUTPUT_SENTINEL.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

CORRUPTION_MARKER = "UNK_BYTE"
CORRUPTION_RATIO = 0.1
MIN_CLEAN_LENGTH = 3
CORRUPTED_OUTPUT_SENTINEL = (
    "[Error: The model returned corrupted or binary data. "
    "Please try different model settings or a different model format.]"
)

_BRACKETED_MARKER_RE = re.compile(r"\[UNK_BYTE_[^\]]*\]")
_BARE_MARKER_RE = re.compile(r"UNK_BYTE\S*")
_NON_PRINTABLE_RE = re.compile(r"[^\x20-\x7E\n\t]")
_WHITESPACE_RE = re.compile(r"\s+")


def _control_char_count(text: str) -> int:
    return sum(1 for c in text if ord(c) < 32 and c not in "\n\t")


def is_corrupted(text: str) -> bool:
    """True when the text carries a marker or too many control characters."""
    if not text:
        return False
    if CORRUPTION_MARKER in text:
        return True
    return _control_char_count(text) > len(text) * CORRUPTION_RATIO


def clean_text(text: str) -> str:
    """Strip markers and non-printable characters, collapse whitespace."""
    cleaned = _BRACKETED_MARKER_RE.sub(" ", text)
    cleaned = _BARE_MARKER_RE.sub(" ", cleaned)
    cleaned = _NON_PRINTABLE_RE.sub(" ", cleaned)
    return _WHITESPACE_RE.sub(" ", cleaned).strip()


def sanitize_output(text: str) -> str:
    """Return text unchanged when clean, cleaned text, or the sentinel."""
    if not is_corrupted(text):
        return text

    logger.info("Cleaning corrupted text response (%d chars)", len(text))
    cleaned = clean_text(text)
    if len(cleaned) > MIN_CLEAN_LENGTH:
        return cleaned

    logger.warning("Corrupted response could not be recovered")
    return CORRUPTED_OUTPUT_SENTINEL
