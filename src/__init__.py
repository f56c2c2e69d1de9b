# src/__init__.py — v1
"""promptrelay: run ordered prompt pipelines against local LLM backends."""

from promptrelay.version import __version__

__all__ = ["__version__"]
