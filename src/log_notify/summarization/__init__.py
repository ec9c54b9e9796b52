"""Summarization of log content through a remote model."""

from __future__ import annotations

from .backends import (
    AnthropicSummarizer,
    Completion,
    OpenRouterSummarizer,
    Summarizer,
    build_summary_prompt,
    create_backend,
)
from .client import SummarizationClient

__all__ = [
    "AnthropicSummarizer",
    "Completion",
    "OpenRouterSummarizer",
    "SummarizationClient",
    "Summarizer",
    "build_summary_prompt",
    "create_backend",
]
