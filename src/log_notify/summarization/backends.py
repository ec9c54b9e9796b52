"""Summarization backends for captured log content.

Each backend makes exactly one remote call per ``complete()`` and raises on
any failure, leaving retries to SummarizationClient. Two backends are
provided:

    - AnthropicSummarizer: Anthropic Messages API via the ``anthropic`` SDK
    - OpenRouterSummarizer: OpenRouter chat completions over ``aiohttp``
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Protocol

import aiohttp
from anthropic import AsyncAnthropic

from ..errors import ConfigError

logger = logging.getLogger(__name__)

SYSTEM_PREAMBLE = (
    "You are an expert log analyzer. Your task is to analyze error logs and provide "
    "concise, actionable summaries. Focus on: 1) What went wrong, 2) Potential causes, "
    "3) Recommended actions. Be specific and technical."
)

DEFAULT_MAX_TOKENS = 1024


def build_summary_prompt(log_content: str) -> str:
    """Wrap log content in the analysis prompt."""
    return f"""Analyze the following error logs and provide a concise summary:

--- START OF LOGS ---
{log_content}
--- END OF LOGS ---

Please provide:
1. A brief overview of the main errors
2. Potential root causes
3. Recommended actions to fix the issues

Keep the summary concise and actionable."""


@dataclass(frozen=True)
class Completion:
    """Raw reply from a backend."""

    text: str
    model: str


class Summarizer(Protocol):
    """One-shot text-in/text-out summarization call."""

    model: str

    async def complete(self, log_content: str) -> Completion: ...


class AnthropicSummarizer:
    """Summarizes logs with the Anthropic Messages API.

    Attributes:
        client: Async Anthropic client.
        model: Claude model to use.
        max_tokens: Upper bound on reply length.
    """

    DEFAULT_MODEL = "claude-haiku-4-5"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        """Initialize the summarizer.

        Args:
            api_key: Anthropic API key. If None, uses ANTHROPIC_API_KEY env var.
            model: Claude model to use. Defaults to Haiku 4.5.
            max_tokens: Upper bound on reply length.

        Raises:
            ConfigError: If no API key is available.
        """
        api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        if not api_key:
            raise ConfigError("ANTHROPIC_API_KEY environment variable is not set")

        self.client = AsyncAnthropic(api_key=api_key)
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens

    async def complete(self, log_content: str) -> Completion:
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=SYSTEM_PREAMBLE,
            messages=[{"role": "user", "content": build_summary_prompt(log_content)}],
        )

        text = "".join(
            block.text for block in message.content if getattr(block, "type", "text") == "text"
        )
        return Completion(text=text.strip(), model=getattr(message, "model", None) or self.model)

    def __repr__(self) -> str:
        return f"AnthropicSummarizer(model={self.model})"


class OpenRouterSummarizer:
    """
    Summarizes logs with an OpenRouter-hosted model.

    Unlike a best-effort summarizer this backend raises on HTTP errors and
    malformed replies so the caller's retry loop can see them.
    """

    OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"
    DEFAULT_MODEL = "anthropic/claude-haiku-4.5"

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ):
        """
        Initialize the summarizer.

        Args:
            api_key: OpenRouter API key. If None, reads from OPENROUTER_API_KEY env var.
            model: Model identifier for OpenRouter.
            max_tokens: Upper bound on reply length.

        Raises:
            ConfigError: If no API key is available.
        """
        self.api_key = api_key or os.environ.get("OPENROUTER_API_KEY")
        if not self.api_key:
            raise ConfigError("OPENROUTER_API_KEY environment variable is not set")
        self.model = model or self.DEFAULT_MODEL
        self.max_tokens = max_tokens

    async def complete(self, log_content: str) -> Completion:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": "log-notify",
        }
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PREAMBLE},
                {"role": "user", "content": build_summary_prompt(log_content)},
            ],
            "max_tokens": self.max_tokens,
        }

        async with aiohttp.ClientSession() as session:
            async with session.post(
                self.OPENROUTER_API_URL, headers=headers, json=payload
            ) as response:
                if response.status != 200:
                    error_text = await response.text()
                    raise RuntimeError(
                        f"OpenRouter API returned status {response.status}: {error_text[:200]}"
                    )

                data = await response.json()

        choices = data.get("choices") or []
        if not choices:
            raise RuntimeError("Unexpected OpenRouter response format: no choices")

        text = (choices[0].get("message", {}).get("content") or "").strip()
        return Completion(text=text, model=data.get("model") or self.model)

    def __repr__(self) -> str:
        return f"OpenRouterSummarizer(model={self.model}, api_key={'set' if self.api_key else 'not set'})"


PROVIDERS = {
    "anthropic": AnthropicSummarizer,
    "openrouter": OpenRouterSummarizer,
}


def create_backend(provider: str, model: str | None = None, max_tokens: int = DEFAULT_MAX_TOKENS) -> Summarizer:
    """Create the backend for ``provider``.

    Raises:
        ConfigError: If the provider is unknown or its API key is missing.
    """
    try:
        backend_cls = PROVIDERS[provider]
    except KeyError:
        allowed = ", ".join(sorted(PROVIDERS))
        raise ConfigError(f"Unknown provider '{provider}'. Allowed providers: {allowed}") from None

    backend = backend_cls(model=model, max_tokens=max_tokens)
    logger.info(f"Summarization backend initialized: {backend!r}")
    return backend
