"""Tests for summarization backends."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from log_notify.errors import ConfigError
from log_notify.summarization.backends import (
    SYSTEM_PREAMBLE,
    AnthropicSummarizer,
    OpenRouterSummarizer,
    build_summary_prompt,
    create_backend,
)


def mock_session(status: int = 200, json_data=None, text: str = "") -> MagicMock:
    """Build an aiohttp.ClientSession stand-in returning one response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=json_data or {})
    response.text = AsyncMock(return_value=text)

    post_ctx = MagicMock()
    post_ctx.__aenter__ = AsyncMock(return_value=response)
    post_ctx.__aexit__ = AsyncMock(return_value=None)

    session = MagicMock()
    session.post = MagicMock(return_value=post_ctx)

    session_ctx = MagicMock()
    session_ctx.__aenter__ = AsyncMock(return_value=session)
    session_ctx.__aexit__ = AsyncMock(return_value=None)
    session_ctx.session = session
    return session_ctx


def test_summary_prompt_wraps_logs() -> None:
    prompt = build_summary_prompt("ERROR: boom")
    assert "--- START OF LOGS ---\nERROR: boom\n--- END OF LOGS ---" in prompt
    assert "Recommended actions" in prompt


class TestAnthropicSummarizer:
    """Tests for the Anthropic Messages API backend."""

    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        with patch("log_notify.summarization.backends.AsyncAnthropic"):
            summarizer = AnthropicSummarizer(api_key="test-key", model="claude-test")

        message = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="  Database is unreachable.  ")],
            model="claude-test-20250101",
        )
        summarizer.client.messages.create = AsyncMock(return_value=message)

        completion = await summarizer.complete("ERROR: connection refused")

        assert completion.text == "Database is unreachable."
        assert completion.model == "claude-test-20250101"
        kwargs = summarizer.client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["system"] == SYSTEM_PREAMBLE
        assert "ERROR: connection refused" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_non_text_blocks_ignored(self) -> None:
        with patch("log_notify.summarization.backends.AsyncAnthropic"):
            summarizer = AnthropicSummarizer(api_key="test-key")

        message = SimpleNamespace(
            content=[
                SimpleNamespace(type="thinking", text="ignored"),
                SimpleNamespace(type="text", text="Summary"),
            ],
            model=None,
        )
        summarizer.client.messages.create = AsyncMock(return_value=message)

        completion = await summarizer.complete("ERROR: x")
        assert completion.text == "Summary"
        assert completion.model == AnthropicSummarizer.DEFAULT_MODEL

    @pytest.mark.asyncio
    async def test_api_error_propagates(self) -> None:
        with patch("log_notify.summarization.backends.AsyncAnthropic"):
            summarizer = AnthropicSummarizer(api_key="test-key")
        summarizer.client.messages.create = AsyncMock(side_effect=RuntimeError("overloaded"))

        with pytest.raises(RuntimeError, match="overloaded"):
            await summarizer.complete("ERROR: x")

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
            AnthropicSummarizer()

    def test_api_key_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "env-key")
        with patch("log_notify.summarization.backends.AsyncAnthropic") as mock_client:
            AnthropicSummarizer()
        mock_client.assert_called_once_with(api_key="env-key")


class TestOpenRouterSummarizer:
    """Tests for the OpenRouter backend."""

    @pytest.mark.asyncio
    async def test_complete(self) -> None:
        summarizer = OpenRouterSummarizer(api_key="test-key", model="test/model")
        session_ctx = mock_session(
            json_data={
                "model": "test/model-v2",
                "choices": [{"message": {"content": " Out of memory. "}}],
            }
        )

        with patch("aiohttp.ClientSession", return_value=session_ctx):
            completion = await summarizer.complete("ERROR: OOM killed")

        assert completion.text == "Out of memory."
        assert completion.model == "test/model-v2"

        args, kwargs = session_ctx.session.post.call_args
        assert args[0] == OpenRouterSummarizer.OPENROUTER_API_URL
        assert kwargs["headers"]["Authorization"] == "Bearer test-key"
        assert kwargs["json"]["model"] == "test/model"
        assert kwargs["json"]["messages"][0]["content"] == SYSTEM_PREAMBLE

    @pytest.mark.asyncio
    async def test_http_error_raises(self) -> None:
        summarizer = OpenRouterSummarizer(api_key="test-key")
        session_ctx = mock_session(status=429, text="rate limited")

        with patch("aiohttp.ClientSession", return_value=session_ctx):
            with pytest.raises(RuntimeError, match="status 429"):
                await summarizer.complete("ERROR: x")

    @pytest.mark.asyncio
    async def test_missing_choices_raises(self) -> None:
        summarizer = OpenRouterSummarizer(api_key="test-key")
        session_ctx = mock_session(json_data={"choices": []})

        with patch("aiohttp.ClientSession", return_value=session_ctx):
            with pytest.raises(RuntimeError, match="no choices"):
                await summarizer.complete("ERROR: x")

    def test_missing_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
        with pytest.raises(ConfigError):
            OpenRouterSummarizer()


class TestCreateBackend:
    """Tests for provider selection."""

    def test_openrouter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENROUTER_API_KEY", "key")
        backend = create_backend("openrouter", model="x/y", max_tokens=256)
        assert isinstance(backend, OpenRouterSummarizer)
        assert backend.model == "x/y"
        assert backend.max_tokens == 256

    def test_anthropic(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ANTHROPIC_API_KEY", "key")
        with patch("log_notify.summarization.backends.AsyncAnthropic"):
            backend = create_backend("anthropic")
        assert isinstance(backend, AnthropicSummarizer)
        assert backend.model == AnthropicSummarizer.DEFAULT_MODEL

    def test_unknown_provider(self) -> None:
        with pytest.raises(ConfigError, match="Unknown provider"):
            create_backend("nonexistent")
