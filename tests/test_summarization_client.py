"""Tests for SummarizationClient retry behavior."""

import asyncio
from unittest.mock import AsyncMock, call, patch

import pytest

from log_notify.errors import SummarizationError, ValidationError
from log_notify.summarization.backends import Completion
from log_notify.summarization.client import EMPTY_SUMMARY, SummarizationClient


class TestSummarize:
    """Tests for successful and rejected calls."""

    @pytest.mark.asyncio
    async def test_success_first_attempt(self, make_backend) -> None:
        backend = make_backend(["Disk is full on /var"], model="claude-test")
        client = SummarizationClient(backend, base_delay=0)

        result = await client.summarize("ERROR: no space left on device\n")

        assert result.summary_text == "Disk is full on /var"
        assert result.original_length == len("ERROR: no space left on device\n")
        assert result.summary_length == len("Disk is full on /var")
        assert result.model_identifier == "claude-test"
        assert result.duration_ms >= 0
        assert backend.calls == ["ERROR: no space left on device\n"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "\n\t\n"])
    async def test_empty_input_rejected_without_calls(self, make_backend, text: str) -> None:
        backend = make_backend()
        client = SummarizationClient(backend, base_delay=0)

        with pytest.raises(ValidationError):
            await client.summarize(text)
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_empty_reply_uses_placeholder(self, make_backend) -> None:
        client = SummarizationClient(make_backend([""]), base_delay=0)
        result = await client.summarize("ERROR: x")
        assert result.summary_text == EMPTY_SUMMARY

    def test_invalid_arguments(self, make_backend) -> None:
        with pytest.raises(ValueError):
            SummarizationClient(make_backend(), max_retries=0)
        with pytest.raises(ValueError):
            SummarizationClient(make_backend(), base_delay=-1)


class TestRetries:
    """Tests for bounded retry with linear backoff."""

    @pytest.mark.asyncio
    async def test_recovers_after_failures(self, make_backend) -> None:
        backend = make_backend([RuntimeError("503"), RuntimeError("503"), "Recovered"])
        client = SummarizationClient(backend, max_retries=3, base_delay=0)

        result = await client.summarize("ERROR: x")

        assert result.summary_text == "Recovered"
        assert len(backend.calls) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise(self, make_backend) -> None:
        errors = [RuntimeError("first"), RuntimeError("second"), RuntimeError("third")]
        backend = make_backend(errors)
        client = SummarizationClient(backend, max_retries=3, base_delay=0)

        with pytest.raises(SummarizationError) as exc_info:
            await client.summarize("ERROR: x")

        assert exc_info.value.attempts == 3
        assert exc_info.value.last_error is errors[2]
        assert exc_info.value.__cause__ is errors[2]
        assert "after 3 attempts" in str(exc_info.value)
        assert len(backend.calls) == 3

    @pytest.mark.asyncio
    async def test_linear_backoff(self, make_backend) -> None:
        """Test delays of base_delay * attempt between attempts, none after the last."""
        backend = make_backend([RuntimeError("a"), RuntimeError("b"), RuntimeError("c")])
        client = SummarizationClient(backend, max_retries=3, base_delay=2.0)

        with patch(
            "log_notify.summarization.client.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(SummarizationError):
                await client.summarize("ERROR: x")

        assert mock_sleep.await_args_list == [call(2.0), call(4.0)]

    @pytest.mark.asyncio
    async def test_attempt_timeout(self) -> None:
        class HangingBackend:
            model = "hanging"
            calls = 0

            async def complete(self, log_content: str) -> Completion:
                HangingBackend.calls += 1
                await asyncio.sleep(10)
                return Completion(text="too late", model=self.model)

        client = SummarizationClient(
            HangingBackend(), max_retries=2, base_delay=0, attempt_timeout=0.01
        )

        with pytest.raises(SummarizationError) as exc_info:
            await client.summarize("ERROR: x")

        assert isinstance(exc_info.value.last_error, TimeoutError)
        assert HangingBackend.calls == 2

    @pytest.mark.asyncio
    async def test_single_attempt(self, make_backend) -> None:
        backend = make_backend([RuntimeError("down")])
        client = SummarizationClient(backend, max_retries=1, base_delay=5.0)

        with patch(
            "log_notify.summarization.client.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(SummarizationError):
                await client.summarize("ERROR: x")

        mock_sleep.assert_not_awaited()
