"""Retrying client around a summarization backend.

Each call validates its input locally, then makes up to ``max_retries``
attempts. A failed attempt is logged and, when attempts remain, followed by
a linear backoff of ``base_delay * attempt`` seconds. Each attempt is
bounded by ``attempt_timeout``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime

from ..errors import SummarizationError, ValidationError
from ..monitoring.models import RetryState, SummaryResult
from .backends import Summarizer

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BASE_DELAY_SECONDS = 1.0
ATTEMPT_TIMEOUT_SECONDS = 60.0
EMPTY_SUMMARY = "No summary available"


class SummarizationClient:
    """Summarizes text with bounded retry and linear backoff.

    Attributes:
        backend: Backend performing the remote call.
        max_retries: Total attempts per call (default: 3).
        base_delay: Backoff base in seconds (default: 1.0).
        attempt_timeout: Per-attempt timeout in seconds, None disables it.
    """

    def __init__(
        self,
        backend: Summarizer,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY_SECONDS,
        attempt_timeout: float | None = ATTEMPT_TIMEOUT_SECONDS,
    ):
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        if base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got {base_delay}")

        self.backend = backend
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.attempt_timeout = attempt_timeout

    async def summarize(self, text: str) -> SummaryResult:
        """Summarize ``text``.

        Args:
            text: Non-empty log content.

        Returns:
            SummaryResult for the first successful attempt.

        Raises:
            ValidationError: If ``text`` is empty or whitespace-only.
            SummarizationError: If every attempt failed.
        """
        if not text or not text.strip():
            raise ValidationError("Cannot summarize empty log content")

        logger.info(f"Sending {len(text)} characters for summarization...")

        state = RetryState(max_attempts=self.max_retries, base_delay=self.base_delay)
        last_error: Exception | None = None

        while not state.exhausted:
            state.attempt += 1
            try:
                start_time = time.monotonic()
                completion = await asyncio.wait_for(
                    self.backend.complete(text), timeout=self.attempt_timeout
                )
                duration_ms = int((time.monotonic() - start_time) * 1000)
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Attempt {state.attempt}/{state.max_attempts} failed: "
                    f"{type(e).__name__} - {e}"
                )
                if not state.exhausted:
                    delay = state.next_delay()
                    logger.info(f"Retrying in {delay:.1f}s...")
                    await asyncio.sleep(delay)
                continue

            summary_text = completion.text or EMPTY_SUMMARY
            logger.info(f"Successfully received summary ({duration_ms}ms)")
            return SummaryResult(
                summary_text=summary_text,
                original_length=len(text),
                summary_length=len(summary_text),
                model_identifier=completion.model or getattr(self.backend, "model", "unknown"),
                produced_at=datetime.now(UTC),
                duration_ms=duration_ms,
            )

        raise SummarizationError(
            f"Failed to get summary after {state.attempt} attempts: {last_error}",
            attempts=state.attempt,
            last_error=last_error,
        ) from last_error
