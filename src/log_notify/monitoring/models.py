"""Data models for incremental log watching.

This module defines the core data structures shared by the watcher, the
summarization client and the delivery pipeline: the watch target with its
offset pair, the immutable change event, the summary result and the
ephemeral retry state.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any


class WatchState(Enum):
    """Lifecycle state of a log watcher.

    Attributes:
        IDLE: Created but not started.
        AWAITING_FILE: Waiting for the watched file to exist.
        WATCHING: Idle between ticks.
        CHECKING: A check cycle is in flight.
        STOPPED: Stopped, no further checks occur.
    """

    IDLE = "idle"
    AWAITING_FILE = "awaiting_file"
    WATCHING = "watching"
    CHECKING = "checking"
    STOPPED = "stopped"


@dataclass
class WatchTarget:
    """A watched file and the offset pair tracking how much was consumed.

    Invariant: ``last_offset <= last_size``. ``last_offset`` only advances
    once content has been handed off; ``last_size`` is the size seen by the
    most recent poll.

    Attributes:
        path: Absolute path to the watched file.
        last_offset: Byte offset up to which content has been consumed.
        last_size: File size observed by the most recent poll.
    """

    path: Path
    last_offset: int = 0
    last_size: int = 0

    @property
    def pending_bytes(self) -> int:
        """Bytes seen by the last poll but not yet consumed."""
        return self.last_size - self.last_offset


@dataclass(frozen=True)
class ChangeEvent:
    """Content appended to a watched file between two checks.

    Attributes:
        raw_text: The decoded byte range, unmodified.
        lines: Non-empty, trimmed lines of ``raw_text`` in file order.
        range_start: First byte offset of the range (inclusive).
        range_end: Last byte offset of the range (exclusive).
        observed_at: When the range was read.
    """

    raw_text: str
    lines: tuple[str, ...]
    range_start: int
    range_end: int
    observed_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def byte_length(self) -> int:
        return self.range_end - self.range_start


@dataclass(frozen=True)
class SummaryResult:
    """Output of one successful summarization call.

    Attributes:
        summary_text: Model-generated prose.
        original_length: Length in characters of the summarized text.
        summary_length: Length in characters of ``summary_text``.
        model_identifier: Model that produced the summary.
        produced_at: When the summary was produced.
        duration_ms: Wall time of the successful attempt in milliseconds.
    """

    summary_text: str
    original_length: int
    summary_length: int
    model_identifier: str
    produced_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    duration_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "summary": self.summary_text,
            "original_length": self.original_length,
            "summary_length": self.summary_length,
            "model": self.model_identifier,
            "produced_at": self.produced_at.isoformat(),
            "duration_ms": self.duration_ms,
        }


@dataclass
class RetryState:
    """Attempt bookkeeping for a single summarization call.

    Attributes:
        max_attempts: Total attempts allowed.
        base_delay: Base delay in seconds, scaled by the attempt number.
        attempt: Attempts made so far.
    """

    max_attempts: int
    base_delay: float
    attempt: int = 0

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts

    def next_delay(self) -> float:
        """Linear backoff: ``base_delay * attempt``."""
        return self.base_delay * self.attempt
