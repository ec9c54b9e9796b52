"""Error taxonomy for the log notify pipeline."""

from __future__ import annotations


class LogNotifyError(Exception):
    """Base class for all log notify errors."""


class TransientIOError(LogNotifyError):
    """The watched file went missing or could not be read for this cycle."""


class ValidationError(LogNotifyError):
    """Input rejected locally before any remote call was made."""


class SummarizationError(LogNotifyError):
    """The summarization backend failed on every retry attempt.

    Attributes:
        attempts: Number of attempts made before giving up.
        last_error: The failure raised by the final attempt.
    """

    def __init__(self, message: str, attempts: int, last_error: BaseException | None = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class SinkDeliveryError(LogNotifyError):
    """A sink could not deliver a summary."""


class ConfigError(LogNotifyError, ValueError):
    """Configuration is missing or invalid."""
