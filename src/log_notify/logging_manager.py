"""Logging setup for log notify.

Provides a console handler, an optional rotating JSON-lines log file and an
optional audit trail of pipeline outcomes fed from the event bus.
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime
from pathlib import Path
from typing import TextIO

from .events import Event, EventBus

PACKAGE_LOGGER = "log_notify"

# LogRecord attributes that are not user-supplied extras
_RECORD_ATTRIBUTES = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "asctime",
        "taskName",
    ]
)


class JsonLineFormatter(logging.Formatter):
    """Formats each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_ATTRIBUTES:
                try:
                    json.dumps(value)  # Ensure serializable
                    log_obj[key] = value
                except (TypeError, ValueError):
                    log_obj[key] = str(value)

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj)


class LoggingManager:
    """Configures the ``log_notify`` logger hierarchy."""

    def __init__(
        self,
        log_dir: str | Path | None = None,
        log_level: str = "INFO",
        console_stream: TextIO | None = None,
    ):
        """Initialize logging manager.

        Args:
            log_dir: Directory for log files, None for console only
            log_level: Console log level
            console_stream: Stream for console output (default: stderr at setup time)
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.log_level = getattr(logging, log_level.upper())
        self.audit_logger: logging.Logger | None = None

        if self.log_dir:
            self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = self._setup_package_logger(console_stream or sys.stderr)

        if self.log_dir:
            self.audit_logger = self._setup_audit_logger()

    def _setup_package_logger(self, console_stream: TextIO) -> logging.Logger:
        """Setup main logger with console and file handlers."""
        logger = logging.getLogger(PACKAGE_LOGGER)
        logger.setLevel(logging.DEBUG if self.log_dir else self.log_level)
        logger.propagate = False  # Don't propagate to root - we have our own handlers
        logger.handlers.clear()

        console_handler = logging.StreamHandler(console_stream)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(console_handler)

        if self.log_dir:
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / "log-notify.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
            )
            file_handler.setLevel(logging.DEBUG)  # Capture everything to file
            file_handler.setFormatter(JsonLineFormatter())
            logger.addHandler(file_handler)

        return logger

    def _setup_audit_logger(self) -> logging.Logger:
        """Setup audit trail logger (JSON Lines format, daily rotation)."""
        audit_dir = self.log_dir / "audit"
        audit_dir.mkdir(exist_ok=True)

        logger = logging.getLogger(f"{PACKAGE_LOGGER}.audit")
        logger.setLevel(logging.INFO)
        logger.propagate = False
        logger.handlers.clear()

        file_handler = logging.handlers.TimedRotatingFileHandler(
            audit_dir / "audit.jsonl",
            when="midnight",
            interval=1,
            backupCount=30,  # Keep 30 days
        )
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(JsonLineFormatter())
        logger.addHandler(file_handler)
        return logger

    def attach_audit(self, event_bus: EventBus) -> list[str]:
        """Record pipeline outcomes from ``event_bus`` in the audit trail.

        Returns:
            Subscription IDs, empty when no log directory is configured.
        """
        if self.audit_logger is None:
            return []
        return [
            event_bus.subscribe("pipeline.completed", self._audit_event),
            event_bus.subscribe("pipeline.failed", self._audit_event),
            event_bus.subscribe("watcher.rotated", self._audit_event),
        ]

    def _audit_event(self, event: Event) -> None:
        extra = {"event_type": event.event_type, "source": event.source}
        change = event.data.get("change")
        if change is not None:
            extra["range_start"] = change.range_start
            extra["range_end"] = change.range_end
            extra["line_count"] = len(change.lines)
        summary = event.data.get("summary")
        if summary is not None:
            extra["model"] = summary.model_identifier
            extra["summary_length"] = summary.summary_length
        if "error" in event.data:
            extra["error"] = str(event.data["error"])
        for key in ("previous_size", "current_size"):
            if key in event.data:
                extra[key] = event.data[key]

        self.audit_logger.info(event.event_type, extra=extra)

    def shutdown(self) -> None:
        """Close and detach all handlers."""
        for name in (PACKAGE_LOGGER, f"{PACKAGE_LOGGER}.audit"):
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
