"""Capture of a process's own error output into a scratch log file.

ErrorInterceptor wraps the error channels it is given and appends every
captured event to a CaptureFile as one line::

    [2025-01-15T10:30:00.123Z] [STDERR] message

Channels:
    - writes to an error stream (``sys.stderr`` by default)
    - ERROR-level records on a logger (the root logger by default)
    - uncaught exceptions (``sys.excepthook``, ``threading.excepthook``)
    - unhandled exceptions in an asyncio event loop

Install and uninstall are idempotent, and uninstall puts back the exact
objects that were in place before install.
"""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import traceback
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, TextIO

logger = logging.getLogger(__name__)

PACKAGE_LOGGER = "log_notify"

ORIGIN_STDERR = "STDERR"
ORIGIN_LOGGING = "LOGGING.ERROR"
ORIGIN_UNCAUGHT = "UNCAUGHT EXCEPTION"
ORIGIN_THREAD = "UNCAUGHT THREAD EXCEPTION"
ORIGIN_ASYNC = "UNHANDLED ASYNC EXCEPTION"


def format_entry(origin: str, message: str, timestamp: datetime | None = None) -> str:
    """Format one capture line; multi-line messages are folded with `` | ``."""
    ts = (timestamp or datetime.now(UTC)).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    folded = " | ".join(part.rstrip() for part in message.splitlines() if part.strip())
    return f"[{ts}] [{origin}] {folded}\n"


class CaptureFile:
    """Append-only scratch file owned by a capture session.

    All mutations hold one lock so appends from several threads never
    interleave with a truncation.
    """

    def __init__(self, path: str | Path, encoding: str = "utf-8"):
        self.path = Path(path).resolve()
        self.encoding = encoding
        self._lock = threading.Lock()

    def ensure(self) -> None:
        """Create the file and its directory if absent."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)

    def append(self, entry: str) -> None:
        with self._lock:
            with self.path.open("a", encoding=self.encoding) as f:
                f.write(entry)

    def read(self) -> str:
        if not self.path.exists():
            return ""
        return self.path.read_text(encoding=self.encoding, errors="replace")

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except FileNotFoundError:
            return 0

    def clear(self) -> None:
        """Truncate the file to empty."""
        with self._lock:
            if self.path.exists():
                self.path.write_bytes(b"")
        logger.info("Error log cleared")

    def discard_through(self, offset: int) -> int:
        """Drop the first ``offset`` bytes, keeping anything appended after them.

        Returns:
            Number of bytes remaining in the file.
        """
        with self._lock:
            if not self.path.exists():
                return 0
            with self.path.open("r+b") as f:
                f.seek(offset)
                remainder = f.read()
                f.seek(0)
                f.write(remainder)
                f.truncate()
        logger.debug(f"Discarded {offset} consumed bytes, {len(remainder)} remain")
        return len(remainder)


@dataclass
class InterceptChannels:
    """The process channels an interceptor wraps.

    Attributes:
        stream_owner: Object holding the error stream attribute.
        stream_name: Attribute name of the error stream on ``stream_owner``.
        logger: Logger whose ERROR records are captured.
        hook_owner: Object exposing ``excepthook`` for uncaught exceptions.
        thread_hook_owner: Object exposing ``excepthook`` for thread exceptions.
        loop: Event loop whose unhandled exceptions are captured. If None,
            the running loop at install time is used when there is one.
    """

    stream_owner: Any = sys
    stream_name: str = "stderr"
    logger: logging.Logger = field(default_factory=logging.getLogger)
    hook_owner: Any = sys
    thread_hook_owner: Any = threading
    loop: asyncio.AbstractEventLoop | None = None


class _StreamTee:
    """Forwards writes to the wrapped stream and reports complete lines."""

    def __init__(self, original: TextIO, on_line: Callable[[str], None]):
        self._original = original
        self._on_line = on_line
        self._buffer = ""
        self._lock = threading.Lock()

    def write(self, s: str) -> int:
        result = self._original.write(s)
        with self._lock:
            self._buffer += s
            lines = self._buffer.split("\n")
            self._buffer = lines.pop()
        for line in lines:
            if line.strip():
                self._on_line(line)
        return result

    def flush(self) -> None:
        self._original.flush()

    def flush_pending(self) -> None:
        with self._lock:
            pending, self._buffer = self._buffer, ""
        if pending.strip():
            self._on_line(pending)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._original, name)


class _CaptureHandler(logging.Handler):
    """Routes ERROR records to the interceptor, skipping this package's own."""

    def __init__(self, interceptor: ErrorInterceptor):
        super().__init__(level=logging.ERROR)
        self._interceptor = interceptor

    def emit(self, record: logging.LogRecord) -> None:
        if record.name == PACKAGE_LOGGER or record.name.startswith(PACKAGE_LOGGER + "."):
            return
        try:
            message = self.format(record)
        except Exception:
            self.handleError(record)
            return
        self._interceptor.record(ORIGIN_LOGGING, message)


class ErrorInterceptor:
    """Redirects error channels into a CaptureFile.

    Example:
        >>> capture_file = CaptureFile("./captured-errors.log")
        >>> interceptor = ErrorInterceptor(capture_file)
        >>> interceptor.install()
        >>> print("boom", file=sys.stderr)  # also appended to the capture file
        >>> interceptor.uninstall()
    """

    def __init__(
        self,
        capture_file: CaptureFile,
        channels: InterceptChannels | None = None,
        *,
        capture_stderr: bool = True,
        capture_logging: bool = True,
        capture_uncaught: bool = True,
        capture_async: bool = True,
    ):
        self.capture_file = capture_file
        self.channels = channels or InterceptChannels()
        self.capture_stderr = capture_stderr
        self.capture_logging = capture_logging
        self.capture_uncaught = capture_uncaught
        self.capture_async = capture_async

        self._installed = False
        self._restore: list[Callable[[], None]] = []
        self._fallback_stream: TextIO | None = None
        self._reentry = threading.local()

    @property
    def installed(self) -> bool:
        return self._installed

    def install(self) -> None:
        """Wrap the configured channels. Installing twice is a no-op."""
        if self._installed:
            logger.debug("Error capture already installed")
            return

        self.capture_file.ensure()
        logger.info(f"Starting error capture to: {self.capture_file.path}")

        ch = self.channels
        self._fallback_stream = getattr(ch.stream_owner, ch.stream_name, None)

        if self.capture_stderr:
            self._wrap_stream(ch.stream_owner, ch.stream_name)
        if self.capture_logging:
            self._wrap_logger(ch.logger)
        if self.capture_uncaught:
            self._wrap_excepthooks(ch.hook_owner, ch.thread_hook_owner)
        if self.capture_async:
            self._wrap_loop(ch.loop)

        self._installed = True
        logger.info("Error capture started")

    def uninstall(self) -> None:
        """Restore every wrapped channel. Uninstalling twice is a no-op."""
        if not self._installed:
            return

        while self._restore:
            restore = self._restore.pop()
            restore()

        self._installed = False
        logger.info("Error capture stopped")

    def __enter__(self) -> ErrorInterceptor:
        self.install()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.uninstall()

    def record(self, origin: str, message: str) -> None:
        """Append one captured event to the capture file."""
        if getattr(self._reentry, "active", False):
            return
        self._reentry.active = True
        try:
            self.capture_file.append(format_entry(origin, message))
        except OSError as e:
            stream = self._fallback_stream or sys.__stderr__
            if stream is not None:
                stream.write(f"Failed to write to error log: {e}\n")
        finally:
            self._reentry.active = False

    @contextmanager
    def _forwarding(self) -> Iterator[None]:
        """Suppress capture while an original hook reports the same event."""
        previous = getattr(self._reentry, "active", False)
        self._reentry.active = True
        try:
            yield
        finally:
            self._reentry.active = previous

    # ============================================================================
    # Channel wrapping
    # ============================================================================

    def _wrap_stream(self, owner: Any, name: str) -> None:
        original = getattr(owner, name)
        tee = _StreamTee(original, lambda line: self.record(ORIGIN_STDERR, line))
        setattr(owner, name, tee)

        def restore() -> None:
            tee.flush_pending()
            if getattr(owner, name) is not tee:
                logger.warning(f"{name} was replaced while captured, restoring original anyway")
            setattr(owner, name, original)

        self._restore.append(restore)

    def _wrap_logger(self, target: logging.Logger) -> None:
        handler = _CaptureHandler(self)
        target.addHandler(handler)
        self._restore.append(lambda: target.removeHandler(handler))

    def _wrap_excepthooks(self, hook_owner: Any, thread_hook_owner: Any) -> None:
        original_hook = hook_owner.excepthook

        def excepthook(exc_type, exc, tb) -> None:
            self.record(ORIGIN_UNCAUGHT, "".join(traceback.format_exception(exc_type, exc, tb)))
            with self._forwarding():
                original_hook(exc_type, exc, tb)

        hook_owner.excepthook = excepthook
        self._restore.append(lambda: setattr(hook_owner, "excepthook", original_hook))

        if thread_hook_owner is None:
            return

        original_thread_hook = thread_hook_owner.excepthook

        def thread_excepthook(args) -> None:
            thread_name = args.thread.name if args.thread is not None else "unknown"
            details = "".join(
                traceback.format_exception(args.exc_type, args.exc_value, args.exc_traceback)
            )
            self.record(ORIGIN_THREAD, f"in thread {thread_name}: {details}")
            with self._forwarding():
                original_thread_hook(args)

        thread_hook_owner.excepthook = thread_excepthook
        self._restore.append(lambda: setattr(thread_hook_owner, "excepthook", original_thread_hook))

    def _wrap_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.debug("No running event loop, async exceptions will not be captured")
                return

        original_handler = loop.get_exception_handler()

        def exception_handler(event_loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
            message = context.get("message") or "Unhandled exception in event loop"
            exc = context.get("exception")
            if exc is not None:
                message = f"{message}: {''.join(traceback.format_exception(exc))}"
            self.record(ORIGIN_ASYNC, message)
            with self._forwarding():
                if original_handler is not None:
                    original_handler(event_loop, context)
                else:
                    event_loop.default_exception_handler(context)

        loop.set_exception_handler(exception_handler)
        self._restore.append(lambda: loop.set_exception_handler(original_handler))
