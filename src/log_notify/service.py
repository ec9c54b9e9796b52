"""Service wiring for the two operating modes.

- WatchService: watches a user's log file. The file is read-only, consumed
  content is committed by advancing the offset.
- CaptureService: captures this process's own error output into a scratch
  file and watches that. Consumed content is cut from the file and the
  offsets restart at zero.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .capture import CaptureFile, ErrorInterceptor, InterceptChannels
from .config import NotifyConfig
from .events import EventBus
from .monitoring.models import ChangeEvent
from .monitoring.watcher import LogWatcher
from .pipeline import DeliveryPipeline
from .sinks import CopilotPromptSink, FanoutSink, Sink, SummaryArchiveSink
from .summarization.backends import create_backend
from .summarization.client import SummarizationClient

logger = logging.getLogger(__name__)


def build_client(config: NotifyConfig) -> SummarizationClient:
    """Create a retrying client for the configured provider."""
    backend = create_backend(config.provider, model=config.model, max_tokens=config.max_tokens)
    return SummarizationClient(
        backend,
        max_retries=config.max_retries,
        base_delay=config.retry_delay_seconds,
        attempt_timeout=config.request_timeout_seconds or None,
    )


def build_sink(config: NotifyConfig, include_copilot: bool = True) -> Sink | None:
    """Create the sink chain for ``config``, None if there is nothing to deliver to."""
    sinks: list[Sink] = []
    if include_copilot:
        sinks.append(CopilotPromptSink())
    if config.summary_dir:
        sinks.append(SummaryArchiveSink(config.summary_dir))

    if not sinks:
        return None
    if len(sinks) == 1:
        return sinks[0]
    return FanoutSink(sinks)


class _NullSink:
    async def deliver(self, summary_text: str, raw_text: str) -> None:
        return None


class WatchService:
    """Watch mode: summarize what gets appended to a log file."""

    def __init__(
        self,
        log_file: str | Path,
        client: SummarizationClient,
        sink: Sink | None = None,
        *,
        interval: float = 30,
        file_wait_seconds: float = 5.0,
        event_bus: EventBus | None = None,
    ):
        self.event_bus = event_bus or EventBus()
        self.watcher = LogWatcher(
            log_file,
            interval,
            event_bus=self.event_bus,
            file_wait_seconds=file_wait_seconds,
        )
        self.pipeline = DeliveryPipeline(
            client,
            sink or _NullSink(),
            source=self.watcher,
            event_bus=self.event_bus,
        )
        self.watcher.change_handler = self.pipeline.on_change_event

    @classmethod
    def from_config(
        cls,
        config: NotifyConfig,
        event_bus: EventBus | None = None,
        client: SummarizationClient | None = None,
    ) -> WatchService:
        return cls(
            config.log_file,
            client or build_client(config),
            build_sink(config, include_copilot=False),
            interval=config.interval,
            file_wait_seconds=config.file_wait_seconds,
            event_bus=event_bus,
        )

    async def start(self) -> None:
        await self.watcher.start()

    async def stop(self, timeout: float | None = None) -> None:
        await self.watcher.stop(timeout)

    async def process_now(self) -> ChangeEvent | None:
        return await self.watcher.process_now()


class CaptureSource:
    """Consumable source backed by an owned capture file."""

    def __init__(self, watcher: LogWatcher, capture_file: CaptureFile):
        self.watcher = watcher
        self.capture_file = capture_file

    def mark_consumed(self, event: ChangeEvent) -> None:
        # Runs inside the watcher's check cycle, so no read races with the cut
        remaining = self.capture_file.discard_through(event.range_end)
        self.watcher.reset_offsets()
        logger.info(f"Cleared processed errors from log ({remaining} bytes pending)")


class CaptureService:
    """Capture mode: intercept this process's errors, summarize, forward.

    Start order is interceptor, then watcher; stop order is the reverse.
    """

    def __init__(
        self,
        capture_path: str | Path,
        client: SummarizationClient,
        sink: Sink | None = None,
        *,
        interval: float = 30,
        channels: InterceptChannels | None = None,
        event_bus: EventBus | None = None,
    ):
        self.event_bus = event_bus or EventBus()
        self.capture_file = CaptureFile(capture_path)
        self.interceptor = ErrorInterceptor(self.capture_file, channels)
        self.watcher = LogWatcher(
            self.capture_file.path,
            interval,
            event_bus=self.event_bus,
            replay_existing=True,
            retry_pending=True,
        )
        self.source = CaptureSource(self.watcher, self.capture_file)
        self.pipeline = DeliveryPipeline(
            client,
            sink or _NullSink(),
            source=self.source,
            event_bus=self.event_bus,
        )
        self.watcher.change_handler = self.pipeline.on_change_event

    @classmethod
    def from_config(
        cls,
        config: NotifyConfig,
        event_bus: EventBus | None = None,
        client: SummarizationClient | None = None,
    ) -> CaptureService:
        return cls(
            config.capture_file,
            client or build_client(config),
            build_sink(config),
            interval=config.interval,
            event_bus=event_bus,
        )

    async def start(self) -> None:
        logger.info("Starting error capture system...")
        self.capture_file.ensure()
        self.interceptor.install()
        await self.watcher.start()
        logger.info(f"Will check for new errors every {self.watcher.interval} seconds")

    async def stop(self, timeout: float | None = None) -> None:
        await self.watcher.stop(timeout)
        self.interceptor.uninstall()
        logger.info("Error capture system stopped")

    async def process_now(self) -> ChangeEvent | None:
        return await self.watcher.process_now()

    async def clear_errors(self) -> None:
        """Empty the capture file, serialized against check cycles."""
        async with self.watcher.exclusive():
            self.capture_file.clear()
            self.watcher.reset_offsets()
