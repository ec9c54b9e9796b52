"""Change detection loop for a single watched log file.

The loop moves through ``AwaitingFile -> Watching <-> Checking``. It waits
for the file to exist, initializes the offsets, then checks for appended
content on a fixed interval or when triggered manually. At most one check
is in flight at a time; a trigger arriving during a check is coalesced.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from pathlib import Path

from ..errors import TransientIOError
from ..events import Event, EventBus
from .models import ChangeEvent, WatchState, WatchTarget
from .offset_tracker import OffsetTracker

logger = logging.getLogger(__name__)

ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]

DEFAULT_INTERVAL_SECONDS = 30
DEFAULT_FILE_WAIT_SECONDS = 5.0


class LogWatcher:
    """Watches one log file for appended content.

    The watcher is the single writer of its WatchTarget. Every poll and
    every offset change happens while holding ``_lock``, and the change
    handler is awaited inside the same critical section, so two check
    cycles can never read the same byte range concurrently.

    Attributes:
        target: Watched file and its offset pair.
        interval: Seconds between scheduled checks.
        file_wait_seconds: Seconds between existence checks while awaiting the file.
        change_handler: Coroutine awaited with each ChangeEvent. When unset,
            events are committed as soon as they are published.
        coalesced_triggers: Triggers dropped because a check was in flight.
    """

    def __init__(
        self,
        log_file_path: str | Path,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        *,
        tracker: OffsetTracker | None = None,
        event_bus: EventBus | None = None,
        file_wait_seconds: float = DEFAULT_FILE_WAIT_SECONDS,
        replay_existing: bool = False,
        retry_pending: bool = False,
        change_handler: ChangeHandler | None = None,
    ):
        """Initialize the watcher.

        Args:
            log_file_path: File to watch. Resolved to an absolute path.
            interval: Seconds between scheduled checks (default: 30).
            tracker: Offset tracker, a default one is created if omitted.
            event_bus: Bus receiving watcher notifications.
            file_wait_seconds: Backoff while the file does not exist (default: 5).
            replay_existing: Process content present when the file is found
                instead of starting at end-of-file.
            retry_pending: Re-issue a reported but unconsumed range on every
                check, even when the file has not grown.
            change_handler: Coroutine receiving each ChangeEvent.
        """
        if interval <= 0:
            raise ValueError(f"Interval must be positive, got {interval}")

        self.target = WatchTarget(path=Path(log_file_path).resolve())
        self.interval = interval
        self.tracker = tracker or OffsetTracker()
        self.event_bus = event_bus or EventBus()
        self.file_wait_seconds = file_wait_seconds
        self.replay_existing = replay_existing
        self.retry_pending = retry_pending
        self.change_handler = change_handler
        self.coalesced_triggers = 0
        self.state = WatchState.IDLE

        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def path(self) -> Path:
        return self.target.path

    # ============================================================================
    # Lifecycle Methods
    # ============================================================================

    async def start(self) -> None:
        """Start the background watch task. Starting twice is a no-op."""
        if self._running:
            logger.warning("Watcher is already running")
            return

        self._running = True
        self._stop_event.clear()
        logger.info(f"Watching log file: {self.path}")
        logger.info(f"Check interval: {self.interval} seconds")
        self._task = asyncio.create_task(self._run(), name=f"log-watcher:{self.path.name}")

    async def stop(self, timeout: float | None = None) -> None:
        """Stop scheduling checks and wait for the loop to exit.

        An in-flight check is allowed to finish, it is never cancelled.

        Args:
            timeout: Maximum seconds to wait for the loop to exit.
        """
        if not self._running:
            return

        logger.info("Stopping watcher...")
        self._running = False
        self._stop_event.set()

        if self._task:
            done, _ = await asyncio.wait({self._task}, timeout=timeout)
            if not done:
                logger.warning("Watcher loop did not stop within timeout")

    def is_running(self) -> bool:
        """Check if the watch loop is currently running."""
        return self._running and self._task is not None and not self._task.done()

    # ============================================================================
    # Core Loop
    # ============================================================================

    async def _run(self) -> None:
        logger.debug("Watch loop started")
        try:
            while self._running:
                if self.state is not WatchState.WATCHING:
                    if not await self._await_file():
                        break
                    continue

                if await self._sleep(self.interval):
                    break

                try:
                    await self.check()
                except Exception as e:
                    logger.critical(f"Unexpected error in watch loop: {e}")
        finally:
            self.state = WatchState.STOPPED
            logger.info(f"Stopped watching log file: {self.path}")
            self._publish("watcher.stopped", path=str(self.path))

    async def _sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` or until stop is requested.

        Returns:
            True if stop was requested.
        """
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
            return True
        except TimeoutError:
            return False

    async def _await_file(self) -> bool:
        """Block until the watched file exists, then initialize offsets.

        Returns:
            False if stop was requested while waiting.
        """
        while not self.path.exists():
            self.state = WatchState.AWAITING_FILE
            logger.info(f"Waiting for log file to be created: {self.path}")
            if await self._sleep(self.file_wait_seconds):
                return False

        async with self._lock:
            try:
                self.tracker.initialize(self.target, replay_existing=self.replay_existing)
            except TransientIOError as e:
                logger.warning(f"Error initializing position: {e}")
                self.state = WatchState.AWAITING_FILE
                return not await self._sleep(self.file_wait_seconds)
            self.state = WatchState.WATCHING

        logger.info(f"Log file found: {self.path}")
        self._publish("watcher.ready", path=str(self.path), offset=self.target.last_offset)
        return True

    async def check(self) -> ChangeEvent | None:
        """Run one check cycle unless one is already in flight.

        Returns:
            The ChangeEvent handed off this cycle, or None.
        """
        if self._lock.locked():
            self.coalesced_triggers += 1
            logger.info("Check already in progress, trigger coalesced")
            return None

        async with self._lock:
            if self.state is not WatchState.WATCHING:
                logger.debug(f"Skipping check while {self.state.value}")
                return None

            self.state = WatchState.CHECKING
            try:
                return await self._check_locked()
            finally:
                if self.state is WatchState.CHECKING:
                    self.state = WatchState.WATCHING

    async def _check_locked(self) -> ChangeEvent | None:
        previous_size = self.target.last_size
        rotations = self.tracker.rotations

        try:
            event = self.tracker.poll(self.target, retry_pending=self.retry_pending)
        except TransientIOError as e:
            logger.warning(f"Log file no longer available, waiting for it to be recreated: {e}")
            self.state = WatchState.AWAITING_FILE
            self._publish("watcher.error", error=e)
            return None

        if self.tracker.rotations != rotations:
            self._publish("watcher.rotated", previous_size=previous_size, current_size=0)

        if event is None:
            return None

        self._publish("watcher.update", change=event)

        if self.change_handler is None:
            self.tracker.commit(self.target, event)
            return event

        try:
            await self.change_handler(event)
        except Exception as e:
            logger.error(f"Error handling log update: {e}")
        return event

    async def process_now(self) -> ChangeEvent | None:
        """Manually trigger a check with the same single-flight discipline."""
        logger.info("Manually triggering check...")
        return await self.check()

    # ============================================================================
    # Offset Control
    # ============================================================================

    def mark_consumed(self, event: ChangeEvent) -> None:
        """Advance the consumed offset past ``event``.

        Only valid from inside the change handler, which runs under the lock.
        """
        self.tracker.commit(self.target, event)

    def reset_offsets(self) -> None:
        """Reset both offsets to zero. Same locking rule as ``mark_consumed``."""
        self.tracker.reset(self.target)

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator[WatchTarget]:
        """Hold the single-flight lock outside of a check cycle."""
        async with self._lock:
            yield self.target

    def _publish(self, event_type: str, **data) -> None:
        self.event_bus.publish(Event(event_type=event_type, source="watcher", data=data))
