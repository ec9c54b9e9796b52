"""Shared fixtures for log notify tests."""

import asyncio
import io
import logging
import uuid
from pathlib import Path
from types import SimpleNamespace

import pytest

from log_notify.capture import InterceptChannels
from log_notify.events import EventBus
from log_notify.monitoring.models import ChangeEvent
from log_notify.summarization.backends import Completion
from log_notify.summarization.client import SummarizationClient


class FakeBackend:
    """Backend replaying a scripted list of replies.

    Each reply is either a string (returned as the summary) or an exception
    instance (raised). Once the script runs out every call returns "Summary".
    """

    def __init__(self, replies=None, model: str = "fake-model"):
        self.model = model
        self.replies = list(replies or [])
        self.calls: list[str] = []

    async def complete(self, log_content: str) -> Completion:
        self.calls.append(log_content)
        reply = self.replies.pop(0) if self.replies else "Summary"
        if isinstance(reply, BaseException):
            raise reply
        return Completion(text=reply, model=self.model)


class RecordingSink:
    """Sink remembering every delivery, optionally failing afterwards."""

    def __init__(self, fail: bool = False):
        self.deliveries: list[tuple[str, str]] = []
        self.fail = fail

    async def deliver(self, summary_text: str, raw_text: str) -> None:
        self.deliveries.append((summary_text, raw_text))
        if self.fail:
            raise RuntimeError("sink unavailable")


class StubSource:
    """Consumable source recording consumed events."""

    def __init__(self):
        self.consumed: list[ChangeEvent] = []

    def mark_consumed(self, event: ChangeEvent) -> None:
        self.consumed.append(event)


async def _wait_until(predicate, timeout: float = 2.0, step: float = 0.01) -> None:
    """Poll ``predicate`` until it is true or fail after ``timeout`` seconds."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(step)


@pytest.fixture
def wait_until():
    return _wait_until


@pytest.fixture
def make_backend():
    """Factory for scripted backends: ``make_backend(["ok", RuntimeError()])``."""
    return FakeBackend


@pytest.fixture
def make_sink():
    return RecordingSink


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    """Create temporary log file with initial content."""
    path = tmp_path / "app.log"
    path.write_text("Line 1\nLine 2\n")
    return path


@pytest.fixture
def empty_log_file(tmp_path: Path) -> Path:
    """Create empty log file."""
    path = tmp_path / "empty.log"
    path.write_text("")
    return path


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def client(fake_backend: FakeBackend) -> SummarizationClient:
    """Client without backoff delays."""
    return SummarizationClient(fake_backend, max_retries=3, base_delay=0)


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def stub_source() -> StubSource:
    return StubSource()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def published(event_bus: EventBus) -> list:
    """Collect every known event published on ``event_bus``."""
    from log_notify.events import WATCHER_EVENT_TYPES

    received = []
    for event_type in WATCHER_EVENT_TYPES:
        event_bus.subscribe(event_type, received.append)
    return received


@pytest.fixture
def sample_change_event() -> ChangeEvent:
    return ChangeEvent(
        raw_text="ERROR: disk full\nWARN: retrying\n",
        lines=("ERROR: disk full", "WARN: retrying"),
        range_start=0,
        range_end=32,
    )


@pytest.fixture
def fake_channels():
    """Intercept channels backed by stand-in objects instead of the real process."""
    original_stream = io.StringIO()
    hook_calls = []
    thread_hook_calls = []
    test_logger = logging.getLogger(f"capture-test.{uuid.uuid4().hex}")
    test_logger.propagate = False
    test_logger.setLevel(logging.DEBUG)

    stream_owner = SimpleNamespace(stderr=original_stream)
    hook_owner = SimpleNamespace(excepthook=lambda *args: hook_calls.append(args))
    thread_hook_owner = SimpleNamespace(excepthook=thread_hook_calls.append)

    channels = InterceptChannels(
        stream_owner=stream_owner,
        stream_name="stderr",
        logger=test_logger,
        hook_owner=hook_owner,
        thread_hook_owner=thread_hook_owner,
        loop=None,
    )
    channels.hook_calls = hook_calls
    channels.thread_hook_calls = thread_hook_calls
    channels.original_stream = original_stream
    return channels
