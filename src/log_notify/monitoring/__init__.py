"""Incremental change detection for a single growing log file.

Key Components:
    - models: Watch target, change events, summary results and retry state
    - content_reader: Exact byte-range reads decoded as text
    - offset_tracker: Growth and rotation detection with deferred offset commits
    - watcher: Single-flight change detection loop

Example:
    >>> from log_notify.monitoring import LogWatcher
    >>> watcher = LogWatcher("/var/log/app.log", interval=30)
    >>> await watcher.start()
    >>> event = await watcher.process_now()
"""

from __future__ import annotations

from .content_reader import ContentReader, split_lines
from .models import ChangeEvent, RetryState, SummaryResult, WatchState, WatchTarget
from .offset_tracker import OffsetTracker
from .watcher import LogWatcher

__all__ = [
    "ChangeEvent",
    "ContentReader",
    "LogWatcher",
    "OffsetTracker",
    "RetryState",
    "SummaryResult",
    "WatchState",
    "WatchTarget",
    "split_lines",
]
