"""Offset tracking with growth and rotation detection.

This module owns the bookkeeping of a WatchTarget. Each poll compares the
current file size against the size seen by the previous poll:

    - growth: the range ``[last_offset, size)`` is read and reported
    - shrink: the file was rotated or truncated, both offsets reset to 0
      and nothing is read this cycle
    - unchanged: nothing happens, unless the caller asks to retry a range
      that was reported but never committed

``last_offset`` is never advanced by a poll. It moves only through
``commit()`` once the reported content has been handed off, so content
that fails downstream is re-read as part of the next, larger range.

Note:
    Bytes written to the old file after the last successful read and
    before a truncation are lost. Reading from 0 only on the cycle after
    the truncation avoids mixing old and new file bodies.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from ..errors import TransientIOError
from .content_reader import ContentReader, split_lines
from .models import ChangeEvent, WatchTarget

logger = logging.getLogger(__name__)


class OffsetTracker:
    """Detects new content in a WatchTarget and keeps its offsets consistent.

    Attributes:
        reader: Reader used to extract byte ranges.
        rotations: Number of rotations detected since creation.
    """

    def __init__(self, reader: ContentReader | None = None):
        self.reader = reader or ContentReader()
        self.rotations = 0

    def _current_size(self, target: WatchTarget) -> int:
        try:
            return target.path.stat().st_size
        except FileNotFoundError as e:
            raise TransientIOError(f"Log file does not exist: {target.path}") from e
        except OSError as e:
            raise TransientIOError(f"Failed to stat log file {target.path}: {e}") from e

    def initialize(self, target: WatchTarget, replay_existing: bool = False) -> None:
        """Set the target's offsets for a freshly found file.

        Args:
            target: Target to initialize.
            replay_existing: Start from byte 0 instead of end-of-file.

        Raises:
            TransientIOError: If the file cannot be stat'ed.
        """
        size = self._current_size(target)
        if replay_existing:
            target.last_offset = 0
            target.last_size = 0
        else:
            target.last_offset = size
            target.last_size = size
        logger.info(f"Starting {target.path} from position: {target.last_offset} bytes")

    def poll(self, target: WatchTarget, retry_pending: bool = False) -> ChangeEvent | None:
        """Check the target for appended content.

        Args:
            target: Target to poll.
            retry_pending: Re-report an unconsumed range even when the file
                has not grown since the last poll.

        Returns:
            ChangeEvent for ``[last_offset, size)`` if the file grew (or, with
            ``retry_pending``, a range is still unconsumed) and the region
            holds at least one non-blank line, else None. ``range_end`` is
            where the read actually stopped.

        Raises:
            TransientIOError: If the file vanished or could not be read.
        """
        size = self._current_size(target)

        if size < target.last_size:
            logger.info(
                f"Log file {target.path} appears to have been rotated "
                f"(size {target.last_size} -> {size}), resetting position"
            )
            target.last_offset = 0
            target.last_size = 0
            self.rotations += 1
            return None

        if size == target.last_size and not (retry_pending and target.pending_bytes > 0):
            return None

        start = target.last_offset
        text, read = self.reader.read_span(target.path, start, size)
        end = start + read
        target.last_size = end

        lines = split_lines(text)
        if not lines:
            # Blank region, nothing to hand off
            target.last_offset = end
            logger.debug(f"Skipped {read} blank bytes in {target.path}")
            return None

        logger.info(f"New content detected in {target.path}: {len(lines)} new line(s)")
        return ChangeEvent(
            raw_text=text,
            lines=tuple(lines),
            range_start=start,
            range_end=end,
            observed_at=datetime.now(UTC),
        )

    def commit(self, target: WatchTarget, event: ChangeEvent) -> bool:
        """Mark an event's range as consumed.

        The commit is skipped when the target no longer matches the event,
        e.g. after a rotation reset the offsets during the hand-off.

        Args:
            target: Target the event was read from.
            event: Event whose content was handed off.

        Returns:
            True if ``last_offset`` advanced.
        """
        if event.range_start != target.last_offset or event.range_end > target.last_size:
            logger.warning(
                f"Offsets for {target.path} changed during hand-off "
                f"(event [{event.range_start}, {event.range_end}), "
                f"target offset {target.last_offset}, size {target.last_size}), skipping commit"
            )
            return False
        target.last_offset = event.range_end
        logger.debug(f"Committed {target.path} to offset {target.last_offset}")
        return True

    def reset(self, target: WatchTarget) -> None:
        """Reset both offsets to zero."""
        target.last_offset = 0
        target.last_size = 0
        logger.debug(f"Reset position for {target.path}")
