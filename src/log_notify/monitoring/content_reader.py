"""Byte-range reading of a growing log file.

The reader extracts an exact byte span and decodes it as UTF-8, replacing
invalid sequences instead of failing, so a partially written multi-byte
character never aborts a check cycle.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import TransientIOError

logger = logging.getLogger(__name__)


def split_lines(text: str) -> list[str]:
    """Split text into trimmed, non-empty lines preserving order."""
    return [line.strip() for line in text.splitlines() if line.strip()]


class ContentReader:
    """Reads ``[start, end)`` byte ranges from a file as text.

    Attributes:
        encoding: Text encoding used for decoding (default: utf-8).
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding

    def read_range(self, path: str | Path, start: int, end: int) -> str:
        """Read the byte span ``[start, end)`` from ``path`` as text."""
        text, _ = self.read_span(path, start, end)
        return text

    def read_span(self, path: str | Path, start: int, end: int) -> tuple[str, int]:
        """Read the exact byte span ``[start, end)`` from ``path``.

        Args:
            path: File to read.
            start: First byte offset (inclusive).
            end: Last byte offset (exclusive).

        Returns:
            Decoded text and the number of bytes actually read, which is
            less than ``end - start`` if the file shrank. Invalid byte
            sequences are replaced.

        Raises:
            ValueError: If the range is inverted or negative.
            TransientIOError: If the file disappeared or could not be read.
        """
        if start < 0 or end < start:
            raise ValueError(f"Invalid byte range [{start}, {end})")
        if end == start:
            return "", 0

        log_path = Path(path)
        try:
            with log_path.open("rb") as f:
                f.seek(start)
                data = f.read(end - start)
        except FileNotFoundError as e:
            raise TransientIOError(f"Log file disappeared before read: {log_path}") from e
        except OSError as e:
            raise TransientIOError(f"Failed to read {log_path}: {e}") from e

        if len(data) < end - start:
            # File shrank between stat and read; return what is there
            logger.warning(
                f"Short read from {log_path}: expected {end - start} bytes, got {len(data)}"
            )

        return data.decode(self.encoding, errors="replace"), len(data)
