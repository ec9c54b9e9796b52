"""Downstream sinks receiving summaries with their original log text.

A sink's ``deliver`` is best-effort. The pipeline catches and logs anything
a sink raises, so a failing sink never blocks consumption of the content.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol, TextIO

import aiofiles

from .errors import SinkDeliveryError

logger = logging.getLogger(__name__)

MAX_PROMPT_LOG_CHARS = 2000
RULE = "═" * 70


class Sink(Protocol):
    """Consumer of ``(summary_text, raw_text)`` pairs."""

    async def deliver(self, summary_text: str, raw_text: str) -> None: ...


def build_copilot_prompt(summary_text: str, raw_text: str) -> str:
    """Build a fix-request prompt for a chat assistant.

    The original logs are truncated to ``MAX_PROMPT_LOG_CHARS`` characters.
    """
    logs = raw_text[:MAX_PROMPT_LOG_CHARS]
    if len(raw_text) > MAX_PROMPT_LOG_CHARS:
        logs += "\n... (truncated)"

    return f"""# Fix These Terminal Errors

I captured errors from my terminal and used AI to summarize them. Please help me fix these issues.

## AI-Generated Summary
{summary_text}

## Original Error Logs
```
{logs}
```

## What I Need
1. **Root Cause Analysis**: What's causing these errors?
2. **Specific Fixes**: Which files need to be modified?
3. **Code Changes**: Show me the exact code changes needed
4. **Step-by-Step**: Guide me through fixing this

Please be specific and actionable. If you need to see more code, let me know which files."""


def in_editor_terminal() -> bool:
    """Check if running inside VS Code's integrated terminal."""
    return bool(os.environ.get("VSCODE_IPC_HOOK_CLI")) or os.environ.get("TERM_PROGRAM") == "vscode"


class CopilotPromptSink:
    """Prints a ready-to-paste fix request for GitHub Copilot Chat.

    There is no API for pushing text into the chat panel from a terminal,
    so the prompt is shown with copy/paste instructions.
    """

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream

    async def deliver(self, summary_text: str, raw_text: str) -> None:
        prompt = build_copilot_prompt(summary_text, raw_text)
        out = self.stream or sys.stdout

        if in_editor_terminal():
            open_hint = "Open Copilot Chat in this window (Ctrl+Alt+I or Cmd+Shift+I)"
        else:
            open_hint = "Open GitHub Copilot Chat in your editor (Ctrl+Alt+I or Cmd+Shift+I)"

        print("\n📋 GITHUB COPILOT PROMPT:", file=out)
        print(RULE, file=out)
        print(prompt, file=out)
        print(RULE, file=out)
        print("\n💡 TO USE WITH COPILOT:", file=out)
        print("1. Copy the prompt above", file=out)
        print(f"2. {open_hint}", file=out)
        print("3. Paste the prompt", file=out)
        print("4. Press Enter and let Copilot fix the issues!\n", file=out)
        out.flush()


class SummaryArchiveSink:
    """Persists each delivered summary as a JSON file.

    Files are written atomically (temp file, then rename) under
    ``storage_path`` and ``latest.json`` is kept pointing at the newest one.
    """

    def __init__(self, storage_path: str | Path):
        self.storage_path = Path(storage_path)

    async def deliver(self, summary_text: str, raw_text: str) -> None:
        timestamp = datetime.now(UTC)
        record = {
            "timestamp": timestamp.isoformat(),
            "summary": summary_text,
            "original_logs": raw_text,
            "original_length": len(raw_text),
        }

        try:
            self.storage_path.mkdir(parents=True, exist_ok=True)
            summary_file = self.storage_path / self._get_summary_filename(timestamp)
            await self._atomic_write(summary_file, record)
        except OSError as e:
            raise SinkDeliveryError(f"Failed to archive summary in {self.storage_path}: {e}") from e

        self._update_latest_symlink(summary_file)
        logger.debug(f"Archived summary: {summary_file}")

    async def _atomic_write(self, filepath: Path, data: dict) -> None:
        temp_path = filepath.with_suffix(".tmp")
        async with aiofiles.open(temp_path, "w") as f:
            await f.write(json.dumps(data, indent=2))
            await f.flush()
        temp_path.replace(filepath)

    def _get_summary_filename(self, timestamp: datetime) -> str:
        """Format: summary_YYYY-MM-DDTHH-MM-SS.ffffff.json"""
        return f"summary_{timestamp.strftime('%Y-%m-%dT%H-%M-%S.%f')}.json"

    def _update_latest_symlink(self, summary_file: Path) -> None:
        latest_link = self.storage_path / "latest.json"
        try:
            if latest_link.exists() or latest_link.is_symlink():
                latest_link.unlink()
            latest_link.symlink_to(summary_file.name)
        except OSError as e:
            logger.warning(f"Failed to update latest symlink: {e}")


class FanoutSink:
    """Delivers to several sinks in order; one failing sink does not stop the rest."""

    def __init__(self, sinks: list[Sink]):
        self.sinks = list(sinks)

    async def deliver(self, summary_text: str, raw_text: str) -> None:
        failures: list[str] = []
        for sink in self.sinks:
            try:
                await sink.deliver(summary_text, raw_text)
            except Exception as e:
                logger.warning(f"{type(sink).__name__} failed to deliver: {e}")
                failures.append(type(sink).__name__)

        if failures:
            raise SinkDeliveryError(f"Delivery failed for: {', '.join(failures)}")
