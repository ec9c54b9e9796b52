"""Console presentation of watcher and pipeline events."""

from __future__ import annotations

import sys
from typing import TextIO

from .events import Event, EventBus
from .monitoring.models import ChangeEvent, SummaryResult

RULE = "═" * 70
THIN_RULE = "─" * 70


def line_marker(line: str) -> str:
    lowered = line.lower()
    if "error" in lowered:
        return "🔴"
    if "warn" in lowered:
        return "🟡"
    return "⚪"


class AnalysisPrinter:
    """Prints new-content banners and AI analyses as they are published."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream
        self._subscriptions: list[str] = []

    def attach(self, event_bus: EventBus) -> None:
        self._subscriptions = [
            event_bus.subscribe("watcher.update", self._on_update),
            event_bus.subscribe("pipeline.summarized", self._on_summarized),
            event_bus.subscribe("pipeline.failed", self._on_failed),
        ]

    def detach(self, event_bus: EventBus) -> None:
        for sub_id in self._subscriptions:
            event_bus.unsubscribe(sub_id)
        self._subscriptions = []

    def _print(self, *args) -> None:
        print(*args, file=self.stream or sys.stdout)

    def _on_update(self, event: Event) -> None:
        change: ChangeEvent = event.data["change"]
        self._print(f"\n{RULE}")
        self._print(f"🆕 NEW ERRORS DETECTED - {len(change.lines)} line(s)")
        self._print(RULE)

    def _on_summarized(self, event: Event) -> None:
        self.print_analysis(event.data["change"], event.data["summary"])

    def _on_failed(self, event: Event) -> None:
        self._print(f"❌ Failed to process log update: {event.data['error']}\n")

    def print_analysis(self, change: ChangeEvent, summary: SummaryResult) -> None:
        self._print("\n🤖 AI ANALYSIS:")
        self._print(THIN_RULE)
        self._print(summary.summary_text)
        self._print(THIN_RULE)

        self._print("\n📄 ORIGINAL LOGS:")
        self._print(THIN_RULE)
        for line in change.lines:
            self._print(f"{line_marker(line)} {line}")
        self._print(THIN_RULE)

        self._print("\n📊 METADATA:")
        self._print(f"   ⏰ Time: {change.observed_at.astimezone():%Y-%m-%d %H:%M:%S}")
        self._print(f"   📏 Original: {summary.original_length} chars")
        self._print(f"   📝 Summary: {summary.summary_length} chars")
        self._print(f"   🤖 Model: {summary.model_identifier or 'N/A'}")
        self._print(f"{RULE}\n")
