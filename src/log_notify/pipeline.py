"""Delivery pipeline: summarize new content, deliver it, mark it consumed.

The pipeline runs as the watcher's change handler, inside the watcher's
single-flight section. For each ChangeEvent it:

    1. summarizes the raw text (with retries)
    2. forwards summary and raw text to the sink, best-effort
    3. marks the event consumed on its source
    4. publishes a completion event

If summarization fails the cycle is abandoned before step 3, so the
content stays unconsumed and is picked up again by the next cycle.
"""

from __future__ import annotations

import logging
from typing import Protocol

from .errors import SummarizationError, ValidationError
from .events import Event, EventBus
from .monitoring.models import ChangeEvent, SummaryResult
from .sinks import Sink
from .summarization.client import SummarizationClient

logger = logging.getLogger(__name__)


class ConsumableSource(Protocol):
    """Where a ChangeEvent came from and how to mark it consumed."""

    def mark_consumed(self, event: ChangeEvent) -> None: ...


class DeliveryPipeline:
    """Orchestrates summarize -> deliver -> mark consumed for each event.

    Attributes:
        client: Retrying summarization client.
        sink: Downstream consumer of summaries.
        source: Source that commits consumed content.
        event_bus: Bus receiving pipeline notifications.
        last_summary: Most recent SummaryResult, if any.
    """

    def __init__(
        self,
        client: SummarizationClient,
        sink: Sink,
        source: ConsumableSource,
        event_bus: EventBus | None = None,
    ):
        self.client = client
        self.sink = sink
        self.source = source
        self.event_bus = event_bus or EventBus()
        self.last_summary: SummaryResult | None = None
        self.processed_count = 0
        self.failed_count = 0

    async def on_change_event(self, event: ChangeEvent) -> None:
        """Process one ChangeEvent to completion. Never raises."""
        logger.info(f"Processing {len(event.lines)} new line(s) [{event.range_start}, {event.range_end})")

        try:
            summary = await self.client.summarize(event.raw_text)
        except ValidationError as e:
            logger.debug(f"Nothing to summarize: {e}")
            self.source.mark_consumed(event)
            return
        except SummarizationError as e:
            self.failed_count += 1
            logger.error(f"Failed to process log update: {e}")
            self._publish("pipeline.failed", change=event, error=e)
            return

        self.last_summary = summary
        self._publish("pipeline.summarized", change=event, summary=summary)

        await self._deliver(summary, event.raw_text)

        self.source.mark_consumed(event)
        self.processed_count += 1
        self._publish("pipeline.completed", change=event, summary=summary)

    async def _deliver(self, summary: SummaryResult, raw_text: str) -> bool:
        try:
            await self.sink.deliver(summary.summary_text, raw_text)
            return True
        except Exception as e:
            logger.error(f"Sink delivery failed ({type(e).__name__}): {e}")
            return False

    def _publish(self, event_type: str, **data) -> None:
        self.event_bus.publish(Event(event_type=event_type, source="pipeline", data=data))
