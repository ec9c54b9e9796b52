"""Log notify: watch a log file or capture process errors, summarize new
content with an LLM, and forward the summary to a fix-suggestion sink."""

from .capture import CaptureFile, ErrorInterceptor, InterceptChannels
from .config import NotifyConfig, load_config
from .errors import (
    ConfigError,
    LogNotifyError,
    SinkDeliveryError,
    SummarizationError,
    TransientIOError,
    ValidationError,
)
from .events import Event, EventBus
from .monitoring import ChangeEvent, LogWatcher, OffsetTracker, SummaryResult, WatchTarget
from .pipeline import DeliveryPipeline
from .service import CaptureService, WatchService
from .summarization import SummarizationClient

__version__ = "0.1.0"

__all__ = [
    "CaptureFile",
    "CaptureService",
    "ChangeEvent",
    "ConfigError",
    "DeliveryPipeline",
    "ErrorInterceptor",
    "Event",
    "EventBus",
    "InterceptChannels",
    "LogNotifyError",
    "LogWatcher",
    "NotifyConfig",
    "OffsetTracker",
    "SinkDeliveryError",
    "SummarizationClient",
    "SummarizationError",
    "SummaryResult",
    "TransientIOError",
    "ValidationError",
    "WatchService",
    "WatchTarget",
    "load_config",
]
