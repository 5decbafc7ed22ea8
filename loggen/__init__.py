"""
Log Rate Generator
==================

Emits synthetic log lines at a fixed target rate until interrupted, for
load-testing log collectors, shippers and indexers.
"""

from .config import ConfigManager, RunConfig, parse_rate
from .exceptions import ConfigError, LogGeneratorError, SinkError
from .pacer import Pacer, RunState, RunSummary
from .records import LOG_LINES, LogRecord, TemplateSelector
from .sinks import ElasticsearchSink, LineSink, LoggerSink, ProgressReporter, build_sink
from .timing import CancelSource, IntervalTicker, SignalCancelSource, schedule_cancel

__version__ = "1.0.0"

__all__ = [
    "ConfigManager",
    "RunConfig",
    "parse_rate",
    "ConfigError",
    "LogGeneratorError",
    "SinkError",
    "Pacer",
    "RunState",
    "RunSummary",
    "LOG_LINES",
    "LogRecord",
    "TemplateSelector",
    "LineSink",
    "LoggerSink",
    "ElasticsearchSink",
    "ProgressReporter",
    "build_sink",
    "CancelSource",
    "IntervalTicker",
    "SignalCancelSource",
    "schedule_cancel",
]
