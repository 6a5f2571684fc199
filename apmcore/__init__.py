"""
APMCore - tracing primitives for an application-performance-monitoring client

- Transactions and spans modelling a distributed-trace tree
- Bounded, thread-safe span recording per trace
- Propagation header codec for cross-process traces
- Wire serialization of finished traces for a capture sink
"""

__version__ = "0.1.0"

from apmcore.config import TracingConfig, get_config, set_config, reset_config
from apmcore.errors import ApmCoreError, MalformedTraceContext
from apmcore.hub import Hub, Scope
from apmcore.sinks import EventSink, InMemoryEventSink, LoggingEventSink
from apmcore.tracing import (
    Span,
    SpanRecorder,
    SpanStatus,
    Transaction,
    format_traceparent,
    parse_traceparent,
)

__all__ = [
    "__version__",
    "TracingConfig",
    "get_config",
    "set_config",
    "reset_config",
    "ApmCoreError",
    "MalformedTraceContext",
    "Hub",
    "Scope",
    "EventSink",
    "InMemoryEventSink",
    "LoggingEventSink",
    "Span",
    "SpanRecorder",
    "SpanStatus",
    "Transaction",
    "format_traceparent",
    "parse_traceparent",
]
