"""
APMCore Tracing Module

Transactions and spans forming a distributed-trace tree, a bounded span
recorder, the propagation header codec, and the wire serializer.
"""

from apmcore.tracing.ids import generate_span_id, generate_trace_id
from apmcore.tracing.status import SpanStatus, map_http_status
from apmcore.tracing.recorder import SpanRecorder
from apmcore.tracing.span import HTTP_STATUS_CODE_TAG, Span
from apmcore.tracing.transaction import CaptureSink, Transaction
from apmcore.tracing.propagation import (
    TRACEPARENT_REGEX,
    TraceparentContext,
    TraceparentPropagator,
    format_traceparent,
    parse_traceparent,
)
from apmcore.tracing.sampling import (
    Sampler,
    AlwaysOnSampler,
    AlwaysOffSampler,
    TraceIdRatioSampler,
    ParentBasedSampler,
    RateLimitingSampler,
    create_sampler,
)

__all__ = [
    "generate_span_id",
    "generate_trace_id",
    "SpanStatus",
    "map_http_status",
    "SpanRecorder",
    "HTTP_STATUS_CODE_TAG",
    "Span",
    "CaptureSink",
    "Transaction",
    "TRACEPARENT_REGEX",
    "TraceparentContext",
    "TraceparentPropagator",
    "format_traceparent",
    "parse_traceparent",
    "Sampler",
    "AlwaysOnSampler",
    "AlwaysOffSampler",
    "TraceIdRatioSampler",
    "ParentBasedSampler",
    "RateLimitingSampler",
    "create_sampler",
]
