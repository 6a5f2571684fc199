"""
APMCore Span

A single timed operation within a trace: identity, timing, tags and data,
status, and parent linkage. Spans carry no internal locking; the only state
shared between spans of one trace is the Span Recorder.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import structlog

from apmcore.tracing.ids import generate_span_id, generate_trace_id
from apmcore.tracing.propagation import format_traceparent, parse_traceparent
from apmcore.tracing.recorder import SpanRecorder
from apmcore.tracing.serialization import span_to_wire, trace_context
from apmcore.tracing.status import SpanStatus
from apmcore.tracing.types import Data, JSONValue, Tags

logger = structlog.get_logger(__name__)

HTTP_STATUS_CODE_TAG = "http.status_code"

# Linkage fields a child always takes from its parent
_INHERITED = ("trace_id", "parent_span_id", "sampled")


@dataclass(eq=False)
class Span:
    """
    A unit of work in a trace.

    Unspecified `trace_id`/`span_id` are freshly generated. Identifiers are
    accepted as opaque strings; their format is the caller's concern.

    Example:
        >>> parent = Span(sampled=True)
        >>> child = parent.start_child(op="db", description="SELECT 1")
        >>> child.set_tag("db.system", "postgresql")
        >>> child.finish()
    """
    trace_id: str = field(default_factory=generate_trace_id)
    span_id: str = field(default_factory=generate_span_id)
    parent_span_id: Optional[str] = None
    sampled: Optional[bool] = None

    # Classification
    op: Optional[str] = None
    description: Optional[str] = None

    # Metadata
    tags: Tags = field(default_factory=dict)
    data: Data = field(default_factory=dict)
    status: Optional[SpanStatus] = None

    # Timing (seconds since epoch)
    start_timestamp: float = field(default_factory=time.time)
    end_timestamp: Optional[float] = None

    # Shared with every span of a sampled trace
    span_recorder: Optional[SpanRecorder] = field(default=None, repr=False)

    def __post_init__(self):
        if self.status is not None and not isinstance(self.status, SpanStatus):
            self.status = SpanStatus(self.status)

    @classmethod
    def from_traceparent(cls, traceparent: str, **options: Any) -> "Span":
        """
        Create a span continuing the trace described by a propagation header.

        Raises:
            MalformedTraceContext: if the header cannot be parsed.
        """
        context = parse_traceparent(traceparent)
        return cls(**{**options, **context.to_transaction_options()})

    @property
    def is_finished(self) -> bool:
        return self.end_timestamp is not None

    @property
    def duration(self) -> Optional[float]:
        """Duration in seconds, or None while the span is running."""
        if self.end_timestamp is None:
            return None
        return self.end_timestamp - self.start_timestamp

    def start_child(self, **options: Any) -> "Span":
        """
        Start a child span.

        The child shares this span's trace id and sampling decision and points
        back at it through `parent_span_id`. In a sampled trace the child is
        registered with the shared recorder, subject to its capacity.
        """
        linkage = {
            "trace_id": self.trace_id,
            "parent_span_id": self.span_id,
            "sampled": self.sampled,
        }
        options = {k: v for k, v in options.items() if k not in _INHERITED}
        options.pop("span_recorder", None)

        child = Span(**options, **linkage)

        if self.span_recorder is not None:
            child.span_recorder = self.span_recorder
            self.span_recorder.add(child)

        return child

    def set_tag(self, key: str, value: str) -> "Span":
        """Set a tag; the last write wins."""
        self.tags[key] = value
        return self

    def set_data(self, key: str, value: JSONValue) -> "Span":
        """Set a data entry; None is stored as a value."""
        self.data[key] = value
        return self

    def set_status(self, status: Union[SpanStatus, str]) -> "Span":
        """Set the span status."""
        self.status = SpanStatus(status)
        return self

    def set_http_status(self, http_status: int) -> "Span":
        """Set the status derived from an HTTP status code and tag the raw code."""
        self.set_tag(HTTP_STATUS_CODE_TAG, str(http_status))
        self.set_status(SpanStatus.from_http_code(http_status))
        return self

    def is_success(self) -> bool:
        """Whether the span status is OK. An unset status is not a success."""
        return self.status is SpanStatus.OK

    def finish(self, end_timestamp: Optional[float] = None) -> None:
        """
        Stamp the end time.

        The first call wins; later calls are no-ops. An explicit end time
        earlier than the start is clamped to the start.
        """
        if self.end_timestamp is not None:
            logger.debug("Span already finished", span_id=self.span_id, op=self.op)
            return

        end = end_timestamp if end_timestamp is not None else time.time()
        self.end_timestamp = max(end, self.start_timestamp)

    def to_traceparent(self) -> str:
        """Propagation header for this span."""
        return format_traceparent(self.trace_id, self.span_id, self.sampled)

    def get_trace_context(self) -> Dict[str, Any]:
        """Trace-context record with only the present-valued fields."""
        return trace_context(self)

    def to_json(self) -> Dict[str, Any]:
        """Wire record of this span with absent attributes omitted."""
        return span_to_wire(self)

    def __enter__(self) -> "Span":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_val is not None and self.status is None:
            self.set_status(SpanStatus.INTERNAL_ERROR)
        self.finish()
