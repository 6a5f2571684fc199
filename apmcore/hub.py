"""
APMCore Hub

The environment layer around the tracing core. A Hub owns the capture sink,
the sampling policy and a Scope holding the current span. Request handling
code threads a Hub (or its Scope) through explicitly; nothing here is
looked up from ambient global state.

Usage:
    hub = Hub(InMemoryEventSink(), TracingConfig(traces_sample_rate=1.0))
    tx = hub.continue_from_headers("GET /users", request.headers)
    hub.scope.set_span(tx)

    with tx.start_child(op="db.query") as span:
        ...

    tx.finish()
"""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, Mapping, Optional

import structlog

from apmcore.config import TracingConfig, get_config
from apmcore.errors import MalformedTraceContext
from apmcore.sinks import EventSink
from apmcore.tracing.ids import generate_trace_id
from apmcore.tracing.propagation import TraceparentPropagator, parse_traceparent
from apmcore.tracing.sampling import ParentBasedSampler, Sampler, TraceIdRatioSampler
from apmcore.tracing.span import Span
from apmcore.tracing.transaction import Transaction

logger = structlog.get_logger(__name__)


class Scope:
    """Holds the span currently active for one unit of work."""

    def __init__(self, span: Optional[Span] = None):
        self._span = span

    @property
    def span(self) -> Optional[Span]:
        return self._span

    def set_span(self, span: Optional[Span]) -> None:
        self._span = span

    def get_transaction(self) -> Optional[Transaction]:
        """
        The transaction the current span belongs to.

        Resolved through the span's recorder, so only sampled traces can
        resolve from a child span.
        """
        span = self._span
        if span is None:
            return None
        if isinstance(span, Transaction):
            return span

        recorder = span.span_recorder
        if recorder is not None and isinstance(recorder.owner, Transaction):
            return recorder.owner
        return None


class Hub:
    """
    Starts transactions and forwards finished ones to the capture sink.

    The sampling decision for a new trace is made here, never in the
    tracing core: an explicit `sampled` wins, then an inherited decision
    from an incoming traceparent, then the sampler.
    """

    def __init__(
        self,
        sink: EventSink,
        config: Optional[TracingConfig] = None,
        sampler: Optional[Sampler] = None,
        scope: Optional[Scope] = None,
    ):
        self.sink = sink
        self.config = config or get_config()
        self.sampler = sampler or ParentBasedSampler(
            root_sampler=TraceIdRatioSampler(self.config.traces_sample_rate)
        )
        self.propagator = TraceparentPropagator(self.config.trace_propagation_header)
        self._scope = scope or Scope()

        self._stats = {
            "transactions_started": 0,
            "transactions_sampled": 0,
            "events_captured": 0,
            "invalid_traceparents": 0,
        }

    @property
    def scope(self) -> Scope:
        return self._scope

    def configure_scope(self, callback: Callable[[Scope], None]) -> None:
        callback(self._scope)

    def get_transaction(self) -> Optional[Transaction]:
        return self._scope.get_transaction()

    def start_transaction(
        self,
        name: str,
        traceparent: Optional[str] = None,
        sampled: Optional[bool] = None,
        **options: Any,
    ) -> Transaction:
        """
        Start a transaction, continuing `traceparent` when it parses.

        A malformed traceparent is logged and ignored: a fresh trace starts.
        Captures always go through this Hub, so a `sink` option is ignored.
        """
        parent_sampled: Optional[bool] = None

        if traceparent:
            try:
                context = parse_traceparent(traceparent)
            except MalformedTraceContext as e:
                self._stats["invalid_traceparents"] += 1
                logger.warning(
                    "Invalid traceparent, starting a new trace",
                    traceparent=traceparent,
                    reason=e.reason,
                )
            else:
                options.update(context.to_transaction_options())
                parent_sampled = options.pop("sampled")

        trace_id = options.setdefault("trace_id", generate_trace_id())

        if sampled is None:
            sampled = self.sampler.should_sample(trace_id, name, parent_sampled)

        options.setdefault("max_spans", self.config.max_spans)
        options.pop("sink", None)
        transaction = Transaction(name=name, sampled=sampled, sink=self, **options)

        self._stats["transactions_started"] += 1
        if sampled:
            self._stats["transactions_sampled"] += 1

        return transaction

    def continue_from_headers(
        self,
        name: str,
        headers: Mapping[str, str],
        **options: Any,
    ) -> Transaction:
        """Start a transaction from incoming request headers."""
        context = self.propagator.extract(headers)
        traceparent = context.to_traceparent() if context else None
        return self.start_transaction(name, traceparent=traceparent, **options)

    def start_span(self, **options: Any) -> Span:
        """Start a child of the current span, or a detached span if there is none."""
        parent = self._scope.span
        if parent is not None:
            return parent.start_child(**options)
        return Span(**options)

    def traceparent_headers(self, span: Optional[Span] = None) -> Dict[str, str]:
        """Outgoing propagation headers for `span` (default: the current span)."""
        span = span or self._scope.span
        if span is None:
            return {}
        return dict(self.propagator.inject(span.to_traceparent(), {}))

    def capture_event(self, event: Dict[str, Any]) -> Optional[str]:
        """Stamp an event id and environment metadata, then forward to the sink."""
        event = dict(event)
        event.setdefault("event_id", uuid.uuid4().hex)

        for key, value in (
            ("environment", self.config.environment),
            ("release", self.config.release),
            ("server_name", self.config.service_name),
        ):
            if value:
                event.setdefault(key, value)

        result = self.sink.capture_event(event)
        self._stats["events_captured"] += 1
        return result or event["event_id"]

    def get_stats(self) -> Dict[str, Any]:
        return dict(self._stats)
