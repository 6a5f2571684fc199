"""
APMCore Span Serialization

Maps span state onto the external wire shape. Absent attributes are
omitted from the output entirely, never emitted as null placeholders.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List

if TYPE_CHECKING:
    from apmcore.tracing.span import Span
    from apmcore.tracing.transaction import Transaction


def drop_absent(record: Dict[str, Any]) -> Dict[str, Any]:
    """Return a copy of `record` without the keys whose value is None."""
    return {key: value for key, value in record.items() if value is not None}


def trace_context(span: "Span") -> Dict[str, Any]:
    """Trace-context sub-record of a span (the `contexts.trace` payload)."""
    return drop_absent({
        "description": span.description,
        "op": span.op,
        "parent_span_id": span.parent_span_id,
        "span_id": span.span_id,
        "status": span.status.value if span.status is not None else None,
        "trace_id": span.trace_id,
    })


def span_to_wire(span: "Span") -> Dict[str, Any]:
    """Full wire record of a span."""
    return drop_absent({
        "data": dict(span.data) if span.data else None,
        "description": span.description,
        "op": span.op,
        "parent_span_id": span.parent_span_id,
        "sampled": span.sampled,
        "span_id": span.span_id,
        "start_timestamp": span.start_timestamp,
        "status": span.status.value if span.status is not None else None,
        "tags": dict(span.tags) if span.tags else None,
        "timestamp": span.end_timestamp,
        "trace_id": span.trace_id,
    })


def transaction_event(transaction: "Transaction") -> Dict[str, Any]:
    """
    Build the finished-trace payload handed to the capture sink.

    The span list holds every recorded span except the transaction itself,
    finished or not, in recording order.
    """
    recorder = transaction.span_recorder
    recorded = recorder.spans if recorder is not None else []
    spans: List[Dict[str, Any]] = [
        span.to_json() for span in recorded if span is not transaction
    ]

    return drop_absent({
        "type": "transaction",
        "transaction": transaction.name,
        "contexts": {"trace": transaction.get_trace_context()},
        "spans": spans,
        "start_timestamp": transaction.start_timestamp,
        "timestamp": transaction.end_timestamp,
        "tags": dict(transaction.tags) if transaction.tags else None,
        "data": dict(transaction.data) if transaction.data else None,
    })
