"""
APMCore Transaction

The root span of a trace. A sampled transaction owns the Span Recorder
shared by all of its descendants and, when finished, hands a serialized
snapshot of the trace to a capture sink.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

import structlog

from apmcore.tracing.recorder import UNBOUNDED, SpanRecorder
from apmcore.tracing.serialization import transaction_event
from apmcore.tracing.span import Span

logger = structlog.get_logger(__name__)

UNLABELED_TRANSACTION = "<unlabeled transaction>"


class CaptureSink(Protocol):
    """Receiver of finished-trace payloads."""

    def capture_event(self, event: Dict[str, Any]) -> Optional[str]:
        ...


@dataclass(eq=False)
class Transaction(Span):
    """
    A span that roots a trace.

    When `sampled` is True at construction a Span Recorder is created and
    the transaction records itself as its first entry. `max_spans` bounds the
    child spans kept for the report, so the recorder holds one extra slot
    for the transaction itself. Unsampled transactions never allocate a
    recorder and never reach the sink.

    Example:
        >>> tx = Transaction(name="GET /users", sampled=True, sink=sink)
        >>> with tx.start_child(op="db.query") as span:
        ...     span.set_data("rows", 12)
        >>> tx.finish()
    """
    name: str = ""
    max_spans: int = field(default=UNBOUNDED, repr=False)
    sink: Optional[CaptureSink] = field(default=None, repr=False)

    def __post_init__(self):
        super().__post_init__()

        self.span_recorder = None
        if self.sampled is True:
            self.span_recorder = SpanRecorder(self.max_spans + 1, owner=self)
            self.span_recorder.add(self)

    def set_name(self, name: str) -> "Transaction":
        self.name = name
        return self

    def finish(self, end_timestamp: Optional[float] = None) -> Optional[str]:
        """
        Stamp the end time and capture the trace.

        Returns the id the sink assigned to the captured payload, or None when
        nothing was captured (already finished, unsampled, or no sink).
        """
        if self.end_timestamp is not None:
            logger.debug("Transaction already finished", name=self.name, trace_id=self.trace_id)
            return None

        super().finish(end_timestamp)

        if not self.name:
            logger.warning("Transaction has no name, falling back to default", trace_id=self.trace_id)
            self.name = UNLABELED_TRANSACTION

        if self.span_recorder is None:
            logger.debug(
                "Discarding transaction because it was not sampled",
                name=self.name,
                trace_id=self.trace_id,
            )
            return None

        if self.sink is None:
            logger.warning("No capture sink for transaction", name=self.name, trace_id=self.trace_id)
            return None

        return self.sink.capture_event(self.to_event())

    def to_event(self) -> Dict[str, Any]:
        """Finished-trace payload for the capture sink."""
        return transaction_event(self)
