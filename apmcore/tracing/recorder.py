"""
APMCore Span Recorder

Bounded, order-preserving registry of the spans of one trace. Owned by the
Transaction that created it and shared by reference with every descendant
span so each can register itself.
"""

from __future__ import annotations

import sys
import threading
from typing import TYPE_CHECKING, List, Optional

import structlog

if TYPE_CHECKING:
    from apmcore.tracing.span import Span

logger = structlog.get_logger(__name__)

UNBOUNDED = sys.maxsize


class SpanRecorder:
    """
    Records spans up to a fixed capacity.

    The first `maxlen` spans win: once full, `add` is a no-op and the span
    stays usable but is left out of the recorded set. The capacity check and
    the append run under one lock.
    """

    def __init__(self, maxlen: int = UNBOUNDED, owner: Optional["Span"] = None):
        self.maxlen = maxlen
        self.owner = owner
        self._spans: List["Span"] = []
        self._lock = threading.Lock()
        self._dropped = 0

    def add(self, span: "Span") -> bool:
        """Record a span. Returns False when the recorder is full."""
        with self._lock:
            if len(self._spans) < self.maxlen:
                self._spans.append(span)
                return True

            self._dropped += 1
            first_drop = self._dropped == 1

        if first_drop:
            logger.debug(
                "Span recorder full, dropping spans",
                maxlen=self.maxlen,
                trace_id=span.trace_id,
            )
        return False

    @property
    def spans(self) -> List["Span"]:
        """Snapshot of the recorded spans in insertion order."""
        with self._lock:
            return list(self._spans)

    @property
    def dropped_count(self) -> int:
        """Number of spans rejected because the recorder was full."""
        return self._dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._spans)
