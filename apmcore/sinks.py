"""
APMCore Capture Sinks

Receivers for finished-trace payloads. The delivery pipeline (batching,
retry, transport) lives behind this interface and is not part of apmcore.
"""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)


class EventSink(ABC):
    """Base class for capture sinks."""

    @abstractmethod
    def capture_event(self, event: Dict[str, Any]) -> Optional[str]:
        """Accept a finished-trace payload. Returns an event id."""
        pass


class InMemoryEventSink(EventSink):
    """
    In-memory sink.

    Suitable for development and tests.
    """

    def __init__(self):
        self._events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def capture_event(self, event: Dict[str, Any]) -> Optional[str]:
        event_id = event.get("event_id") or uuid.uuid4().hex
        with self._lock:
            self._events.append(event)
        return event_id

    @property
    def events(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._events)

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class LoggingEventSink(EventSink):
    """Logs a one-line summary of each captured transaction."""

    def capture_event(self, event: Dict[str, Any]) -> Optional[str]:
        event_id = event.get("event_id") or uuid.uuid4().hex
        trace = event.get("contexts", {}).get("trace", {})

        logger.info(
            "Captured transaction",
            event_id=event_id,
            transaction=event.get("transaction"),
            trace_id=trace.get("trace_id"),
            span_count=len(event.get("spans", [])),
            duration_s=_duration(event),
        )
        return event_id


def _duration(event: Dict[str, Any]) -> Optional[float]:
    start = event.get("start_timestamp")
    end = event.get("timestamp")
    if start is None or end is None:
        return None
    return round(end - start, 6)
