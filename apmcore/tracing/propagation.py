"""
APMCore Trace Context Propagation

Formats and parses the propagation header that carries a trace across
process boundaries:

    <version>-<trace_id>-<span_id>-<flag>
    00-0af7651916cd43dd8448eb211c80319c-b7ad6b7169203331-1

`flag` is "1" when the trace is sampled and "0" otherwise.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, MutableMapping, Optional

import structlog

from apmcore.errors import MalformedTraceContext
from apmcore.tracing.ids import SPAN_ID_LENGTH, TRACE_ID_LENGTH

logger = structlog.get_logger(__name__)

TRACEPARENT_VERSION = "00"
TRACEPARENT_HEADER = "traceparent"

TRACEPARENT_REGEX = re.compile(
    r"^([0-9a-f]{2})-([0-9a-f]{32})-([0-9a-f]{16})-([01])$"
)


@dataclass(frozen=True)
class TraceparentContext:
    """Parsed propagation header."""
    trace_id: str
    span_id: str
    sampled: bool
    version: str = TRACEPARENT_VERSION

    def to_traceparent(self) -> str:
        return format_traceparent(self.trace_id, self.span_id, self.sampled)

    def to_transaction_options(self) -> Dict[str, Any]:
        """Options that continue this trace in a new transaction."""
        return {
            "trace_id": self.trace_id,
            "parent_span_id": self.span_id,
            "sampled": self.sampled,
        }


def format_traceparent(trace_id: str, span_id: str, sampled: Optional[bool]) -> str:
    """Format a propagation header. Only `sampled is True` sets the flag."""
    flag = "1" if sampled is True else "0"
    return f"{TRACEPARENT_VERSION}-{trace_id}-{span_id}-{flag}"


def parse_traceparent(header: str) -> TraceparentContext:
    """
    Parse a propagation header.

    Raises:
        MalformedTraceContext: wrong segment count, wrong hex lengths,
            non-hex characters or an unknown flag.
    """
    if not isinstance(header, str):
        raise MalformedTraceContext(header, "header must be a string")

    value = header.strip()
    parts = value.split("-")
    if len(parts) != 4:
        raise MalformedTraceContext(header, f"expected 4 segments, got {len(parts)}")

    version, trace_id, span_id, flag = parts
    if len(trace_id) != TRACE_ID_LENGTH:
        raise MalformedTraceContext(header, f"trace id must be {TRACE_ID_LENGTH} hex chars")
    if len(span_id) != SPAN_ID_LENGTH:
        raise MalformedTraceContext(header, f"span id must be {SPAN_ID_LENGTH} hex chars")

    match = TRACEPARENT_REGEX.match(value)
    if not match:
        raise MalformedTraceContext(header, "invalid characters")

    return TraceparentContext(
        trace_id=trace_id,
        span_id=span_id,
        sampled=flag == "1",
        version=version,
    )


class TraceparentPropagator:
    """Injects and extracts the propagation header on a header carrier."""

    def __init__(self, header_name: str = TRACEPARENT_HEADER):
        self.header_name = header_name

    def inject(
        self,
        traceparent: str,
        carrier: MutableMapping[str, str],
    ) -> MutableMapping[str, str]:
        """Inject a formatted header into the carrier."""
        carrier[self.header_name] = traceparent
        return carrier

    def extract(self, carrier: Mapping[str, str]) -> Optional[TraceparentContext]:
        """
        Extract the trace context from the carrier.

        A missing or malformed header yields None: the caller starts a
        fresh trace.
        """
        header = self._get_header(carrier, self.header_name)
        if not header:
            return None

        try:
            return parse_traceparent(header)
        except MalformedTraceContext as e:
            logger.warning("Ignoring malformed traceparent", header=header, reason=e.reason)
            return None

    def _get_header(self, carrier: Mapping[str, str], key: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        for k, v in carrier.items():
            if k.lower() == key.lower():
                return v
        return None
