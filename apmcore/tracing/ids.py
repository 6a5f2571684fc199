"""
APMCore Identifier Generation

Random trace identifiers (128-bit) and span identifiers (64-bit),
rendered as lowercase hex. Every bit is random so samplers can read any
part of a trace id as a uniform value.
"""

from __future__ import annotations

import secrets


TRACE_ID_LENGTH = 32
SPAN_ID_LENGTH = 16


def generate_trace_id() -> str:
    """Generate a trace ID (32 hex chars)."""
    return secrets.token_hex(TRACE_ID_LENGTH // 2)


def generate_span_id() -> str:
    """Generate a span ID (16 hex chars)."""
    return secrets.token_hex(SPAN_ID_LENGTH // 2)
