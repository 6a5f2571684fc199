"""
APMCore Errors

Exception types raised by the tracing core.
"""

from __future__ import annotations


class ApmCoreError(Exception):
    """Base class for all apmcore errors."""


class MalformedTraceContext(ApmCoreError, ValueError):
    """Raised when a propagation header cannot be parsed."""

    def __init__(self, header: object, reason: str):
        self.header = header
        self.reason = reason
        super().__init__(f"Malformed trace context {header!r}: {reason}")
