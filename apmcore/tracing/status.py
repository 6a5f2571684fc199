"""
APMCore Span Status

Closed set of trace outcome statuses with their wire names, plus the
mapping from HTTP status codes onto that set.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict


class SpanStatus(str, Enum):
    """Outcome of a span, serialized as its lowercase wire name."""
    OK = "ok"                                    # The operation completed successfully
    CANCELLED = "cancelled"                      # Cancelled, typically by the caller
    UNKNOWN = "unknown"                          # Unknown, any non-standard error
    INVALID_ARGUMENT = "invalid_argument"        # Client specified an invalid argument (4xx)
    DEADLINE_EXCEEDED = "deadline_exceeded"      # Deadline expired before completion (504)
    NOT_FOUND = "not_found"                      # Entity not found (404)
    ALREADY_EXISTS = "already_exists"            # Entity already exists (409)
    PERMISSION_DENIED = "permission_denied"      # Caller lacks permission (403)
    RESOURCE_EXHAUSTED = "resource_exhausted"    # Resource exhausted, e.g. rate limited (429)
    FAILED_PRECONDITION = "failed_precondition"  # System not in required state (413)
    ABORTED = "aborted"                          # Aborted, typically a concurrency conflict
    OUT_OF_RANGE = "out_of_range"                # Operation past the valid range
    UNIMPLEMENTED = "unimplemented"              # Not implemented or supported (501)
    INTERNAL_ERROR = "internal_error"            # Internal error (5xx)
    UNAVAILABLE = "unavailable"                  # Service unavailable (503)
    DATA_LOSS = "data_loss"                      # Unrecoverable data loss or corruption
    UNAUTHENTICATED = "unauthenticated"          # No valid authentication (401)
    UNKNOWN_ERROR = "unknown_error"              # Status code outside the known ranges

    @classmethod
    def from_http_code(cls, http_status: int) -> "SpanStatus":
        """Map an HTTP status code onto a span status."""
        return map_http_status(http_status)


_CLIENT_ERRORS: Dict[int, SpanStatus] = {
    401: SpanStatus.UNAUTHENTICATED,
    403: SpanStatus.PERMISSION_DENIED,
    404: SpanStatus.NOT_FOUND,
    409: SpanStatus.ALREADY_EXISTS,
    413: SpanStatus.FAILED_PRECONDITION,
    429: SpanStatus.RESOURCE_EXHAUSTED,
    499: SpanStatus.CANCELLED,
}

_SERVER_ERRORS: Dict[int, SpanStatus] = {
    501: SpanStatus.UNIMPLEMENTED,
    503: SpanStatus.UNAVAILABLE,
    504: SpanStatus.DEADLINE_EXCEEDED,
}


def map_http_status(http_status: int) -> SpanStatus:
    """
    Map an HTTP status code onto a span status.

    Total over all integers:
    - 2xx is OK
    - 4xx maps through the known client errors, otherwise INVALID_ARGUMENT
    - 5xx maps through the known server errors, otherwise INTERNAL_ERROR
    - anything else (1xx, 3xx, out of range) is UNKNOWN_ERROR
    """
    if 200 <= http_status < 300:
        return SpanStatus.OK

    if 400 <= http_status < 500:
        return _CLIENT_ERRORS.get(http_status, SpanStatus.INVALID_ARGUMENT)

    if 500 <= http_status < 600:
        return _SERVER_ERRORS.get(http_status, SpanStatus.INTERNAL_ERROR)

    return SpanStatus.UNKNOWN_ERROR
