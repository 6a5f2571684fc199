"""
APMCore Integrations

Adapters that create spans from third-party library activity.
"""

from apmcore.integrations.http import (
    AsyncTracingTransport,
    HttpIntegration,
    SpanDecisionCache,
    TracingTransport,
    clean_description,
    extract_url,
    strip_url_query_and_fragment,
)

__all__ = [
    "AsyncTracingTransport",
    "HttpIntegration",
    "SpanDecisionCache",
    "TracingTransport",
    "clean_description",
    "extract_url",
    "strip_url_query_and_fragment",
]
