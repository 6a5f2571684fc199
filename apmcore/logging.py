"""
APMCore Logging

structlog configuration with trace correlation. Log events emitted while a
span is active on the given Hub carry its `trace_id` and `span_id`.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Callable, Dict, Optional, TYPE_CHECKING

import structlog

from apmcore.config import TracingConfig, get_config

if TYPE_CHECKING:
    from apmcore.hub import Hub

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def trace_context_processor(hub: "Hub") -> Processor:
    """Build a structlog processor adding the hub's current span ids."""

    def add_trace_context(
        logger: Any,
        method_name: str,
        event_dict: Dict[str, Any],
    ) -> Dict[str, Any]:
        span = hub.scope.span
        if span is not None:
            event_dict.setdefault("trace_id", span.trace_id)
            event_dict.setdefault("span_id", span.span_id)
        return event_dict

    return add_trace_context


def configure_logging(
    config: Optional[TracingConfig] = None,
    hub: Optional["Hub"] = None,
) -> None:
    """Configure stdlib logging and structlog for apmcore."""
    config = config or get_config()
    level = getattr(logging, config.log_level.value)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if hub is not None:
        processors.append(trace_context_processor(hub))

    if config.json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
