"""
APMCore Trace Sampling Strategies

Samplers produce the sampling decision the environment hands to a new
transaction. The tracing core never samples on its own; it only carries
the decision it was given.

- Always on/off
- Trace-id ratio (deterministic per trace)
- Parent-based (an inherited decision wins)
- Rate limiting
"""

from __future__ import annotations

import hashlib
import threading
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class Sampler(ABC):
    """Base class for trace samplers."""

    @abstractmethod
    def should_sample(
        self,
        trace_id: str,
        name: str,
        parent_sampled: Optional[bool] = None,
    ) -> bool:
        """
        Determine if a new trace should be sampled.

        Args:
            trace_id: Trace ID of the new transaction
            name: Transaction name
            parent_sampled: Decision inherited from an incoming trace context

        Returns:
            True if the transaction is sampled
        """
        pass

    @property
    def description(self) -> str:
        """Human-readable description of the sampler."""
        return self.__class__.__name__


class AlwaysOnSampler(Sampler):
    """Always sample all traces."""

    def should_sample(
        self,
        trace_id: str,
        name: str,
        parent_sampled: Optional[bool] = None,
    ) -> bool:
        return True


class AlwaysOffSampler(Sampler):
    """Never sample any traces."""

    def should_sample(
        self,
        trace_id: str,
        name: str,
        parent_sampled: Optional[bool] = None,
    ) -> bool:
        return False


class TraceIdRatioSampler(Sampler):
    """
    Sample traces based on trace ID ratio.

    Uses the low 64 bits of the trace ID so every process that sees the
    same trace makes the same decision.
    """

    def __init__(self, ratio: float = 1.0):
        if not 0.0 <= ratio <= 1.0:
            raise ValueError("Ratio must be between 0.0 and 1.0")
        self.ratio = ratio
        self._bound = int(ratio * (1 << 64))

    def should_sample(
        self,
        trace_id: str,
        name: str,
        parent_sampled: Optional[bool] = None,
    ) -> bool:
        if self.ratio >= 1.0:
            return True
        if self.ratio <= 0.0:
            return False

        try:
            trace_id_int = int(trace_id[-16:], 16)
        except ValueError:
            # Opaque, non-hex trace ids
            digest = hashlib.sha256(trace_id.encode()).hexdigest()
            trace_id_int = int(digest[-16:], 16)

        return trace_id_int < self._bound

    @property
    def description(self) -> str:
        return f"TraceIdRatioSampler(ratio={self.ratio})"


class ParentBasedSampler(Sampler):
    """
    Sample based on the inherited decision.

    A continued trace keeps its parent's decision. Root transactions
    delegate to `root_sampler`.
    """

    def __init__(self, root_sampler: Optional[Sampler] = None):
        self.root_sampler = root_sampler or AlwaysOnSampler()

    def should_sample(
        self,
        trace_id: str,
        name: str,
        parent_sampled: Optional[bool] = None,
    ) -> bool:
        if parent_sampled is not None:
            return parent_sampled
        return self.root_sampler.should_sample(trace_id, name)

    @property
    def description(self) -> str:
        return f"ParentBasedSampler(root={self.root_sampler.description})"


class RateLimitingSampler(Sampler):
    """
    Sample root traces up to a maximum rate.

    Token bucket refilled at `max_traces_per_second`.
    """

    def __init__(self, max_traces_per_second: float = 100.0):
        self.max_traces_per_second = max_traces_per_second
        self._tokens = max_traces_per_second
        self._last_update = time.monotonic()
        self._lock = threading.Lock()

    def should_sample(
        self,
        trace_id: str,
        name: str,
        parent_sampled: Optional[bool] = None,
    ) -> bool:
        if parent_sampled is not None:
            return parent_sampled

        with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._last_update = now

            self._tokens = min(
                self.max_traces_per_second,
                self._tokens + elapsed * self.max_traces_per_second
            )

            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return True

        return False

    @property
    def description(self) -> str:
        return f"RateLimitingSampler(max={self.max_traces_per_second}/s)"


def create_sampler(config: Dict[str, Any]) -> Sampler:
    """
    Create a sampler from configuration.

    Config examples:
        {"type": "always_on"}
        {"type": "always_off"}
        {"type": "ratio", "ratio": 0.1}
        {"type": "rate_limit", "max_per_second": 100}
        {"type": "parent_based", "root": {"type": "ratio", "ratio": 0.1}}
    """
    sampler_type = config.get("type", "always_on")

    if sampler_type == "always_on":
        return AlwaysOnSampler()

    elif sampler_type == "always_off":
        return AlwaysOffSampler()

    elif sampler_type == "ratio":
        return TraceIdRatioSampler(config.get("ratio", 1.0))

    elif sampler_type == "rate_limit":
        return RateLimitingSampler(config.get("max_per_second", 100.0))

    elif sampler_type == "parent_based":
        root_sampler = create_sampler(config.get("root", {"type": "always_on"}))
        return ParentBasedSampler(root_sampler=root_sampler)

    else:
        logger.warning("Unknown sampler type, using AlwaysOn", sampler_type=sampler_type)
        return AlwaysOnSampler()
