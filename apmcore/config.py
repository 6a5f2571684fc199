"""
APMCore Configuration

Settings for the environment that drives the tracing core: sampling rate,
span capacity, payload metadata, and logging. Loaded from environment
variables prefixed with APMCORE_ (e.g. APMCORE_TRACES_SAMPLE_RATE=0.25).
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class LogLevel(str, Enum):
    """Logging levels for apmcore."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TracingConfig(BaseSettings):
    """
    Tracing configuration.

    `traces_sample_rate` feeds the default sampler; `max_spans` is the
    capacity of each sampled transaction's span recorder.
    """

    traces_sample_rate: float = Field(default=0.0, ge=0.0, le=1.0)
    max_spans: int = Field(default=1000, ge=1, description="Span recorder capacity per transaction")

    # Copied into captured payloads when set
    service_name: Optional[str] = None
    environment: Optional[str] = None
    release: Optional[str] = None

    trace_propagation_header: str = "traceparent"

    # Logging
    log_level: LogLevel = LogLevel.INFO
    json_logs: bool = False

    model_config = {
        "env_prefix": "APMCORE_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
    }

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        if isinstance(v, str):
            return v.upper()
        return v

    @classmethod
    def from_file(cls, config_path: Path) -> "TracingConfig":
        """Load configuration from a JSON file."""
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            config_data = json.load(f)

        return cls(**config_data)


# Global configuration instance (lazy loaded)
_config: Optional[TracingConfig] = None


def get_config() -> TracingConfig:
    """Get the global tracing configuration instance."""
    global _config
    if _config is None:
        _config = TracingConfig()
    return _config


def set_config(config: TracingConfig) -> None:
    """Set the global tracing configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration to default."""
    global _config
    _config = None
