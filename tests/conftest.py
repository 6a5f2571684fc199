"""
Shared fixtures for the apmcore test suite.
"""

import pytest

from apmcore.config import TracingConfig, reset_config
from apmcore.hub import Hub
from apmcore.sinks import InMemoryEventSink


@pytest.fixture(autouse=True)
def _reset_global_config():
    """Keep the global config isolated between tests."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config():
    """Config that samples every trace."""
    return TracingConfig(traces_sample_rate=1.0)


@pytest.fixture
def sink():
    return InMemoryEventSink()


@pytest.fixture
def hub(sink, config):
    """Hub capturing into an in-memory sink."""
    return Hub(sink, config)
