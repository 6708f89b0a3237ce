"""Shared pytest fixtures for BlockTrace tests.

This module provides fixtures for:
- Isolated settings (no .env or BLOCKTRACE_* leakage)
- Raw trace factories and call-data helpers
- A deterministic clock for cache TTL tests

Usage:
    def test_something(settings, raw_trace_factory):
        trace = raw_trace_factory()
        assert trace["action"]["from"].startswith("0x")
"""

import os
from collections.abc import Generator

import pytest

from tests.factories.trace import RawTraceFactory

# =============================================================================
# Environment Configuration
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_environment() -> Generator[None, None, None]:
    """Strip BLOCKTRACE_* variables and reset the settings cache."""
    from blocktrace.config.settings import get_settings

    original_env = os.environ.copy()
    for name in list(os.environ):
        if name.startswith("BLOCKTRACE_"):
            del os.environ[name]
    get_settings.cache_clear()

    yield

    os.environ.clear()
    os.environ.update(original_env)
    get_settings.cache_clear()


@pytest.fixture
def settings():
    """Default settings without reading a .env file."""
    from blocktrace.config.settings import Settings

    return Settings(_env_file=None)


# =============================================================================
# Factory Fixtures
# =============================================================================


@pytest.fixture
def raw_trace_factory() -> type[RawTraceFactory]:
    """Provide factory for raw trace_block records."""
    return RawTraceFactory


# =============================================================================
# Time Helpers
# =============================================================================


class FakeClock:
    """Manually advanced clock returning Unix seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
