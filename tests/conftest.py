"""Pytest configuration and fixtures shared across all test modules.

Environment defaults are set before anything imports
``leakybucket.core.config`` so the settings singleton is deterministic and
no .env file is loaded.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("LIMITER_BACKEND", "memory")
os.environ.setdefault("LIMITER_RATE", "1")
os.environ.setdefault("LIMITER_INTERVAL_SECONDS", "1")
os.environ.setdefault("LIMITER_BURST", "10")
os.environ.setdefault("LOG_FORMAT", "json")

import pytest


class FakeClock:
    """Deterministic nanosecond clock for limiter tests."""

    def __init__(self, start_ns: int = 1_700_000_000_000_000_000, tick_ns: int = 0) -> None:
        self.now_ns = start_ns
        self.tick_ns = tick_ns

    def __call__(self) -> int:
        current = self.now_ns
        self.now_ns += self.tick_ns
        return current

    def advance(self, ns: int) -> None:
        self.now_ns += ns


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _reset_process_limiter():
    from leakybucket.core.rate_limit import reset_limiter

    reset_limiter()
    yield
    reset_limiter()
