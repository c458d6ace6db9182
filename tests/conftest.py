"""Pytest configuration shared across the suite."""

import pytest

FIXED_NOW_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when a test sets ``now``."""

    def __init__(self, now: int) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(FIXED_NOW_MS)
