"""Pytest configuration, shared fixtures, and an asyncio fallback runner.

Async tests are marked with ``@pytest.mark.asyncio``. The suite does not
depend on ``pytest-asyncio``: the hook below runs coroutine tests on a fresh
event loop when no async plugin has claimed them.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Iterator
from datetime import datetime, timezone
from typing import Any

import pytest

from src.metering.store import MemoryStore
from src.metering.tiers import TierRegistry


def pytest_configure(config: pytest.Config) -> None:
    """Register local markers used in the suite."""
    config.addinivalue_line("markers", "asyncio: mark test as asyncio-compatible")


def pytest_pyfunc_call(pyfuncitem: pytest.Function) -> bool | None:
    """Run ``@pytest.mark.asyncio`` tests without external plugins."""
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(test_func):
        return None

    kwargs: dict[str, Any] = {
        arg: pyfuncitem.funcargs[arg]
        for arg in pyfuncitem._fixtureinfo.argnames
    }
    loop = asyncio.new_event_loop()
    try:
        asyncio.set_event_loop(loop)
        loop.run_until_complete(test_func(**kwargs))
    finally:
        loop.close()
        asyncio.set_event_loop(asyncio.new_event_loop())
    return True


class FakeMonotonic:
    """Manually advanced clock for MemoryStore expiry."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.value = start

    def __call__(self) -> float:
        return self.value

    def advance(self, seconds: float) -> None:
        self.value += seconds


@pytest.fixture()
def monotonic() -> FakeMonotonic:
    return FakeMonotonic()


@pytest.fixture()
def store(monotonic: FakeMonotonic) -> MemoryStore:
    return MemoryStore(clock=monotonic)


@pytest.fixture()
def tiers() -> TierRegistry:
    return TierRegistry()


@pytest.fixture()
def feb_10() -> datetime:
    return datetime(2024, 2, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _reset_singletons() -> Iterator[None]:
    """Module-level singletons must not leak between tests."""
    import config.settings as settings_mod
    import src.api.deps as deps_mod
    import src.api.middleware as middleware_mod

    yield
    settings_mod._settings_instance = None
    deps_mod._store = None
    deps_mod._tiers = None
    middleware_mod._verifier = None
