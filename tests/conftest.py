"""Shared test fixtures: controllable clock, isolated cache and coordinator."""
import pytest

from thirstee.cache import CacheService
from thirstee.fetching import FetchCoordinator


class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return CacheService(default_ttl=300, max_memory_items=100, clock=clock)


@pytest.fixture
def coordinator(cache):
    coordinator = FetchCoordinator(cache=cache)
    yield coordinator
    coordinator.dispose()
