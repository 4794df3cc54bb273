"""Shared fixtures: a controllable clock and a three-tier manager."""

import pytest

from tiercache.cache import CacheManager, TierConfig


class FakeClock:
    """Monotonic clock stand-in advanced by hand."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tier_configs() -> list:
    return [
        TierConfig(name="master", ttl_seconds=1800, max_entries=100),
        TierConfig(name="api", ttl_seconds=300, max_entries=100),
        TierConfig(name="computed", ttl_seconds=600, max_entries=100),
    ]


@pytest.fixture
def manager(tier_configs: list, clock: FakeClock) -> CacheManager:
    return CacheManager(tier_configs, clock=clock)
