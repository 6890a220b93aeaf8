"""Shared fixtures for anonymity tests"""

import pytest

from anonymity.config import Settings
from anonymity.salt import DailySaltProvisioner
from anonymity.store import MemoryStore

# 2026-10-18 12:00:00 UTC, day index 20744
NOON_EPOCH_SECONDS = 1_792_324_800.0
DAY_SECONDS = 24 * 60 * 60


class FakeClock:
    """Epoch-seconds clock that only moves when told to"""

    def __init__(self, now: float = NOON_EPOCH_SECONDS):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def provisioner(memory_store, clock):
    return DailySaltProvisioner(store=memory_store, clock=clock)


@pytest.fixture
def settings():
    return Settings(_env_file=None, STORE_BACKEND="memory")
