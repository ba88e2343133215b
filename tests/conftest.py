"""
Pytest configuration and shared fixtures.
"""

import random

import pytest

from cosmic_tunes.rooms import MemoryKeyValueStore, RoomStore
from tests.support import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rooms(clock: FakeClock) -> RoomStore:
    return RoomStore(MemoryKeyValueStore(clock=clock))


@pytest.fixture
def rng() -> random.Random:
    return random.Random(42)
