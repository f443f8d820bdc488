from __future__ import annotations

from datetime import timedelta

import pytest

from daytrace.kvstore import InMemoryKeyValueStore
from daytrace.store import DailyStore

from helpers import BASE, Clock


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def clock() -> Clock:
    return Clock(BASE + timedelta(hours=1))


@pytest.fixture
def store(kv: InMemoryKeyValueStore, clock: Clock) -> DailyStore:
    return DailyStore(kv, tz_name="America/New_York", now=clock)
