from datetime import date, timedelta

import pytest

from daytrace.kvstore import StorageError
from daytrace.models import DetectorState, Stay
from daytrace.store import DAY_PREFIX, STATE_KEY, DailyStore

from helpers import BASE, at


DAY = date(2025, 3, 10)


def _stay(label: str, minutes: float) -> Stay:
    return Stay(label=label, latitude=40.0, longitude=-74.0, observed_at=BASE + timedelta(minutes=minutes))


def test_load_empty_day(store):
    assert store.load(DAY) == []


def test_append_and_load_sorted(store, kv):
    store.append(DAY, _stay("b", 30))
    store.append(DAY, _stay("a", 10))

    assert [s.label for s in store.load(DAY)] == ["a", "b"]
    assert kv.keys_with_prefix(DAY_PREFIX) == ["significant_locations_2025-03-10"]


def test_retention_drops_old_stays_of_that_day_only(store, clock):
    other_day = date(2025, 3, 9)
    store.append(DAY, _stay("old", 0))
    store.append(other_day, _stay("old-other", 1))

    clock.current = BASE + timedelta(hours=25)
    store.append(DAY, _stay("new", 24 * 60 + 30))

    assert [s.label for s in store.load(DAY)] == ["new"]
    # untouched until something is appended to that day
    assert [s.label for s in store.load(other_day)] == ["old-other"]


def test_retention_boundary_is_exclusive(store, clock):
    clock.current = BASE + timedelta(hours=24)
    store.append(DAY, _stay("exactly-24h", 0))
    assert store.load(DAY) == []


def test_day_of_uses_local_timezone(kv, clock):
    late_evening = Stay(
        label="x",
        latitude=0.0,
        longitude=0.0,
        observed_at=BASE.replace(hour=20),  # 20:00 UTC
    )
    assert DailyStore(kv, tz_name="Asia/Shanghai", now=clock).day_of(late_evening) == date(2025, 3, 11)
    assert DailyStore(kv, tz_name="America/New_York", now=clock).day_of(late_evening) == date(2025, 3, 10)


def test_state_round_trip(store):
    assert store.load_state() == DetectorState()

    fix = at(3)
    state = DetectorState(
        last_fix=fix,
        anchor_fix=at(0),
        anchor_since=at(0).captured_at,
        last_stay=_stay("Home, Elm Street", 2),
    )
    store.save_state(state)
    assert store.load_state() == state


def test_clear_all(store, kv):
    store.append(DAY, _stay("a", 0))
    store.append(date(2025, 3, 9), _stay("b", 1))
    store.save_state(DetectorState(last_fix=at(0)))
    kv.set("unrelated", b"keep")

    store.clear_all()

    assert store.days() == []
    assert kv.get(STATE_KEY) is None
    assert store.load_state() == DetectorState()
    assert kv.get("unrelated") == b"keep"


def test_days_and_summary(store, kv):
    assert store.summary(DAY).today_count == 0
    assert store.summary(DAY).last_updated is None

    store.append(date(2025, 3, 9), _stay("y", 0))
    store.append(DAY, _stay("a", 5))
    store.append(DAY, _stay("b", 20))
    kv.set(DAY_PREFIX + "garbage", b"[]")

    assert store.days() == [date(2025, 3, 9), DAY]
    summary = store.summary(DAY)
    assert summary.today_count == 2
    assert summary.stored_days == 2
    assert summary.last_updated == BASE + timedelta(minutes=20)


def test_undecodable_day_raises(store, kv):
    kv.set(DAY_PREFIX + "2025-03-10", b"{broken")
    with pytest.raises(StorageError):
        store.load(DAY)


def test_undecodable_state_raises(store, kv):
    kv.set(STATE_KEY, b'{"anchor_fix": null, "anchor_since": "2025-03-10T14:00:00+00:00"}')
    with pytest.raises(StorageError):
        store.load_state()


def test_time_zone_must_be_given(kv):
    with pytest.raises(TypeError):
        DailyStore(kv)
