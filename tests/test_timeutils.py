from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from daytrace.models import Fix, Stay
from daytrace.timeutils import day_key, format_iso, local_day, parse_day_key, parse_iso, tzinfo_from_name


def test_invalid_timezone_name():
    with pytest.raises(ValueError):
        tzinfo_from_name("Not/AZone")


def test_iso_round_trip_keeps_offset_and_microseconds():
    dt = datetime(2025, 3, 10, 9, 30, 15, 123456, tzinfo=timezone(timedelta(hours=8)))
    assert parse_iso(format_iso(dt)) == dt
    assert parse_iso(format_iso(dt)).utcoffset() == timedelta(hours=8)


def test_parse_iso_naive_is_utc():
    assert parse_iso("2025-03-10T09:30:00") == datetime(2025, 3, 10, 9, 30, tzinfo=UTC)


def test_parse_iso_rejects_garbage():
    with pytest.raises(ValueError):
        parse_iso("yesterday")


def test_day_keys():
    assert day_key(date(2025, 1, 2)) == "2025-01-02"
    assert parse_day_key("2025-01-02") == date(2025, 1, 2)
    with pytest.raises(ValueError):
        parse_day_key("2025/01/02")


def test_local_day_crosses_midnight():
    dt = datetime(2025, 1, 1, 17, 0, tzinfo=UTC)
    assert local_day(dt, "Asia/Shanghai") == date(2025, 1, 2)
    assert local_day(dt, "UTC") == date(2025, 1, 1)


def test_models_reject_naive_timestamps():
    with pytest.raises(ValueError):
        Fix(latitude=0.0, longitude=0.0, captured_at=datetime(2025, 1, 1))
    with pytest.raises(ValueError):
        Stay(label="x", latitude=0.0, longitude=0.0, observed_at=datetime(2025, 1, 1))
