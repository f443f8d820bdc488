from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from daytrace.geocode import PlaceAddress
from daytrace.models import Fix


BASE = datetime(2025, 3, 10, 14, 0, 0, tzinfo=UTC)

HOME = (40.0000, -74.0000)
OFFICE = (40.0045, -74.0000)  # ~500m north of HOME


def at(minutes: float, lat: float = HOME[0], lon: float = HOME[1]) -> Fix:
    return Fix(latitude=lat, longitude=lon, captured_at=BASE + timedelta(minutes=minutes))


def dwell(
    *,
    center: tuple[float, float],
    start_minutes: float,
    count: int,
    seed: int,
    jitter_deg: float = 0.0001,
) -> list[Fix]:
    """Fixes jittering around ``center`` one to two minutes apart."""

    rng = random.Random(seed)
    cur = BASE + timedelta(minutes=start_minutes)
    out: list[Fix] = []
    for _ in range(count):
        lat = center[0] + rng.uniform(-jitter_deg, jitter_deg)
        lon = center[1] + rng.uniform(-jitter_deg, jitter_deg)
        out.append(Fix(latitude=lat, longitude=lon, captured_at=cur))
        cur = cur + timedelta(seconds=rng.uniform(60, 120))
    return out


class Clock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def __call__(self) -> datetime:
        return self.current


class AreaGeocoder:
    """Device geocoder that names everything north of 40.002 as the office."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, float]] = []

    def reverse(self, lat: float, lon: float) -> PlaceAddress | None:
        self.calls.append((lat, lon))
        if lat > 40.002:
            return PlaceAddress(name="Office Tower", street="Main Street", city="Springfield")
        return PlaceAddress(name="Home", street="Elm Street", city="Springfield")


@dataclass
class FakeFetch:
    """Stands in for the HTTP fetch; records URLs and returns canned payloads."""

    payload: object = None

    def __post_init__(self) -> None:
        self.urls: list[str] = []

    def __call__(self, url: str, cfg: object) -> object:
        self.urls.append(url)
        return self.payload


