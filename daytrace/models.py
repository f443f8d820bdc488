"""Data models for fixes, stays, detector state and timeline entries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from daytrace.timeutils import format_iso, parse_iso


def _require_aware(value: datetime, field_name: str) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{field_name} 必须是带时区的时间：{value!r}")


@dataclass(frozen=True, slots=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float


@dataclass(frozen=True, slots=True)
class Fix:
    """A single raw location sample.

    Attributes:
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        captured_at: Timezone-aware capture time.
    """

    latitude: float
    longitude: float
    captured_at: datetime

    def __post_init__(self) -> None:
        _require_aware(self.captured_at, "captured_at")

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "captured_at": format_iso(self.captured_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Fix:
        return cls(
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            captured_at=parse_iso(data["captured_at"]),
        )


@dataclass(frozen=True, slots=True)
class Stay:
    """A confirmed significant location.

    Note:
        ``observed_at`` is the time of the fix that triggered confirmation,
        not the time the stationary window began.
    """

    label: str
    latitude: float
    longitude: float
    observed_at: datetime

    def __post_init__(self) -> None:
        _require_aware(self.observed_at, "observed_at")

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "observed_at": format_iso(self.observed_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Stay:
        return cls(
            label=str(data.get("label", "") or ""),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            observed_at=parse_iso(data["observed_at"]),
        )


@dataclass(frozen=True, slots=True)
class DetectorState:
    """Persistent state of the stay detector.

    Attributes:
        last_fix: Most recent fix processed.
        anchor_fix: Fix that opened the current "possibly stationary" window.
        anchor_since: When the current stationary clock started.
        last_stay: Last confirmed (or baseline) stay, used for place-change checks.
    """

    last_fix: Fix | None = None
    anchor_fix: Fix | None = None
    anchor_since: datetime | None = None
    last_stay: Stay | None = None

    def __post_init__(self) -> None:
        if (self.anchor_fix is None) != (self.anchor_since is None):
            raise ValueError("anchor_fix 与 anchor_since 必须同时为空或同时有值")
        if self.anchor_since is not None:
            _require_aware(self.anchor_since, "anchor_since")

    @property
    def is_anchored(self) -> bool:
        return self.anchor_fix is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "last_fix": self.last_fix.to_dict() if self.last_fix else None,
            "anchor_fix": self.anchor_fix.to_dict() if self.anchor_fix else None,
            "anchor_since": format_iso(self.anchor_since) if self.anchor_since else None,
            "last_stay": self.last_stay.to_dict() if self.last_stay else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DetectorState:
        last_fix = data.get("last_fix")
        anchor_fix = data.get("anchor_fix")
        anchor_since = data.get("anchor_since")
        last_stay = data.get("last_stay")
        return cls(
            last_fix=Fix.from_dict(last_fix) if last_fix else None,
            anchor_fix=Fix.from_dict(anchor_fix) if anchor_fix else None,
            anchor_since=parse_iso(anchor_since) if anchor_since else None,
            last_stay=Stay.from_dict(last_stay) if last_stay else None,
        )


@dataclass(frozen=True, slots=True)
class TimelineEntry:
    """A user-facing stop on a day's timeline.

    An entry may come from a confirmed stay, a place search or a free-text edit,
    so ``observed_at`` and coordinates are optional here. Validation in
    ``daytrace.timeline`` decides what may be saved.
    """

    label: str
    observed_at: datetime | None
    latitude: float | None
    longitude: float | None
    icon: str
    position: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "observed_at": format_iso(self.observed_at) if self.observed_at else None,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "icon": self.icon,
            "position": self.position,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TimelineEntry:
        observed_at = data.get("observed_at")
        lat = data.get("latitude")
        lon = data.get("longitude")
        return cls(
            label=str(data.get("label", "") or ""),
            observed_at=parse_iso(observed_at) if observed_at else None,
            latitude=float(lat) if lat is not None else None,
            longitude=float(lon) if lon is not None else None,
            icon=str(data.get("icon", "") or ""),
            position=int(data.get("position", 0) or 0),
        )
