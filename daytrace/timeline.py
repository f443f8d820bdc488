"""Timeline building: merge stored stays into an edited day timeline.

Every function here returns a new list with positions re-indexed 0..n-1 and
never mutates its inputs. Stays in the daily store are never rewritten from
this side; edits only touch ``TimelineEntry`` copies.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Sequence

from daytrace.models import Stay, TimelineEntry
from daytrace.search import PlaceDetails

logger = logging.getLogger(__name__)

DEFAULT_ICON = "📍"

# (keywords, icon); first match wins
_ICON_RULES: tuple[tuple[tuple[str, ...], str], ...] = (
    (("home", "house"), "🏠"),
    (("work", "office"), "💼"),
    (("gym", "fitness"), "💪"),
    (("restaurant", "cafe", "food"), "🍽️"),
    (("park", "garden"), "🌳"),
    (("mall", "shopping"), "🛍️"),
    (("hospital", "clinic"), "🏥"),
    (("school", "university"), "🎓"),
    (("airport", "station"), "✈️"),
    (("beach", "coast"), "🏖️"),
    (("mountain", "hike"), "⛰️"),
)


class TimelineValidationError(ValueError):
    """One or more timeline entries cannot be saved.

    Attributes:
        problems: (position in the submitted list, reason) for every bad entry.
    """

    def __init__(self, problems: Sequence[tuple[int, str]]) -> None:
        self.problems = list(problems)
        detail = "; ".join(f"#{i}: {reason}" for i, reason in self.problems)
        super().__init__(f"时间线条目无效：{detail}")


def icon_for_label(label: str) -> str:
    name = label.lower()
    for keywords, icon in _ICON_RULES:
        if any(k in name for k in keywords):
            return icon
    return DEFAULT_ICON


def entry_from_stay(stay: Stay, position: int = 0) -> TimelineEntry:
    return TimelineEntry(
        label=stay.label,
        observed_at=stay.observed_at,
        latitude=stay.latitude,
        longitude=stay.longitude,
        icon=icon_for_label(stay.label),
        position=position,
    )


def entry_from_place(details: PlaceDetails, observed_at: datetime, position: int = 0) -> TimelineEntry:
    """Build an entry from a place search result picked by the user."""

    return TimelineEntry(
        label=details.name,
        observed_at=observed_at,
        latitude=details.latitude,
        longitude=details.longitude,
        icon=icon_for_label(details.name),
        position=position,
    )


def validate_entries(entries: Iterable[TimelineEntry]) -> None:
    """Check every entry and report all problems at once.

    Raises:
        TimelineValidationError: If any entry lacks a label or a timestamp.
    """

    problems: list[tuple[int, str]] = []
    for i, e in enumerate(entries):
        if not e.label or not e.label.strip():
            problems.append((i, "缺少地点名称"))
        if e.observed_at is None:
            problems.append((i, "缺少时间"))
        elif e.observed_at.tzinfo is None:
            problems.append((i, "时间缺少时区"))
        if (e.latitude is None) != (e.longitude is None):
            problems.append((i, "经纬度不完整"))
    if problems:
        raise TimelineValidationError(problems)


def reindex(entries: Iterable[TimelineEntry]) -> list[TimelineEntry]:
    """Return entries in the given order with positions 0..n-1."""

    return [e if e.position == i else replace(e, position=i) for i, e in enumerate(entries)]


def merge(existing: Sequence[TimelineEntry], incoming: Sequence[Stay]) -> list[TimelineEntry]:
    """Append stays not yet on the timeline after the existing entries.

    A stay is considered present when its ``observed_at`` equals the timestamp of
    an existing entry (or of an earlier stay in ``incoming``).

    Raises:
        TimelineValidationError: If the combined timeline has invalid entries.
            Nothing is returned in that case.
    """

    seen = {e.observed_at for e in existing if e.observed_at is not None}
    combined = list(existing)
    added = 0
    for stay in incoming:
        if stay.observed_at in seen:
            continue
        seen.add(stay.observed_at)
        combined.append(entry_from_stay(stay))
        added += 1

    validate_entries(combined)
    if added:
        logger.info("合并时间线：新增 %s 条，已有 %s 条", added, len(existing))
    return reindex(combined)


def insert_entry(
    entries: Sequence[TimelineEntry],
    entry: TimelineEntry,
    index: int | None = None,
) -> list[TimelineEntry]:
    out = list(entries)
    if index is None:
        out.append(entry)
    else:
        out.insert(index, entry)
    return reindex(out)


def remove_entry(entries: Sequence[TimelineEntry], index: int) -> list[TimelineEntry]:
    if not 0 <= index < len(entries):
        raise IndexError(f"条目索引越界：{index}")
    return reindex(e for i, e in enumerate(entries) if i != index)


def move_entry(entries: Sequence[TimelineEntry], src: int, dst: int) -> list[TimelineEntry]:
    if not 0 <= src < len(entries) or not 0 <= dst < len(entries):
        raise IndexError(f"条目索引越界：{src} -> {dst}")
    out = list(entries)
    out.insert(dst, out.pop(src))
    return reindex(out)


def rename_entry(entries: Sequence[TimelineEntry], index: int, label: str) -> list[TimelineEntry]:
    """Free-text edit of one entry's label; the icon follows the new label."""

    if not 0 <= index < len(entries):
        raise IndexError(f"条目索引越界：{index}")
    out = list(entries)
    out[index] = replace(out[index], label=label, icon=icon_for_label(label))
    return reindex(out)
