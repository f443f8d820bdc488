"""Time parsing, formatting and calendar-day utilities."""

from __future__ import annotations

from datetime import UTC, date, datetime, tzinfo

from zoneinfo import ZoneInfo


DAY_KEY_FORMAT = "%Y-%m-%d"


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Asia/Shanghai".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Shanghai") from exc


def format_iso(dt: datetime) -> str:
    """Format an aware datetime as ISO-8601 with offset (microseconds kept)."""

    return dt.isoformat()


def parse_iso(text: str) -> datetime:
    """Parse a stored ISO-8601 timestamp.

    Stored timestamps always carry an offset; a naive string is assumed UTC so
    that hand-written fixtures still load.

    Raises:
        ValueError: If cannot parse.
    """

    try:
        dt = datetime.fromisoformat(str(text).strip())
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18T09:30:00+08:00") from exc
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


def local_day(dt: datetime, tz_name: str) -> date:
    """Calendar date of ``dt`` in the device-local timezone."""

    return dt.astimezone(tzinfo_from_name(tz_name)).date()


def day_key(day: date) -> str:
    """Format a calendar date as ``YYYY-MM-DD``."""

    return day.strftime(DAY_KEY_FORMAT)


def parse_day_key(text: str) -> date:
    """Parse a ``YYYY-MM-DD`` day key.

    Raises:
        ValueError: If the text is not a valid day key.
    """

    try:
        return datetime.strptime(text, DAY_KEY_FORMAT).date()
    except ValueError as exc:
        raise ValueError(f"无效日期键：{text!r}，应为 YYYY-MM-DD") from exc


def utc_now() -> datetime:
    return datetime.now(UTC)

