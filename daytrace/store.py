"""Per-day persistence of confirmed stays and of the detector state.

Layout in the backing key-value store:
    - ``significant_locations_YYYY-MM-DD``: JSON array of stays for that local day.
    - ``detector_state``: JSON object with the detector state.

Retention is applied on write: every ``append`` drops stays older than 24 hours
from the day being written. Other days are left untouched.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable

from daytrace.kvstore import KeyValueStore, StorageError
from daytrace.models import DetectorState, Stay
from daytrace.timeutils import day_key, local_day, parse_day_key, utc_now

logger = logging.getLogger(__name__)

DAY_PREFIX = "significant_locations_"
STATE_KEY = "detector_state"
RETENTION = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class StoreSummary:
    """What is currently stored."""

    today_count: int
    stored_days: int
    last_updated: datetime | None


def _encode(data: Any) -> bytes:
    return json.dumps(data, ensure_ascii=False).encode("utf-8")


class DailyStore:
    """Append-only daily log of stays plus the persisted detector state."""

    def __init__(
        self,
        kv: KeyValueStore,
        tz_name: str,
        now: Callable[[], datetime] = utc_now,
        retention: timedelta = RETENTION,
    ) -> None:
        self._kv = kv
        self._tz_name = tz_name
        self._now = now
        self._retention = retention

    @property
    def tz_name(self) -> str:
        return self._tz_name

    def day_of(self, stay: Stay) -> date:
        """Local calendar day a stay belongs to."""

        return local_day(stay.observed_at, self._tz_name)

    def append(self, day: date, stay: Stay) -> None:
        """Add ``stay`` to ``day`` and drop that day's stays older than the retention window.

        Raises:
            StorageError: If the write fails.
        """

        key = DAY_PREFIX + day_key(day)
        stays = self._read_day(key)
        stays.append(stay)

        cutoff = self._now() - self._retention
        kept = [s for s in stays if s.observed_at > cutoff]
        dropped = len(stays) - len(kept)
        if dropped:
            logger.info("%s：丢弃 %s 条超过保留期的停留点", day_key(day), dropped)

        self._kv.set(key, _encode([s.to_dict() for s in kept]))
        logger.info("已保存停留点：%s (%s)", stay.label, day_key(day))

    def load(self, day: date) -> list[Stay]:
        """All stays for ``day``, ascending by ``observed_at``."""

        stays = self._read_day(DAY_PREFIX + day_key(day))
        return sorted(stays, key=lambda s: s.observed_at)

    def days(self) -> list[date]:
        """Days that currently have stored stays, ascending."""

        out: list[date] = []
        for key in self._kv.keys_with_prefix(DAY_PREFIX):
            try:
                out.append(parse_day_key(key[len(DAY_PREFIX) :]))
            except ValueError:
                logger.warning("忽略无法识别的日期键：%s", key)
        return sorted(out)

    def summary(self, today: date | None = None) -> StoreSummary:
        if today is None:
            today = local_day(self._now(), self._tz_name)
        todays = self.load(today)
        return StoreSummary(
            today_count=len(todays),
            stored_days=len(self.days()),
            last_updated=todays[-1].observed_at if todays else None,
        )

    def load_state(self) -> DetectorState:
        """Persisted detector state, or an empty state on first run."""

        raw = self._kv.get(STATE_KEY)
        if raw is None:
            return DetectorState()
        try:
            return DetectorState.from_dict(json.loads(raw.decode("utf-8")))
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"检测器状态无法解析：{STATE_KEY}") from exc

    def save_state(self, state: DetectorState) -> None:
        self._kv.set(STATE_KEY, _encode(state.to_dict()))

    def clear_all(self) -> None:
        """Erase every day's stays and the detector state."""

        keys = self._kv.keys_with_prefix(DAY_PREFIX)
        for key in keys:
            self._kv.delete(key)
        self._kv.delete(STATE_KEY)
        logger.info("已清除 %s 天的位置数据及检测器状态", len(keys))

    def _read_day(self, key: str) -> list[Stay]:
        raw = self._kv.get(key)
        if raw is None:
            return []
        try:
            items = json.loads(raw.decode("utf-8"))
            return [Stay.from_dict(item) for item in items]
        except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise StorageError(f"停留点数据无法解析：{key}") from exc
