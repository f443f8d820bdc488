"""Significant-location pipeline: detect -> label -> classify -> persist.

One fix is handled to completion before the next one starts. If the stay write
fails, memory and disk both stay at the previous fix. Once a stay is written the
in-memory state moves past it even if the state write then fails, so the same
stay is never appended twice within one process.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Sequence

from daytrace.classifier import Decision, classify
from daytrace.detector import DetectorParams, observe, settle
from daytrace.geocode import ReverseLookup
from daytrace.models import DetectorState, Fix, Stay, TimelineEntry
from daytrace.store import DailyStore
from daytrace.timeline import merge

logger = logging.getLogger(__name__)


class SignificantLocationTracker:
    """Owns the detector state and the daily store for one device."""

    def __init__(
        self,
        store: DailyStore,
        lookup: ReverseLookup | None = None,
        params: DetectorParams = DetectorParams(),
    ) -> None:
        self._store = store
        self._lookup = lookup or ReverseLookup()
        self._params = params
        self._state = store.load_state()

    @property
    def state(self) -> DetectorState:
        return self._state

    @property
    def store(self) -> DailyStore:
        return self._store

    def process(self, fix: Fix) -> Stay | None:
        """Handle one fix.

        Returns:
            The stay recorded for this fix, or None.

        Raises:
            StorageError: If persisting the stay or the detector state fails.
        """

        last = self._state.last_fix
        if last is not None and fix.captured_at < last.captured_at:
            logger.warning(
                "忽略乱序定位点：%s 早于上一个点 %s",
                fix.captured_at.isoformat(),
                last.captured_at.isoformat(),
            )
            return None

        state, candidate = observe(self._state, fix, self._params)
        recorded: Stay | None = None

        if candidate is not None:
            label = self._lookup.label_for(candidate.latitude, candidate.longitude)
            logger.debug("候选停留点名称来源=%s：%s", label.source, label.label)
            labeled = Stay(
                label=label.label,
                latitude=candidate.latitude,
                longitude=candidate.longitude,
                observed_at=candidate.observed_at,
            )
            decision = classify(state.last_stay, labeled)

            if decision is Decision.NEW_PLACE or (
                decision is Decision.BASELINE and self._params.record_first_stay
            ):
                self._store.append(self._store.day_of(labeled), labeled)
                recorded = labeled
                state = settle(state, labeled, last_stay=labeled)
                self._state = state
                logger.info("新的重要地点：%s", labeled.label)
            elif decision is Decision.BASELINE:
                state = settle(state, labeled, last_stay=labeled)
                logger.info("首个停留点作为基准，不记录：%s", labeled.label)
            else:
                state = settle(state, labeled, last_stay=state.last_stay)
                logger.info("仍在同一地点：%s", labeled.label)

        self._store.save_state(state)
        self._state = state
        return recorded

    def process_batch(self, fixes: Iterable[Fix]) -> list[Stay]:
        """Sort fixes by capture time and process them one at a time."""

        recorded: list[Stay] = []
        for fix in sorted(fixes, key=lambda f: f.captured_at):
            stay = self.process(fix)
            if stay is not None:
                recorded.append(stay)
        return recorded

    def stays_for(self, day: date) -> list[Stay]:
        return self._store.load(day)

    def timeline_for(self, day: date, existing: Sequence[TimelineEntry] = ()) -> list[TimelineEntry]:
        """Merge ``day``'s stays into an existing (possibly edited) timeline."""

        return merge(existing, self._store.load(day))

    def reset(self) -> None:
        """Erase all stored stays and start over from an empty detector state."""

        self._store.clear_all()
        self._state = DetectorState()
