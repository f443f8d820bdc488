"""Stay detection: decide when a stream of fixes has settled into a stay.

The detector is a pure function over ``DetectorState``. It keeps two reference
points:

    - ``last_fix``: movement is judged against the previous fix, so any new
      departure is seen immediately while slow drift inside the radius does not
      restart the stationary clock.
    - ``anchor_fix``/``anchor_since``: where movement last settled and when the
      stationary clock started.

A candidate stay is emitted once the clock reaches the stationary threshold.
The caller labels and classifies it, then calls ``settle`` to restart the clock
so the same stay is not emitted again on the next fix.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from daytrace.geo import distance
from daytrace.models import DetectorState, Fix, Stay

logger = logging.getLogger(__name__)

STATIONARY_THRESHOLD = timedelta(minutes=5)
SAME_PLACE_RADIUS_M = 100.0


@dataclass(frozen=True, slots=True)
class DetectorParams:
    """Parameters controlling stay detection."""

    stationary_threshold: timedelta = STATIONARY_THRESHOLD
    same_place_radius_m: float = SAME_PLACE_RADIUS_M
    # The first stationary window only sets the baseline place by default.
    # Set to True to also record it as a stay.
    record_first_stay: bool = False


class Phase(enum.Enum):
    UNANCHORED = "unanchored"
    ACCUMULATING = "accumulating"
    CANDIDATE_READY = "candidate_ready"


def _anchor_at(state: DetectorState, fix: Fix) -> DetectorState:
    return replace(state, last_fix=fix, anchor_fix=fix, anchor_since=fix.captured_at)


def observe(
    state: DetectorState,
    fix: Fix,
    params: DetectorParams = DetectorParams(),
) -> tuple[DetectorState, Stay | None]:
    """Feed one fix to the detector.

    Args:
        state: Current detector state.
        fix: Next fix in capture order.
        params: Detection parameters.

    Returns:
        (new_state, candidate). ``candidate`` is an unlabeled stay at the fix's
        coordinates when the device has been stationary long enough, else None.
    """

    if state.anchor_since is None or state.last_fix is None:
        logger.debug("无锚点，从 %s 开始计时", fix.captured_at.isoformat())
        return _anchor_at(state, fix), None

    moved_m = distance(state.last_fix.coordinate, fix.coordinate)
    if moved_m > params.same_place_radius_m:
        logger.debug("移动 %.1fm，重置锚点", moved_m)
        return _anchor_at(state, fix), None

    new_state = replace(state, last_fix=fix)
    elapsed = fix.captured_at - state.anchor_since
    if elapsed < params.stationary_threshold:
        logger.debug("静止 %.1f 分钟（距上个点 %.1fm）", elapsed.total_seconds() / 60.0, moved_m)
        return new_state, None

    logger.debug("静止 %.1f 分钟，生成候选停留点", elapsed.total_seconds() / 60.0)
    candidate = Stay(
        label="",
        latitude=fix.latitude,
        longitude=fix.longitude,
        observed_at=fix.captured_at,
    )
    return new_state, candidate


def settle(state: DetectorState, candidate: Stay, last_stay: Stay | None) -> DetectorState:
    """Restart the stationary clock after a candidate was classified.

    The anchor fix stays where it is; only ``anchor_since`` moves to the
    candidate's time. Applies to confirmed and rejected candidates alike.
    """

    if state.anchor_fix is None:
        raise ValueError("没有锚点时不能结算候选停留点")
    return replace(state, anchor_since=candidate.observed_at, last_stay=last_stay)


def phase(state: DetectorState, now: datetime, params: DetectorParams = DetectorParams()) -> Phase:
    """Conceptual detector phase at ``now`` (diagnostics only)."""

    if state.anchor_since is None:
        return Phase.UNANCHORED
    if now - state.anchor_since < params.stationary_threshold:
        return Phase.ACCUMULATING
    return Phase.CANDIDATE_READY
