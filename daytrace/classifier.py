"""Place-change classification for candidate stays.

Reverse-geocoded labels for the same spot wobble between fixes (a nearby POI
name appears, a house number changes). Labels are compared part by part
instead: "venue/street, neighborhood, city, ..." and only the first three parts
count.
"""

from __future__ import annotations

import enum
import logging

from daytrace.models import Stay

logger = logging.getLogger(__name__)

_COMPARED_PARTS = 3


class Decision(enum.Enum):
    BASELINE = "baseline"  # no previous stay: adopt as reference, do not record
    SAME_PLACE = "same_place"
    NEW_PLACE = "new_place"


def _label_parts(label: str) -> list[str]:
    return [p.strip() for p in label.lower().split(",")]


def labels_differ(old_label: str, new_label: str) -> bool:
    """Return True when two labels name structurally different places.

    An empty label on either side counts as different.
    """

    if not old_label.strip() or not new_label.strip():
        return True

    old_parts = _label_parts(old_label)
    new_parts = _label_parts(new_label)
    for i in range(_COMPARED_PARTS):
        if i >= len(old_parts) or i >= len(new_parts):
            # one side lacks this part: no further evidence of a change
            break
        if old_parts[i] != new_parts[i]:
            logger.debug("地点第 %s 部分变化：%r -> %r", i, old_parts[i], new_parts[i])
            return True
    return False


def classify(last_stay: Stay | None, candidate: Stay) -> Decision:
    if last_stay is None:
        return Decision.BASELINE
    if labels_differ(last_stay.label, candidate.label):
        return Decision.NEW_PLACE
    return Decision.SAME_PLACE


def is_significant(last_stay: Stay | None, candidate: Stay) -> bool:
    """Whether ``candidate`` is a new significant location relative to ``last_stay``."""

    return classify(last_stay, candidate) is Decision.NEW_PLACE
