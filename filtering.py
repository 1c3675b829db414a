"""Per-source significance filters."""

import re
from datetime import datetime, timedelta

# Solar flare classes in increasing strength
FLARE_CLASSES = "ABCMX"

# "M2.3", "X1", "C9.9" -> class letter
_FLARE_CLASS_RE = re.compile(r"^\s*([ABCMX])", re.IGNORECASE)


def meets_magnitude(magnitude: float | None, min_magnitude: float) -> bool:
    if magnitude is None:
        return False
    return magnitude >= min_magnitude


def flare_class_at_least(class_type: str, min_class: str) -> bool:
    """Check if a flare classification is at or above min_class (e.g. "M")."""
    match = _FLARE_CLASS_RE.match(class_type or "")
    if not match:
        return False
    threshold = FLARE_CLASSES.find(min_class.strip().upper()[:1])
    if threshold < 0:
        threshold = FLARE_CLASSES.index("M")
    return FLARE_CLASSES.index(match.group(1).upper()) >= threshold


def launches_within(launch_time: datetime, now: datetime, window: timedelta) -> bool:
    """Check if a launch starts less than window from now.

    Launches already in the past also pass; dedup keeps them from repeating.
    """
    return launch_time - now < window


def added_since(added: datetime, now: datetime, lookback: timedelta) -> bool:
    return added >= now - lookback
