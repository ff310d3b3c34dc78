"""
Live Session Clock

Classifies a live session's lifecycle state from (now, start time,
duration). Pure functions with no I/O; the participant countdown and the
reminder job both use them, so the 10 minute "starting soon" boundary is
defined once here.

States, checked most urgent first:
- ENDED:          now >= start + duration
- LIVE_NOW:       now >= start
- STARTING_SOON:  start - now <= 10 minutes (inclusive)
- UPCOMING:       otherwise
"""

import enum
import math
from datetime import datetime, timedelta

STARTING_SOON_THRESHOLD = timedelta(minutes=10)


class SessionState(str, enum.Enum):
    """Lifecycle state of a live session."""

    UPCOMING = "UPCOMING"
    STARTING_SOON = "STARTING_SOON"
    LIVE_NOW = "LIVE_NOW"
    ENDED = "ENDED"


class InvalidScheduleError(ValueError):
    """Raised when a session's stored schedule cannot be classified."""


def _require_aware(name: str, value: object) -> datetime:
    if not isinstance(value, datetime):
        raise InvalidScheduleError(f"{name} must be a datetime, got {type(value).__name__}")
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidScheduleError(f"{name} must be timezone-aware")
    return value


def _require_duration(value: object) -> int:
    # bool is an int subclass; True is not a duration
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidScheduleError(f"duration_minutes must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidScheduleError(f"duration_minutes must be positive, got {value}")
    return value


def classify(now: datetime, start_time: datetime, duration_minutes: int) -> SessionState:
    """
    Return the session's state at `now`.

    Raises:
        InvalidScheduleError: If a datetime is naive or missing, or the
            duration is not a positive integer
    """
    now = _require_aware("now", now)
    start_time = _require_aware("start_time", start_time)
    duration = _require_duration(duration_minutes)

    end_time = start_time + timedelta(minutes=duration)

    if now >= end_time:
        return SessionState.ENDED
    if now >= start_time:
        return SessionState.LIVE_NOW
    if start_time - now <= STARTING_SOON_THRESHOLD:
        return SessionState.STARTING_SOON
    return SessionState.UPCOMING


def time_remaining(now: datetime, start_time: datetime) -> timedelta:
    """Time until the session starts, never negative. For display only."""
    now = _require_aware("now", now)
    start_time = _require_aware("start_time", start_time)
    return max(start_time - now, timedelta(0))


def format_countdown(now: datetime, start_time: datetime, duration_minutes: int) -> str:
    """
    Countdown text for the participant view.

    "2d 5h" while UPCOMING, "7 mins" while STARTING_SOON (minutes rounded
    up), empty once the session has started.
    """
    state = classify(now, start_time, duration_minutes)
    remaining = time_remaining(now, start_time)

    if state is SessionState.UPCOMING:
        hours = int(remaining.total_seconds() // 3600)
        return f"{hours // 24}d {hours % 24}h"
    if state is SessionState.STARTING_SOON:
        return f"{math.ceil(remaining.total_seconds() / 60)} mins"
    return ""
