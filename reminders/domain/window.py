"""Trigger-window decision for time-based reminders.

A reminder targets `lead_hours` before the appointment and may fire anywhere
within `tolerance_minutes` on either side of that target:

    too early   minutes_until >  target + tolerance
    in window   target - tolerance <= minutes_until <= target + tolerance
    expired     minutes_until <  target - tolerance

The poll cadence must be shorter than `2 * tolerance_minutes`, otherwise a
window can fall entirely between two polls.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum


class WindowPhase(str, Enum):
    TOO_EARLY = "too_early"
    IN_WINDOW = "in_window"
    EXPIRED = "expired"


def minutes_until(event_at: datetime, now: datetime) -> float:
    """Signed minutes from `now` to `event_at` (negative once it has passed)."""
    return (event_at - now).total_seconds() / 60.0


def evaluate_trigger_window(
    event_at: datetime,
    now: datetime,
    lead_hours: float,
    tolerance_minutes: float,
) -> WindowPhase:
    """Classify `now` relative to the reminder window of one appointment."""
    if tolerance_minutes < 0:
        raise ValueError("tolerance_minutes must be >= 0")

    remaining = minutes_until(event_at, now)
    target = lead_hours * 60
    if remaining > target + tolerance_minutes:
        return WindowPhase.TOO_EARLY
    if remaining < target - tolerance_minutes:
        return WindowPhase.EXPIRED
    return WindowPhase.IN_WINDOW


def is_in_window(
    event_at: datetime,
    now: datetime,
    lead_hours: float,
    tolerance_minutes: float,
) -> bool:
    phase = evaluate_trigger_window(event_at, now, lead_hours, tolerance_minutes)
    return phase is WindowPhase.IN_WINDOW
