"""Free-slot computation from calendar busy data.

Candidates are scanned hour by hour through business hours, skipping
weekends, and kept when they match the requested time of day, end no later
than the closing hour and do not overlap any busy interval.  The function is
pure: the same inputs always produce the same earliest-first list.

Note on the ``evening`` filter: its window (17:00–20:00) lies entirely after
the closing hour, so the scan never reaches it and it always yields no
slots.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum

from sms_receptionist.models import BusyInterval, Slot

BUSINESS_HOURS_START = 9
BUSINESS_HOURS_END = 17
MAX_SLOTS = 10

_STEP = timedelta(hours=1)
_SATURDAY = 5


class TimeOfDay(str, Enum):
    ANY = "any"
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


# Inclusive start hour, exclusive end hour
_TIME_OF_DAY_WINDOWS: dict[TimeOfDay, tuple[int, int]] = {
    TimeOfDay.MORNING: (8, 12),
    TimeOfDay.AFTERNOON: (12, 17),
    TimeOfDay.EVENING: (17, 20),
}


def matches_time_of_day(moment: datetime, time_of_day: TimeOfDay) -> bool:
    if time_of_day is TimeOfDay.ANY:
        return True
    low, high = _TIME_OF_DAY_WINDOWS[time_of_day]
    return low <= moment.hour < high


def overlaps(start: datetime, end: datetime, busy: BusyInterval) -> bool:
    """Half-open overlap test between ``[start, end)`` and *busy*."""
    return start < busy.end and end > busy.start


def format_clock(moment: datetime) -> str:
    hour = moment.hour % 12 or 12
    suffix = "AM" if moment.hour < 12 else "PM"
    return f"{hour}:{moment.minute:02d} {suffix}"


def format_slot_label(start: datetime, end: datetime) -> str:
    """Render a slot like ``Mon, Mar 2, 9:00 AM - 10:00 AM``."""
    return f"{start:%a, %b} {start.day}, {format_clock(start)} - {format_clock(end)}"


def _opening(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time(BUSINESS_HOURS_START), tzinfo=tz)


def compute_free_slots(
    range_start: date,
    range_end: date,
    busy: Iterable[BusyInterval],
    time_of_day: TimeOfDay | str = TimeOfDay.ANY,
    duration_minutes: int = 60,
    *,
    tz: tzinfo,
) -> list[Slot]:
    """Return up to ``MAX_SLOTS`` free slots between two calendar dates.

    Args:
        range_start: First day to search (scan begins at opening time).
        range_end: Last day to search (scan ends at closing time).
        busy: Busy intervals in any order; they need not be merged.
        time_of_day: ``any``, ``morning``, ``afternoon`` or ``evening``.
        duration_minutes: Length of each slot, must be positive.
        tz: Business timezone the hours are expressed in.
    """
    if duration_minutes <= 0:
        raise ValueError("duration_minutes must be positive")
    time_of_day = TimeOfDay(time_of_day)
    busy = list(busy)
    duration = timedelta(minutes=duration_minutes)

    current = _opening(range_start, tz)
    end_of_search = datetime.combine(range_end, time(BUSINESS_HOURS_END), tzinfo=tz)
    slots: list[Slot] = []

    while current < end_of_search and len(slots) < MAX_SLOTS:
        if current.weekday() >= _SATURDAY or current.hour >= BUSINESS_HOURS_END:
            current = _opening(current.date() + timedelta(days=1), tz)
            continue

        if not matches_time_of_day(current, time_of_day):
            current += _STEP
            continue

        slot_end = current + duration
        if slot_end.hour <= BUSINESS_HOURS_END and not any(
            overlaps(current, slot_end, interval) for interval in busy
        ):
            slots.append(
                Slot(start=current, end=slot_end, label=format_slot_label(current, slot_end))
            )

        current += _STEP

    return slots
