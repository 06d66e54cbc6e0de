# src/time_rules.py
from __future__ import annotations

import re
from datetime import date

HHMM_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


class InvalidTimeRange(ValueError):
    """Raised when a time window ends at or before it starts."""


def normalize_hhmm(t: str) -> str:
    """
    "9:05" -> "09:05". Zero padding keeps HH:MM strings comparable lexically.
    Raises ValueError on anything that isn't a 24h clock time.
    """
    m = HHMM_RE.match(str(t).strip())
    if m is None:
        raise ValueError(f"invalid HH:MM time: {t!r}")
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def hhmm_to_min(t: str) -> int:
    hh, mm = normalize_hhmm(t).split(":")
    return int(hh) * 60 + int(mm)


def _as_minutes(t: str | int) -> int:
    if isinstance(t, int):
        if not 0 <= t <= 24 * 60:
            raise ValueError(f"minute-of-day out of range: {t}")
        return t
    return hhmm_to_min(t)


def duration_minutes(start: str | int, end: str | int) -> int:
    minutes = _as_minutes(end) - _as_minutes(start)
    if minutes <= 0:
        raise InvalidTimeRange(f"end {end} is not after start {start}")
    return minutes


def overlaps(
    a_day: int,
    a_start: str | int,
    a_end: str | int,
    a_venue: str,
    b_day: int,
    b_start: str | int,
    b_end: str | int,
    b_venue: str,
) -> bool:
    """
    Half-open window clash: same weekday, same venue, a_start < b_end and a_end > b_start.
    Both windows must have positive length.
    """
    a_s, a_e = _as_minutes(a_start), _as_minutes(a_end)
    b_s, b_e = _as_minutes(b_start), _as_minutes(b_end)
    if a_e <= a_s:
        raise InvalidTimeRange(f"first window {a_start}-{a_end} is empty")
    if b_e <= b_s:
        raise InvalidTimeRange(f"second window {b_start}-{b_end} is empty")

    if a_day != b_day or a_venue != b_venue:
        return False
    return a_s < b_e and a_e > b_s


def day_of_week(d: date) -> int:
    # 0 = Sunday ... 6 = Saturday
    return (d.weekday() + 1) % 7


def day_name(day: int) -> str:
    return DAY_NAMES[day]
