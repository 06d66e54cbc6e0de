from __future__ import annotations

from datetime import datetime

from config import CENTRE_TZ


def fmt_local_range(start: datetime, end: datetime) -> str:
    s = start.astimezone(CENTRE_TZ)
    e = end.astimezone(CENTRE_TZ)

    # Same day: "Mon 04 Mar 09:00–10:00"
    if s.date() == e.date():
        return f"{s:%a %d %b %H:%M}–{e:%H:%M}"
    # crosses midnight
    return f"{s:%a %d %b %H:%M}–{e:%a %d %b %H:%M}"


def fmt_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours == 0:
        return f"{mins}m"
    if mins == 0:
        return f"{hours}h"
    return f"{hours}h {mins}m"


def time_until(target: datetime, now: datetime) -> str:
    diff = (target - now).total_seconds()
    if diff <= 0:
        return "Past due"

    hours = int(diff // 3600)
    days = hours // 24
    if days > 0:
        return f"{days} day{'' if days == 1 else 's'}"
    return f"{hours} hour{'' if hours == 1 else 's'}"
