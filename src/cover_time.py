# src/cover_time.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta

from config import CENTRE_TZ, NORMAL_HOURS, URGENT_HOURS
from models import Session, Urgency
from time_rules import day_name, day_of_week, hhmm_to_min

# severity rank, most urgent first
URGENCY_RANK: dict[str, int] = {"urgent": 0, "normal": 1, "advance_planned": 2}


def session_start_on(session: Session, cover_date: date) -> datetime:
    """
    Apply a weekly session's start time to a concrete centre-local date.
    """
    hh, mm = divmod(hhmm_to_min(session.start_time), 60)
    return datetime.combine(cover_date, time(hh, mm), tzinfo=CENTRE_TZ)


def session_end_on(session: Session, cover_date: date) -> datetime:
    return session_start_on(session, cover_date) + timedelta(minutes=session.duration)


def weekday_mismatch(session: Session, cover_date: date) -> str | None:
    """Reason code if the session doesn't run on cover_date's weekday."""
    if day_of_week(cover_date) != session.day_of_week:
        return f"cover_date_day_mismatch({day_name(session.day_of_week)})"
    return None


def centre_today(now: datetime) -> date:
    return now.astimezone(CENTRE_TZ).date()


def urgency_for(session_at: datetime, now: datetime) -> Urgency:
    hours_until = (session_at - now).total_seconds() / 3600
    if hours_until < URGENT_HOURS:
        return "urgent"
    if hours_until < NORMAL_HOURS:
        return "normal"
    return "advance_planned"


def opportunity_sort_key(urgency: str, session_at: datetime) -> tuple[int, datetime]:
    return URGENCY_RANK.get(urgency, len(URGENCY_RANK)), session_at
