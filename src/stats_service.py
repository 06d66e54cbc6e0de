# src/stats_service.py
"""
Hours and earnings per calendar month for one instructor.

Two sources feed the report:
  - every elapsed occurrence of a permanent session they teach, inside its
    template's effective range
  - every worked cover (confirmed or completed) they accepted whose session
    has started

Read-only; nothing here writes.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Literal

from config import CENTRE_TZ, DEFAULT_HOURLY_RATE
from cover_repo import list_worked_covers
from cover_time import centre_today, session_start_on
from models import Instructor, Session
from outcome import Outcome, failure, success
from session_repo import get_session, list_permanent_sessions
from template_repo import get_template
from time_rules import day_of_week
from user_repo import get_user


@dataclass
class BreakdownItem:
    kind: Literal["session", "cover"]
    class_name: str
    venue: str
    date: date
    start_time: str
    end_time: str
    hours: float
    rate: float
    earnings: float
    cover_id: str | None = None


@dataclass
class MonthStats:
    key: str  # "2024-03"
    month_name: str  # "March 2024"
    hours: float = 0.0
    sessions: int = 0
    covers: int = 0
    earnings: float = 0.0
    breakdown: list[BreakdownItem] = field(default_factory=list)

    def add(self, item: BreakdownItem) -> None:
        self.hours += item.hours
        self.earnings += item.earnings
        if item.kind == "cover":
            self.covers += 1
        else:
            self.sessions += 1
        self.breakdown.append(item)


@dataclass
class TotalStats:
    hours: float
    sessions: int
    covers: int
    earnings: float


@dataclass
class InstructorEarnings:
    instructor_id: int
    current_month: MonthStats
    previous_months: list[MonthStats]
    totals: TotalStats


def month_key(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def _empty_month(d: date) -> MonthStats:
    return MonthStats(key=month_key(d), month_name=d.strftime("%B %Y"))


def _occurrence_dates(session: Session, start: date, end_inclusive: date):
    """Dates in [start, end_inclusive] falling on the session's weekday."""
    if start > end_inclusive:
        return
    ahead = (session.day_of_week - day_of_week(start)) % 7
    d = start + timedelta(days=ahead)
    while d <= end_inclusive:
        yield d
        d += timedelta(days=7)


def _session_item(session: Session, d: date, rate: float, **extra) -> BreakdownItem:
    hours = session.duration / 60
    return BreakdownItem(
        class_name=session.class_name,
        venue=session.venue,
        date=d,
        start_time=session.start_time,
        end_time=session.end_time,
        hours=hours,
        rate=rate,
        earnings=round(hours * rate, 2),
        **extra,
    )


def permanent_occurrences(
    con: sqlite3.Connection, instructor: Instructor, now: datetime
) -> list[BreakdownItem]:
    rate = instructor.hourly_rate if instructor.hourly_rate is not None else DEFAULT_HOURLY_RATE
    today = centre_today(now)

    items: list[BreakdownItem] = []
    templates = {}
    for session in list_permanent_sessions(con, instructor.user_id):
        if session.template_id not in templates:
            templates[session.template_id] = get_template(con, session.template_id)
        template = templates[session.template_id]
        if template is None:
            continue

        last = min(template.effective_to - timedelta(days=1), today)
        for d in _occurrence_dates(session, template.effective_from, last):
            if session_start_on(session, d) >= now:
                continue
            items.append(_session_item(session, d, rate, kind="session"))
    return items


def worked_covers(
    con: sqlite3.Connection, instructor: Instructor, now: datetime
) -> list[BreakdownItem]:
    # no payment_rate: paid at the covering instructor's own rate
    own_rate = instructor.hourly_rate if instructor.hourly_rate is not None else DEFAULT_HOURLY_RATE
    items: list[BreakdownItem] = []
    for cover in list_worked_covers(con, instructor.user_id, now):
        session = get_session(con, cover.session_id)
        if session is None:
            continue
        rate = cover.payment_rate if cover.payment_rate is not None else own_rate
        items.append(
            _session_item(session, cover.cover_date, rate, kind="cover", cover_id=cover.cover_id)
        )
    return items


def instructor_earnings(
    con: sqlite3.Connection, instructor_id: int, now: datetime | None = None
) -> Outcome:
    now = (now or datetime.now(CENTRE_TZ)).astimezone(CENTRE_TZ)

    inst = get_user(con, instructor_id)
    if inst is None:
        return failure("instructor_not_found")
    if not isinstance(inst, Instructor):
        return failure("not_instructor")

    items = permanent_occurrences(con, inst, now) + worked_covers(con, inst, now)
    items.sort(key=lambda i: (i.date, i.start_time))

    months: dict[str, MonthStats] = {}
    for item in items:
        key = month_key(item.date)
        if key not in months:
            months[key] = _empty_month(item.date)
        months[key].add(item)

    for m in months.values():
        m.hours = round(m.hours, 2)
        m.earnings = round(m.earnings, 2)

    today = centre_today(now)
    current = months.pop(month_key(today), None) or _empty_month(today)
    previous = sorted(months.values(), key=lambda m: m.key, reverse=True)

    everything = [current, *previous]
    totals = TotalStats(
        hours=round(sum(m.hours for m in everything), 2),
        sessions=sum(m.sessions for m in everything),
        covers=sum(m.covers for m in everything),
        earnings=round(sum(m.earnings for m in everything), 2),
    )
    return success(
        InstructorEarnings(
            instructor_id=instructor_id,
            current_month=current,
            previous_months=previous,
            totals=totals,
        )
    )


def month_for(report: InstructorEarnings, key: str) -> MonthStats | None:
    if report.current_month.key == key:
        return report.current_month
    for m in report.previous_months:
        if m.key == key:
            return m
    return None
