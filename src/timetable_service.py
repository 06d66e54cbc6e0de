# src/timetable_service.py
"""
Timetable templates and their recurring weekly sessions.

Exactly one template is active at a time and it alone decides which sessions
make up "the" schedule; reads always look it up with find_active() rather
than by date.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from audit import AuditContext, AuditSink, SqliteAuditSink, emit
from config import CENTRE_TZ, ENDLESS_TEMPLATE_YEARS, MIN_SESSION_MINUTES
from cover_repo import list_live_covers_between
from cover_time import centre_today, session_start_on
from db import write_txn
from models import ASSIGNMENT_TYPES, TEMPLATE_TYPES, CoverRequest, Instructor, Session, TimetableTemplate
from outcome import Outcome, failure, success
from session_repo import (
    deactivate_session,
    get_session,
    insert_session,
    list_permanent_sessions,
    list_slot_sessions,
    list_template_sessions,
)
from template_repo import (
    archive_active,
    bump_session_count,
    find_active,
    get_template,
    insert_template,
    set_status,
)
from template_repo import list_templates as _list_templates
from time_rules import InvalidTimeRange, day_of_week, duration_minutes, normalize_hhmm, overlaps
from user_repo import get_user
from user_service import require_admin

logger = logging.getLogger(__name__)


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # 29 Feb -> 28 Feb
        return d.replace(year=d.year + years, day=28)


def endless_until(effective_from: date) -> date:
    return _add_years(effective_from, ENDLESS_TEMPLATE_YEARS)


def is_endless(t: TimetableTemplate) -> bool:
    return t.effective_to >= endless_until(t.effective_from)


def find_active_template(con: sqlite3.Connection) -> TimetableTemplate | None:
    return find_active(con)


# ----------------------------
# Templates
# ----------------------------
def create_template(
    con: sqlite3.Connection,
    name: str,
    template_type: str,
    effective_from: date,
    effective_to: date | None,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """
    New templates start in draft. effective_to=None means "no end date" and is
    stored as a far-future sentinel.
    """
    now = now or datetime.now(CENTRE_TZ)

    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    if template_type not in TEMPLATE_TYPES:
        return failure("invalid_template_type")

    endless = effective_to is None
    if endless:
        effective_to = endless_until(effective_from)
    elif effective_from >= effective_to:
        return failure("invalid_date_range")

    t = TimetableTemplate(
        template_id=0,
        name=name.strip(),
        template_type=template_type,
        status="draft",
        effective_from=effective_from,
        effective_to=effective_to,
        session_count=0,
        created_by=admin_id,
        created_at=now,
    )

    with write_txn(con):
        active = find_active(con)
        if (
            endless
            and active is not None
            and active.effective_from < effective_to
            and effective_from < active.effective_to
        ):
            return failure("endless_overlaps_active")
        insert_template(con, t)

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "timetable_template_created",
        "TimetableTemplate",
        t.template_id,
        ctx,
        admin_id,
        {"templateName": t.name, "templateType": t.template_type, "isEndless": endless},
        now,
    )
    logger.info("created template %s %r", t.template_id, t.name)
    return success(t)


def activate_template(
    con: sqlite3.Connection,
    template_id: int,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """
    Archive whatever is active and activate this one, in one transaction.
    """
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        t = get_template(con, template_id)
        if t is None:
            return failure("template_not_found")
        if t.status == "active":
            return failure("template_already_active")

        archived = archive_active(con)
        set_status(con, template_id, "active")

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "timetable_activated",
        "TimetableTemplate",
        template_id,
        ctx,
        admin_id,
        {"templateName": t.name},
        now,
    )
    logger.info("activated template %s (archived %d)", template_id, archived)
    return success(get_template(con, template_id))


# ----------------------------
# Sessions
# ----------------------------
def find_conflicts(
    con: sqlite3.Connection,
    template_id: int,
    day: int,
    start_time: str,
    end_time: str,
    venue: str,
) -> list[Session]:
    return [
        s
        for s in list_slot_sessions(con, template_id, day, venue)
        if overlaps(day, start_time, end_time, venue, s.day_of_week, s.start_time, s.end_time, s.venue)
    ]


def add_session(
    con: sqlite3.Connection,
    template_id: int,
    admin_id: int,
    class_name: str,
    day: int,
    start_time: str,
    end_time: str,
    venue: str,
    assignment_type: str = "open",
    permanent_instructor_id: int | None = None,
    required_qualifications=(),
    description: str = "",
    max_participants: int | None = None,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    if not isinstance(day, int) or not 0 <= day <= 6:
        return failure("invalid_day_of_week")
    if assignment_type not in ASSIGNMENT_TYPES:
        return failure("invalid_assignment_type")

    try:
        start_time = normalize_hhmm(start_time)
        end_time = normalize_hhmm(end_time)
    except ValueError:
        return failure("invalid_time_format")

    try:
        duration = duration_minutes(start_time, end_time)
    except InvalidTimeRange:
        return failure("invalid_time_range")
    if duration < MIN_SESSION_MINUTES:
        return failure(f"session_too_short({MIN_SESSION_MINUTES})")

    # only permanent sessions keep an assigned instructor
    if assignment_type != "permanent":
        permanent_instructor_id = None
    elif permanent_instructor_id is not None:
        inst = get_user(con, permanent_instructor_id)
        if not isinstance(inst, Instructor):
            return failure("instructor_not_found")

    s = Session(
        session_id=0,
        template_id=template_id,
        class_name=class_name.strip(),
        day_of_week=day,
        start_time=start_time,
        end_time=end_time,
        duration=duration,
        venue=venue.strip(),
        assignment_type=assignment_type,
        created_by=admin_id,
        permanent_instructor_id=permanent_instructor_id,
        required_qualifications=frozenset(q.strip() for q in required_qualifications if q.strip()),
        description=description,
        max_participants=max_participants,
    )

    with write_txn(con):
        t = get_template(con, template_id)
        if t is None:
            return failure("template_not_found")
        if t.status == "archived":
            return failure("template_archived")

        clashes = find_conflicts(con, template_id, day, start_time, end_time, s.venue)
        if clashes:
            return failure(f"session_conflict({clashes[0].session_id})")

        insert_session(con, s)
        bump_session_count(con, template_id, 1)

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "session_created",
        "Session",
        s.session_id,
        ctx,
        admin_id,
        {"sessionName": s.class_name, "templateName": t.name},
        now,
    )
    logger.info("added session %s %r to template %s", s.session_id, s.class_name, template_id)
    return success(s)


def retire_session(
    con: sqlite3.Connection,
    session_id: int,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """Take a session off its template. Existing covers are left alone."""
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        s = get_session(con, session_id)
        if s is None or not deactivate_session(con, session_id):
            return failure("session_not_found")
        bump_session_count(con, s.template_id, -1)

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "session_retired",
        "Session",
        session_id,
        ctx,
        admin_id,
        {"sessionName": s.class_name},
        now,
    )
    logger.info("retired session %s", session_id)
    return success(s)


def list_templates(con: sqlite3.Connection) -> list[TimetableTemplate]:
    """Newest first."""
    return _list_templates(con)


def template_sessions(con: sqlite3.Connection, template_id: int) -> list[Session]:
    return list_template_sessions(con, template_id)


# ----------------------------
# Instructor week view
# ----------------------------
@dataclass
class WeekSlot:
    session: Session
    date: date
    starts_at: datetime
    cover: CoverRequest | None
    is_past: bool
    is_same_day: bool
    can_request_cover: bool


@dataclass
class InstructorWeek:
    week_start: date  # Monday
    week_end: date  # Sunday
    slots: list[WeekSlot]
    can_go_previous: bool
    can_go_next: bool

    @property
    def today(self) -> list[WeekSlot]:
        return [s for s in self.slots if s.is_same_day]

    @property
    def upcoming(self) -> list[WeekSlot]:
        return [s for s in self.slots if not s.is_past and not s.is_same_day]


def instructor_week(
    con: sqlite3.Connection,
    instructor_id: int,
    now: datetime | None = None,
    week_offset: int = 0,
) -> InstructorWeek:
    """
    The instructor's permanent sessions in the active template for one
    Monday-to-Sunday week, each occurrence with its live cover (if any).
    """
    now = (now or datetime.now(CENTRE_TZ)).astimezone(CENTRE_TZ)
    today = centre_today(now)
    week_start = today - timedelta(days=today.weekday()) + timedelta(weeks=week_offset)
    week_end = week_start + timedelta(days=6)

    active = find_active(con)
    if active is None:
        return InstructorWeek(week_start, week_end, [], False, False)

    can_go_previous = week_start - timedelta(days=7) >= active.effective_from
    can_go_next = week_end + timedelta(days=7) < active.effective_to

    sessions = list_permanent_sessions(con, instructor_id, active.template_id)
    covers = list_live_covers_between(con, [s.session_id for s in sessions], week_start, week_end)
    cover_map = {(c.session_id, c.cover_date): c for c in covers}

    slots: list[WeekSlot] = []
    for offset in range(7):
        d = week_start + timedelta(days=offset)
        for s in sessions:
            if s.day_of_week != day_of_week(d):
                continue
            starts_at = session_start_on(s, d)
            cover = cover_map.get((s.session_id, d))
            is_past = starts_at < now
            slots.append(
                WeekSlot(
                    session=s,
                    date=d,
                    starts_at=starts_at,
                    cover=cover,
                    is_past=is_past,
                    is_same_day=d == today,
                    can_request_cover=not is_past and cover is None,
                )
            )

    return InstructorWeek(week_start, week_end, slots, can_go_previous, can_go_next)
