# src/user_service.py
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime

from audit import AuditContext, AuditSink, SqliteAuditSink, emit
from config import CENTRE_TZ
from db import write_txn
from models import Admin, Instructor, InstructorPreferences
from outcome import Outcome, failure, success
from user_repo import (
    delete_user,
    get_user,
    get_user_by_email,
    insert_user,
    list_instructors,
    set_status,
)

logger = logging.getLogger(__name__)


# ----------------------------
# Actor guards shared by the other services
# ----------------------------
def require_admin(con: sqlite3.Connection, user_id: int) -> Outcome:
    user = get_user(con, user_id)
    if user is None:
        return failure("user_not_found")
    if not isinstance(user, Admin):
        return failure("not_admin")
    return success(user)


def require_approved_instructor(con: sqlite3.Connection, user_id: int) -> Outcome:
    user = get_user(con, user_id)
    if user is None:
        return failure("instructor_not_found")
    if not isinstance(user, Instructor):
        return failure("not_instructor")
    if not user.is_approved:
        return failure("instructor_not_approved")
    return success(user)


# ----------------------------
# Registration
# ----------------------------
def register_instructor(
    con: sqlite3.Connection,
    email: str,
    first_name: str,
    last_name: str,
    qualifications=(),
    hourly_rate: float | None = None,
    max_hours_per_week: float | None = None,
    phone: str | None = None,
    slack_user_id: str | None = None,
    preferences: InstructorPreferences | None = None,
    now: datetime | None = None,
) -> Outcome:
    """New instructors start out pending until an admin approves them."""
    now = now or datetime.now(CENTRE_TZ)

    if hourly_rate is not None and hourly_rate < 0:
        return failure("invalid_payment_rate")

    inst = Instructor(
        user_id=0,
        email=email.strip().lower(),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        status="pending",
        phone=phone,
        created_at=now,
        qualifications=frozenset(q.strip() for q in qualifications if q.strip()),
        hourly_rate=hourly_rate,
        max_hours_per_week=max_hours_per_week,
        slack_user_id=slack_user_id or None,
        preferences=preferences or InstructorPreferences(),
    )

    with write_txn(con):
        if get_user_by_email(con, inst.email) is not None:
            return failure("email_taken")
        insert_user(con, inst)

    logger.info("registered instructor %s (%s)", inst.user_id, inst.email)
    return success(inst)


def create_admin(
    con: sqlite3.Connection,
    email: str,
    first_name: str,
    last_name: str,
    phone: str | None = None,
    slack_user_id: str | None = None,
    now: datetime | None = None,
) -> Outcome:
    admin = Admin(
        user_id=0,
        email=email.strip().lower(),
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        status="approved",
        phone=phone,
        created_at=now or datetime.now(CENTRE_TZ),
        slack_user_id=slack_user_id or None,
    )
    with write_txn(con):
        if get_user_by_email(con, admin.email) is not None:
            return failure("email_taken")
        insert_user(con, admin)

    logger.info("created admin %s (%s)", admin.user_id, admin.email)
    return success(admin)


# ----------------------------
# Admin review
# ----------------------------
def _review(
    con: sqlite3.Connection,
    instructor_id: int,
    admin_id: int,
    new_status: str,
    action: str,
    audit: AuditSink | None,
    ctx: AuditContext | None,
    now: datetime | None,
) -> Outcome:
    now = now or datetime.now(CENTRE_TZ)

    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        user = get_user(con, instructor_id)
        if user is None:
            return failure("instructor_not_found")
        if not isinstance(user, Instructor):
            return failure("not_instructor")

        if new_status == "approved":
            set_status(con, instructor_id, "approved", approved_at=now, approved_by=admin_id)
        else:
            set_status(con, instructor_id, new_status)

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        action,
        "User",
        instructor_id,
        ctx,
        admin_id,
        {"instructorEmail": user.email, "instructorName": user.full_name},
        now,
    )
    logger.info("%s: instructor %s by admin %s", action, instructor_id, admin_id)
    return success(get_user(con, instructor_id))


def approve_instructor(con, instructor_id: int, admin_id: int, audit=None, ctx=None, now=None) -> Outcome:
    return _review(con, instructor_id, admin_id, "approved", "instructor_approved", audit, ctx, now)


def reject_instructor(con, instructor_id: int, admin_id: int, audit=None, ctx=None, now=None) -> Outcome:
    return _review(con, instructor_id, admin_id, "rejected", "instructor_rejected", audit, ctx, now)


def suspend_instructor(con, instructor_id: int, admin_id: int, audit=None, ctx=None, now=None) -> Outcome:
    return _review(con, instructor_id, admin_id, "suspended", "instructor_suspended", audit, ctx, now)


def delete_instructor(
    con: sqlite3.Connection,
    instructor_id: int,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    user = get_user(con, instructor_id)
    if user is None:
        return failure("instructor_not_found")
    if not isinstance(user, Instructor):
        return failure("not_instructor")

    # logged before the row goes so the trail still names who was removed
    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "instructor_deleted",
        "User",
        instructor_id,
        ctx,
        admin_id,
        {
            "instructorEmail": user.email,
            "instructorName": user.full_name,
            "instructorStatus": user.status,
        },
        now,
    )

    with write_txn(con):
        delete_user(con, instructor_id)

    logger.info("deleted instructor %s by admin %s", instructor_id, admin_id)
    return success(user)


@dataclass
class InstructorRoster:
    pending: list[Instructor]
    approved: list[Instructor]
    rejected: list[Instructor]
    suspended: list[Instructor]


def instructor_roster(con: sqlite3.Connection) -> InstructorRoster:
    everyone = list_instructors(con)
    return InstructorRoster(
        pending=[i for i in everyone if i.status == "pending"],
        approved=[i for i in everyone if i.status == "approved"],
        rejected=[i for i in everyone if i.status == "rejected"],
        suspended=[i for i in everyone if i.status == "suspended"],
    )
