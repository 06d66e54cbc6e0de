# src/cover_service.py
"""
Cover request lifecycle.

    open -> accepted -> confirmed -> completed
    accepted -> open            (admin decline / instructor withdraw)
    open | accepted -> cancelled

Every transition re-checks the current status inside the write and returns
an Outcome; a lost race surfaces as the same invalid_state code a stale
caller would get.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime

from audit import AuditContext, AuditSink, SqliteAuditSink, emit
from config import CENTRE_TZ
from cover_repo import (
    count_by_status,
    find_live_cover,
    get_cover,
    insert_cover,
    list_accepted_by,
    list_confirmed_started_before,
    mark_accepted,
    mark_cancelled,
    mark_completed,
    mark_confirmed,
    reopen,
    set_payment_status as _set_payment_status,
)
from cover_repo import list_covers as _list_covers
from cover_time import centre_today, session_end_on, session_start_on, urgency_for, weekday_mismatch
from db import write_txn
from eligibility import eligible_instructors_for_cover, is_eligible
from models import PAYMENT_STATUSES, URGENCIES, CoverRequest, Instructor, Session
from notifications import NotificationSender, NullNotificationSender
from outcome import Outcome, failure, success
from session_repo import get_session
from user_repo import get_user
from user_service import require_admin, require_approved_instructor

logger = logging.getLogger(__name__)


def _sink(con: sqlite3.Connection, audit: AuditSink | None) -> AuditSink:
    return audit if audit is not None else SqliteAuditSink(con)


def _notify(
    con: sqlite3.Connection,
    notifier: NotificationSender | None,
    cover: CoverRequest,
    session: Session,
) -> None:
    """Tell eligible instructors a cover is open. Never fails the caller."""
    if notifier is None:
        notifier = NullNotificationSender()
    try:
        eligible_ids, _ = eligible_instructors_for_cover(con, cover.cover_id)
        instructors = [u for u in (get_user(con, i) for i in eligible_ids) if isinstance(u, Instructor)]
        notifier.notify_eligible_instructors(cover, session, instructors)
    except Exception:
        logger.exception("notifying instructors about %s failed", cover.cover_id)


def _open_cover(
    con: sqlite3.Connection,
    session: Session,
    cover: CoverRequest,
) -> Outcome:
    """Insert inside the caller's write_txn; the live-slot index backs the duplicate check."""
    existing = find_live_cover(con, session.session_id, cover.cover_date)
    if existing is not None:
        return failure(f"duplicate_request({existing.cover_id})")
    try:
        insert_cover(con, cover)
    except sqlite3.IntegrityError:
        return failure("duplicate_request")
    return success(cover)


# ----------------------------
# Creation
# ----------------------------
def create_cover(
    con: sqlite3.Connection,
    session_id: int,
    cover_date,
    admin_id: int,
    urgency: str = "normal",
    reason: str = "",
    payment_rate: float | None = None,
    notifier: NotificationSender | None = None,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """Admin raises a cover for one occurrence of a session."""
    now = now or datetime.now(CENTRE_TZ)

    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    if urgency not in URGENCIES:
        return failure("invalid_urgency")
    if payment_rate is not None and payment_rate < 0:
        return failure("invalid_payment_rate")

    with write_txn(con):
        session = get_session(con, session_id)
        if session is None:
            return failure("session_not_found")

        # date-only comparison
        if cover_date < centre_today(now):
            return failure("past_date")
        mismatch = weekday_mismatch(session, cover_date)
        if mismatch:
            return failure(mismatch)

        cover = CoverRequest(
            cover_id="",
            session_id=session_id,
            cover_date=cover_date,
            session_datetime=session_start_on(session, cover_date),
            urgency=urgency,
            status="open",
            requested_by=admin_id,
            requested_at=now,
            requested_for=session.permanent_instructor_id,
            reason=reason,
            payment_rate=payment_rate,
        )
        res = _open_cover(con, session, cover)
        if not res.ok:
            return res

    emit(
        _sink(con, audit),
        "cover_request_created",
        "CoverRequest",
        cover.cover_id,
        ctx,
        admin_id,
        {
            "sessionName": session.class_name,
            "coverDate": cover_date.isoformat(),
            "urgency": urgency,
        },
        now,
    )
    logger.info("cover %s created for session %s on %s", cover.cover_id, session_id, cover_date)
    _notify(con, notifier, cover, session)
    return success(cover)


def request_cover(
    con: sqlite3.Connection,
    session_id: int,
    cover_date,
    instructor_id: int,
    reason: str = "",
    notifier: NotificationSender | None = None,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """
    A permanent instructor asks for cover on one of their own sessions.
    Urgency comes from how far away the session is.
    """
    now = now or datetime.now(CENTRE_TZ)

    guard = require_approved_instructor(con, instructor_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        session = get_session(con, session_id)
        if session is None or session.permanent_instructor_id != instructor_id:
            return failure("not_your_session")

        if cover_date < centre_today(now):
            return failure("past_date")
        mismatch = weekday_mismatch(session, cover_date)
        if mismatch:
            return failure(mismatch)

        session_at = session_start_on(session, cover_date)
        if session_at <= now:
            return failure("too_late")

        cover = CoverRequest(
            cover_id="",
            session_id=session_id,
            cover_date=cover_date,
            session_datetime=session_at,
            urgency=urgency_for(session_at, now),
            status="open",
            requested_by=instructor_id,
            requested_at=now,
            requested_for=instructor_id,
            reason=reason,
        )
        res = _open_cover(con, session, cover)
        if not res.ok:
            return res

    emit(
        _sink(con, audit),
        "instructor_cover_request",
        "CoverRequest",
        cover.cover_id,
        ctx,
        instructor_id,
        {
            "sessionName": session.class_name,
            "coverDate": cover_date.isoformat(),
            "urgency": cover.urgency,
            "reason": reason,
        },
        now,
    )
    logger.info("instructor %s requested cover %s", instructor_id, cover.cover_id)
    _notify(con, notifier, cover, session)
    return success(cover)


# ----------------------------
# Transitions
# ----------------------------
def accept_cover(
    con: sqlite3.Connection,
    cover_id: str,
    instructor_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    now = now or datetime.now(CENTRE_TZ)

    with write_txn(con):
        cover = get_cover(con, cover_id)
        if cover is None:
            return failure("cover_not_found")

        guard = require_approved_instructor(con, instructor_id)
        if not guard.ok:
            return guard
        inst: Instructor = guard.value

        if cover.status != "open":
            return failure(f"cover_not_open({cover.status})")
        if cover.requested_for == instructor_id:
            return failure("self_acceptance")
        if cover.session_datetime < now:
            return failure("session_passed")

        session = get_session(con, cover.session_id)
        if session is None:
            return failure("session_not_found")
        if not is_eligible(inst.qualifications, session.required_qualifications):
            return failure("unqualified")

        if not mark_accepted(con, cover_id, instructor_id, now):
            return failure("cover_not_open")

    emit(
        _sink(con, audit),
        "cover_request_accepted",
        "CoverRequest",
        cover_id,
        ctx,
        instructor_id,
        {"sessionName": session.class_name, "coverDate": cover.cover_date.isoformat()},
        now,
    )
    logger.info("cover %s accepted by %s", cover_id, instructor_id)
    return success(get_cover(con, cover_id))


def confirm_cover(
    con: sqlite3.Connection,
    cover_id: str,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    now = now or datetime.now(CENTRE_TZ)

    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        cover = get_cover(con, cover_id)
        if cover is None:
            return failure("cover_not_found")
        if cover.status != "accepted":
            return failure(f"cover_not_accepted({cover.status})")
        if not mark_confirmed(con, cover_id, admin_id, now):
            return failure("cover_not_accepted")

    emit(
        _sink(con, audit),
        "cover_request_confirmed",
        "CoverRequest",
        cover_id,
        ctx,
        admin_id,
        {"acceptedBy": cover.accepted_by},
        now,
    )
    logger.info("cover %s confirmed by admin %s", cover_id, admin_id)
    return success(get_cover(con, cover_id))


def decline_cover(
    con: sqlite3.Connection,
    cover_id: str,
    admin_id: int,
    notifier: NotificationSender | None = None,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """Admin turns down an acceptance; the cover goes back to open."""
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        cover = get_cover(con, cover_id)
        if cover is None:
            return failure("cover_not_found")
        if cover.status != "accepted":
            return failure(f"cover_not_accepted({cover.status})")
        if not reopen(con, cover_id):
            return failure("cover_not_accepted")

    emit(
        _sink(con, audit),
        "cover_acceptance_declined",
        "CoverRequest",
        cover_id,
        ctx,
        admin_id,
        {"declinedInstructor": cover.accepted_by},
        now,
    )
    logger.info("cover %s: acceptance by %s declined", cover_id, cover.accepted_by)

    reopened = get_cover(con, cover_id)
    session = get_session(con, reopened.session_id)
    if session is not None:
        _notify(con, notifier, reopened, session)
    return success(reopened)


def withdraw_acceptance(
    con: sqlite3.Connection,
    cover_id: str,
    instructor_id: int,
    notifier: NotificationSender | None = None,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """The accepting instructor backs out before confirmation."""
    with write_txn(con):
        cover = get_cover(con, cover_id)
        if cover is None:
            return failure("cover_not_found")
        if cover.status != "accepted":
            return failure(f"cover_not_accepted({cover.status})")
        if cover.accepted_by != instructor_id:
            return failure("not_your_acceptance")
        if not reopen(con, cover_id, accepted_by=instructor_id):
            return failure("cover_not_accepted")

    emit(
        _sink(con, audit),
        "cover_acceptance_declined",
        "CoverRequest",
        cover_id,
        ctx,
        instructor_id,
        {"declinedInstructor": instructor_id, "withdrawn": True},
        now,
    )
    logger.info("cover %s: instructor %s withdrew", cover_id, instructor_id)

    reopened = get_cover(con, cover_id)
    session = get_session(con, reopened.session_id)
    if session is not None:
        _notify(con, notifier, reopened, session)
    return success(reopened)


def cancel_cover(
    con: sqlite3.Connection,
    cover_id: str,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """open or accepted -> cancelled. Confirmed and finished covers stay put."""
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        cover = get_cover(con, cover_id)
        if cover is None:
            return failure("cover_not_found")
        if cover.status not in ("open", "accepted"):
            return failure(f"cover_not_cancellable({cover.status})")
        if not mark_cancelled(con, cover_id):
            return failure("cover_not_cancellable")

    emit(
        _sink(con, audit),
        "cover_request_cancelled",
        "CoverRequest",
        cover_id,
        ctx,
        admin_id,
        {"previousStatus": cover.status},
        now,
    )
    logger.info("cover %s cancelled (was %s)", cover_id, cover.status)
    return success(get_cover(con, cover_id))


def complete_elapsed_covers(
    con: sqlite3.Connection,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    """
    Sweep: confirmed covers whose session has ended become completed.
    Returns the list of cover ids moved.
    """
    now = now or datetime.now(CENTRE_TZ)

    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        due: list[str] = []
        for cover in list_confirmed_started_before(con, now):
            session = get_session(con, cover.session_id)
            if session is None or session_end_on(session, cover.cover_date) <= now:
                due.append(cover.cover_id)
        moved = mark_completed(con, due)

    sink = _sink(con, audit)
    for cover_id in moved:
        emit(sink, "cover_request_completed", "CoverRequest", cover_id, ctx, admin_id, {}, now)

    if moved:
        logger.info("completed %d elapsed cover(s)", len(moved))
    return success(moved)


def set_payment_status(
    con: sqlite3.Connection,
    cover_id: str,
    payment_status: str,
    admin_id: int,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard
    if payment_status not in PAYMENT_STATUSES:
        return failure("invalid_payment_status")

    with write_txn(con):
        cover = get_cover(con, cover_id)
        if cover is None:
            return failure("cover_not_found")
        if not _set_payment_status(con, cover_id, payment_status):
            return failure("cover_not_confirmed")

    emit(
        _sink(con, audit),
        "cover_payment_updated",
        "CoverRequest",
        cover_id,
        ctx,
        admin_id,
        {"from": cover.payment_status, "to": payment_status},
        now,
    )
    return success(get_cover(con, cover_id))


# ----------------------------
# Reads
# ----------------------------
@dataclass
class CoverCounts:
    open: int
    accepted: int
    confirmed: int

    @property
    def total(self) -> int:
        return self.open + self.accepted + self.confirmed


def cover_counts(con: sqlite3.Connection) -> CoverCounts:
    counts = count_by_status(con)
    return CoverCounts(
        open=counts.get("open", 0),
        accepted=counts.get("accepted", 0),
        confirmed=counts.get("confirmed", 0),
    )


def list_covers(con: sqlite3.Connection, status: str, limit: int | None = None) -> list[CoverRequest]:
    return _list_covers(con, status, limit)


def accepted_awaiting_confirmation(con: sqlite3.Connection, instructor_id: int | None = None) -> list[CoverRequest]:
    """One instructor's accepted covers, or the whole coordinator queue when instructor_id is None."""
    if instructor_id is None:
        return _list_covers(con, "accepted")
    return list_accepted_by(con, instructor_id)
