import sqlite3
from dataclasses import replace
from datetime import date, datetime

import pytest

from audit import MemoryAuditSink
from audit_repo import entity_history
from config import CENTRE_TZ
from cover_repo import get_cover, insert_cover
from cover_service import (
    accept_cover,
    accepted_awaiting_confirmation,
    cancel_cover,
    complete_elapsed_covers,
    confirm_cover,
    cover_counts,
    create_cover,
    decline_cover,
    list_covers,
    request_cover,
    set_payment_status,
    withdraw_acceptance,
)
from stats_service import instructor_earnings, month_for

from conftest import make_instructor

MONDAY = date(2024, 3, 4)


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def notify_eligible_instructors(self, cover, session, instructors):
        self.calls.append((cover.cover_id, sorted(i.user_id for i in instructors)))


class ExplodingSink:
    def record(self, event):
        raise RuntimeError("audit store down")


class ExplodingNotifier:
    def notify_eligible_instructors(self, cover, session, instructors):
        raise RuntimeError("smtp down")


def open_cover(con, admin, session, now, **kw):
    res = create_cover(con, session.session_id, MONDAY, admin.user_id, now=now, **kw)
    assert res.ok, res.code
    return res.value


# ----------------------------
# Scenarios
# ----------------------------
def test_happy_path(con, admin, template, pool_session, alice, bob, now):
    cover = open_cover(con, admin, pool_session, now)
    assert cover.status == "open"
    assert cover.requested_for == alice.user_id
    assert cover.session_datetime == datetime(2024, 3, 4, 9, 0, tzinfo=CENTRE_TZ)

    accepted = accept_cover(con, cover.cover_id, bob.user_id, now=now)
    assert accepted.ok, accepted.code
    assert accepted.value.status == "accepted"
    assert accepted.value.accepted_by == bob.user_id

    confirmed = confirm_cover(con, cover.cover_id, admin.user_id, now=now)
    assert confirmed.ok, confirmed.code
    assert get_cover(con, cover.cover_id).status == "confirmed"

    report = instructor_earnings(con, bob.user_id, datetime(2024, 3, 20, 12, 0, tzinfo=CENTRE_TZ)).value
    march = month_for(report, "2024-03")
    assert march.covers == 1
    assert march.hours == 1.0
    assert march.earnings == 25.0


def test_duplicate_rejected(con, admin, pool_session, now):
    first = open_cover(con, admin, pool_session, now)

    again = create_cover(con, pool_session.session_id, MONDAY, admin.user_id, now=now)

    assert not again.ok
    assert again.code == f"duplicate_request({first.cover_id})"
    assert again.kind == "conflict"


def test_duplicate_allowed_after_cancel(con, admin, pool_session, now):
    first = open_cover(con, admin, pool_session, now)
    assert cancel_cover(con, first.cover_id, admin.user_id, now=now).ok

    again = create_cover(con, pool_session.session_id, MONDAY, admin.user_id, now=now)
    assert again.ok
    assert again.value.cover_id != first.cover_id


def test_decline_reopens(con, admin, pool_session, bob, carol, now):
    cover = open_cover(con, admin, pool_session, now)
    assert accept_cover(con, cover.cover_id, bob.user_id, now=now).ok

    declined = decline_cover(con, cover.cover_id, admin.user_id, now=now)

    assert declined.ok
    assert declined.value.status == "open"
    assert declined.value.accepted_by is None
    assert declined.value.accepted_at is None
    assert accept_cover(con, cover.cover_id, carol.user_id, now=now).ok


def test_past_date_rejected(con, admin, pool_session, now):
    res = create_cover(con, pool_session.session_id, date(2024, 2, 26), admin.user_id, now=now)
    assert res.code == "past_date"
    assert res.kind == "invalid_input"


def test_today_is_not_past(con, admin, pool_session):
    # date-only comparison: later the same day is still allowed for admins
    monday_noon = datetime(2024, 3, 4, 12, 0, tzinfo=CENTRE_TZ)
    assert create_cover(con, pool_session.session_id, MONDAY, admin.user_id, now=monday_noon).ok


def test_cover_date_must_fall_on_session_day(con, admin, pool_session, now):
    res = create_cover(con, pool_session.session_id, date(2024, 3, 5), admin.user_id, now=now)
    assert res.code == "cover_date_day_mismatch(Monday)"
    assert "Monday" in res.message


def test_create_validation(con, admin, pool_session, bob, now):
    assert create_cover(con, 999, MONDAY, admin.user_id, now=now).code == "session_not_found"
    assert create_cover(con, pool_session.session_id, MONDAY, admin.user_id, urgency="asap", now=now).code == "invalid_urgency"
    assert create_cover(con, pool_session.session_id, MONDAY, admin.user_id, payment_rate=-1, now=now).code == "invalid_payment_rate"
    assert create_cover(con, pool_session.session_id, MONDAY, bob.user_id, now=now).code == "not_admin"


# ----------------------------
# Instructor requests
# ----------------------------
def test_request_cover_derives_urgency(con, pool_session, alice, now):
    # Friday noon -> Monday 09:00 is 69 hours away
    res = request_cover(con, pool_session.session_id, MONDAY, alice.user_id, reason="Holiday", now=now)
    assert res.ok, res.code
    assert res.value.urgency == "normal"
    assert res.value.requested_by == alice.user_id
    assert res.value.requested_for == alice.user_id

    sunday = datetime(2024, 3, 10, 12, 0, tzinfo=CENTRE_TZ)
    urgent = request_cover(con, pool_session.session_id, date(2024, 3, 11), alice.user_id, now=sunday)
    assert urgent.value.urgency == "urgent"

    planned = request_cover(con, pool_session.session_id, date(2024, 3, 25), alice.user_id, now=sunday)
    assert planned.value.urgency == "advance_planned"


def test_request_cover_only_for_own_session(con, pool_session, bob, now):
    res = request_cover(con, pool_session.session_id, MONDAY, bob.user_id, now=now)
    assert res.code == "not_your_session"
    assert res.kind == "forbidden"


def test_request_cover_too_late(con, pool_session, alice):
    started = datetime(2024, 3, 4, 9, 30, tzinfo=CENTRE_TZ)
    res = request_cover(con, pool_session.session_id, MONDAY, alice.user_id, now=started)
    assert res.code == "too_late"
    assert res.kind == "temporal"


# ----------------------------
# Accept guards
# ----------------------------
def test_accept_guards(con, admin, pool_session, alice, bob, dave, now):
    cover = open_cover(con, admin, pool_session, now)

    assert accept_cover(con, "C999999", bob.user_id, now=now).code == "cover_not_found"
    assert accept_cover(con, cover.cover_id, alice.user_id, now=now).code == "self_acceptance"
    assert accept_cover(con, cover.cover_id, dave.user_id, now=now).code == "unqualified"

    late = datetime(2024, 3, 4, 9, 1, tzinfo=CENTRE_TZ)
    assert accept_cover(con, cover.cover_id, bob.user_id, now=late).code == "session_passed"

    pending = make_instructor(con, admin, "pending@centre.test", "Penny", ["Lifeguard"], approve=False)
    assert accept_cover(con, cover.cover_id, pending.user_id, now=now).code == "instructor_not_approved"

    assert get_cover(con, cover.cover_id).status == "open"


def test_second_acceptance_loses(con, admin, pool_session, bob, carol, now):
    cover = open_cover(con, admin, pool_session, now)
    assert accept_cover(con, cover.cover_id, bob.user_id, now=now).ok

    res = accept_cover(con, cover.cover_id, carol.user_id, now=now)

    assert res.code == "cover_not_open(accepted)"
    assert res.kind == "invalid_state"
    assert get_cover(con, cover.cover_id).accepted_by == bob.user_id


def test_withdraw_acceptance(con, admin, pool_session, bob, carol, now):
    cover = open_cover(con, admin, pool_session, now)
    accept_cover(con, cover.cover_id, bob.user_id, now=now)

    assert withdraw_acceptance(con, cover.cover_id, carol.user_id, now=now).code == "not_your_acceptance"

    res = withdraw_acceptance(con, cover.cover_id, bob.user_id, now=now)
    assert res.ok
    assert res.value.status == "open"
    assert res.value.accepted_by is None


# ----------------------------
# State machine closure
# ----------------------------
def test_confirmed_is_terminal_for_core_transitions(con, admin, pool_session, bob, carol, now):
    cover = open_cover(con, admin, pool_session, now)
    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, now=now)

    assert accept_cover(con, cover.cover_id, carol.user_id, now=now).code == "cover_not_open(confirmed)"
    assert confirm_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_accepted(confirmed)"
    assert decline_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_accepted(confirmed)"
    assert cancel_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_cancellable(confirmed)"
    assert get_cover(con, cover.cover_id).status == "confirmed"


def test_cancelled_is_terminal(con, admin, pool_session, bob, now):
    cover = open_cover(con, admin, pool_session, now)
    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    assert cancel_cover(con, cover.cover_id, admin.user_id, now=now).ok

    assert accept_cover(con, cover.cover_id, bob.user_id, now=now).code == "cover_not_open(cancelled)"
    assert confirm_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_accepted(cancelled)"
    assert decline_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_accepted(cancelled)"
    assert cancel_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_cancellable(cancelled)"


def test_open_cannot_be_confirmed_or_declined(con, admin, pool_session, now):
    cover = open_cover(con, admin, pool_session, now)
    assert confirm_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_accepted(open)"
    assert decline_cover(con, cover.cover_id, admin.user_id, now=now).code == "cover_not_accepted(open)"


def test_complete_elapsed_covers(con, admin, pool_session, bob, now):
    cover = open_cover(con, admin, pool_session, now)
    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, now=now)

    during = datetime(2024, 3, 4, 9, 30, tzinfo=CENTRE_TZ)
    assert complete_elapsed_covers(con, admin.user_id, now=during).value == []

    after = datetime(2024, 3, 4, 10, 30, tzinfo=CENTRE_TZ)
    assert complete_elapsed_covers(con, admin.user_id, now=after).value == [cover.cover_id]
    assert get_cover(con, cover.cover_id).status == "completed"

    # completed covers still count as worked
    report = instructor_earnings(con, bob.user_id, after).value
    assert report.current_month.covers == 1


def test_payment_status(con, admin, pool_session, bob, now):
    cover = open_cover(con, admin, pool_session, now, payment_rate=32.5)
    assert set_payment_status(con, cover.cover_id, "approved", admin.user_id).code == "cover_not_confirmed"

    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, now=now)

    assert set_payment_status(con, cover.cover_id, "bogus", admin.user_id).code == "invalid_payment_status"
    res = set_payment_status(con, cover.cover_id, "paid", admin.user_id)
    assert res.ok
    assert res.value.payment_status == "paid"


# ----------------------------
# Reads
# ----------------------------
def test_counts_and_queues(con, admin, pool_session, studio_session, bob, now):
    a = open_cover(con, admin, pool_session, now)
    b = create_cover(con, studio_session.session_id, date(2024, 3, 6), admin.user_id, now=now).value
    accept_cover(con, b.cover_id, bob.user_id, now=now)

    counts = cover_counts(con)
    assert (counts.open, counts.accepted, counts.confirmed, counts.total) == (1, 1, 0, 2)

    assert [c.cover_id for c in list_covers(con, "open")] == [a.cover_id]
    assert [c.cover_id for c in accepted_awaiting_confirmation(con)] == [b.cover_id]
    assert [c.cover_id for c in accepted_awaiting_confirmation(con, bob.user_id)] == [b.cover_id]


# ----------------------------
# Side effects
# ----------------------------
def test_notifies_eligible_instructors(con, admin, pool_session, alice, bob, carol, dave, now):
    notifier = RecordingNotifier()
    cover = open_cover(con, admin, pool_session, now, notifier=notifier)

    assert notifier.calls == [(cover.cover_id, sorted([bob.user_id, carol.user_id]))]

    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    decline_cover(con, cover.cover_id, admin.user_id, notifier=notifier, now=now)
    assert len(notifier.calls) == 2


def test_side_effect_failures_are_swallowed(con, admin, pool_session, bob, now):
    res = create_cover(
        con,
        pool_session.session_id,
        MONDAY,
        admin.user_id,
        notifier=ExplodingNotifier(),
        audit=ExplodingSink(),
        now=now,
    )
    assert res.ok
    assert accept_cover(con, res.value.cover_id, bob.user_id, audit=ExplodingSink(), now=now).ok


def test_transitions_are_audited(con, admin, pool_session, bob, now):
    sink = MemoryAuditSink()
    cover = open_cover(con, admin, pool_session, now, audit=sink)
    accept_cover(con, cover.cover_id, bob.user_id, audit=sink, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, audit=sink, now=now)

    assert [e.action for e in sink.events] == [
        "cover_request_created",
        "cover_request_accepted",
        "cover_request_confirmed",
    ]
    assert all(e.entity_type == "CoverRequest" and e.entity_id == cover.cover_id for e in sink.events)
    assert sink.events[1].performed_by == bob.user_id


def test_default_sink_writes_audit_log(con, admin, pool_session, now):
    cover = open_cover(con, admin, pool_session, now)

    history = entity_history(con, "CoverRequest", cover.cover_id)

    assert [e.action for e in history] == ["cover_request_created"]
    assert history[0].details["coverDate"] == "2024-03-04"


# ----------------------------
# Live-slot index
# ----------------------------
def test_live_slot_index_rejects_second_live_cover(con, admin, pool_session, now):
    cover = open_cover(con, admin, pool_session, now)

    with pytest.raises(sqlite3.IntegrityError):
        insert_cover(con, replace(cover, cover_id=""))
    con.rollback()

    assert [c.cover_id for c in list_covers(con, "open")] == [cover.cover_id]


def test_duplicate_reported_when_lookup_misses_it(con, admin, pool_session, now, monkeypatch):
    # a concurrent writer got in between the lookup and the insert
    first = open_cover(con, admin, pool_session, now)
    monkeypatch.setattr("cover_service.find_live_cover", lambda *args: None)

    res = create_cover(con, pool_session.session_id, MONDAY, admin.user_id, now=now)

    assert res.code == "duplicate_request"
    assert res.kind == "conflict"
    assert [c.cover_id for c in list_covers(con, "open")] == [first.cover_id]


def test_cancelled_cover_frees_the_slot_in_the_index(con, admin, pool_session, now):
    first = open_cover(con, admin, pool_session, now)
    assert cancel_cover(con, first.cover_id, admin.user_id, now=now).ok

    again = insert_cover(con, replace(first, cover_id="", status="open"))
    con.commit()

    assert get_cover(con, again).status == "open"
