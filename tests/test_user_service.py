from audit import MemoryAuditSink
from models import Instructor
from session_repo import get_session
from user_repo import get_user
from user_service import (
    approve_instructor,
    create_admin,
    delete_instructor,
    instructor_roster,
    register_instructor,
    reject_instructor,
    suspend_instructor,
)

from conftest import NOW, make_instructor


def test_register_starts_pending(con):
    res = register_instructor(con, " Zoe@Centre.Test ", "Zoe", "Swim", qualifications=["Lifeguard", " "], now=NOW)

    assert res.ok
    inst = get_user(con, res.value.user_id)
    assert isinstance(inst, Instructor)
    assert inst.status == "pending"
    assert inst.email == "zoe@centre.test"
    assert inst.qualifications == frozenset({"Lifeguard"})
    assert inst.preferences.min_notice_hours == 24
    assert inst.stats.reliability_score == 5


def test_email_taken_case_insensitive(con, admin):
    register_instructor(con, "zoe@centre.test", "Zoe", "Swim", now=NOW)

    assert register_instructor(con, "ZOE@centre.test", "Zoe", "Again", now=NOW).code == "email_taken"
    assert create_admin(con, "zoe@centre.test", "Zoe", "Boss", now=NOW).code == "email_taken"


def test_negative_rate_rejected(con):
    assert register_instructor(con, "x@centre.test", "X", "Y", hourly_rate=-5, now=NOW).code == "invalid_payment_rate"


def test_approve_records_reviewer(con, admin):
    pending = make_instructor(con, admin, "p@centre.test", "Pat", [], approve=False)
    sink = MemoryAuditSink()

    res = approve_instructor(con, pending.user_id, admin.user_id, audit=sink, now=NOW)

    assert res.ok
    assert res.value.status == "approved"
    assert res.value.approved_by == admin.user_id
    assert res.value.approved_at == NOW
    assert [e.action for e in sink.events] == ["instructor_approved"]


def test_review_guards(con, admin, bob):
    assert approve_instructor(con, bob.user_id, bob.user_id).code == "not_admin"
    assert approve_instructor(con, 999, 12345).code == "user_not_found"
    assert approve_instructor(con, admin.user_id, admin.user_id).code == "not_instructor"
    assert reject_instructor(con, 999, admin.user_id).code == "instructor_not_found"


def test_reject_and_suspend(con, admin, bob, carol):
    assert reject_instructor(con, bob.user_id, admin.user_id).value.status == "rejected"
    assert suspend_instructor(con, carol.user_id, admin.user_id).value.status == "suspended"

    roster = instructor_roster(con)
    assert [i.user_id for i in roster.rejected] == [bob.user_id]
    assert [i.user_id for i in roster.suspended] == [carol.user_id]
    assert roster.pending == [] and roster.approved == []


def test_delete_instructor_audits_first(con, admin, pool_session, alice):
    sink = MemoryAuditSink()

    res = delete_instructor(con, alice.user_id, admin.user_id, audit=sink)

    assert res.ok
    assert get_user(con, alice.user_id) is None
    assert sink.events[0].action == "instructor_deleted"
    assert sink.events[0].details["instructorEmail"] == "alice@centre.test"
    # the session stays but loses its permanent instructor
    assert get_session(con, pool_session.session_id).permanent_instructor_id is None
