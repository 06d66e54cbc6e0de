import sqlite3
from datetime import date, datetime

import pytest

from config import CENTRE_TZ
from cover_service import create_cover
from template_repo import get_template, set_status
from timetable_service import (
    activate_template,
    add_session,
    create_template,
    find_active_template,
    instructor_week,
    is_endless,
    list_templates,
    retire_session,
    template_sessions,
)


def _session(con, admin, template, start, end, venue="Pool", day=1, **kw):
    return add_session(
        con, template.template_id, admin.user_id, class_name="Lane Swim", day=day,
        start_time=start, end_time=end, venue=venue, **kw,
    )


def test_no_double_booking(con, admin, template, pool_session):
    res = _session(con, admin, template, "09:30", "10:30")

    assert res.code == f"session_conflict({pool_session.session_id})"
    assert res.kind == "conflict"


def test_adjacent_and_other_venue_sessions_fit(con, admin, template, pool_session):
    assert _session(con, admin, template, "10:00", "11:00").ok
    assert _session(con, admin, template, "09:00", "10:00", venue="Gym").ok
    assert _session(con, admin, template, "09:00", "10:00", day=2).ok

    assert get_template(con, template.template_id).session_count == 4
    ordered = [(s.day_of_week, s.start_time) for s in template_sessions(con, template.template_id)]
    assert ordered == sorted(ordered)


def test_add_session_validation(con, admin, template, alice):
    assert _session(con, admin, template, "10:00", "09:00").code == "invalid_time_range"
    assert _session(con, admin, template, "9am", "10:00").code == "invalid_time_format"
    assert _session(con, admin, template, "09:00", "09:10").code == "session_too_short(15)"
    assert _session(con, admin, template, "09:00", "10:00", day=7).code == "invalid_day_of_week"
    assert _session(con, admin, template, "09:00", "10:00", assignment_type="floating").code == "invalid_assignment_type"
    assert add_session(con, 999, admin.user_id, "X", 1, "09:00", "10:00", "Pool").code == "template_not_found"
    assert _session(con, alice, template, "09:00", "10:00").code == "not_admin"


def test_duration_and_padding(con, admin, template):
    res = _session(con, admin, template, "7:30", "9:00")
    assert res.ok
    assert (res.value.start_time, res.value.end_time, res.value.duration) == ("07:30", "09:00", 90)


def test_permanent_instructor_kept_only_for_permanent(con, admin, template, alice):
    res = _session(con, admin, template, "12:00", "13:00", assignment_type="open", permanent_instructor_id=alice.user_id)
    assert res.value.permanent_instructor_id is None

    res = _session(con, admin, template, "14:00", "15:00", assignment_type="permanent", permanent_instructor_id=4242)
    assert res.code == "instructor_not_found"


def test_single_active_template(con, admin, template, now):
    second = create_template(con, "Summer", "weekly", date(2024, 7, 1), date(2024, 9, 1), admin.user_id, now=now).value
    third = create_template(con, "Autumn", "bi-weekly", date(2024, 9, 1), date(2024, 12, 1), admin.user_id, now=now).value

    for t in (second, third, second, template):
        assert activate_template(con, t.template_id, admin.user_id, now=now).ok
        active = [x for x in list_templates(con) if x.status == "active"]
        assert [x.template_id for x in active] == [t.template_id]

    assert find_active_template(con).template_id == template.template_id
    assert get_template(con, second.template_id).status == "archived"


def test_activate_guards(con, admin, template, now):
    res = activate_template(con, template.template_id, admin.user_id, now=now)
    assert res.code == "template_already_active"
    assert res.kind == "invalid_state"
    assert activate_template(con, 999, admin.user_id, now=now).code == "template_not_found"


def test_create_template_validation(con, admin, now):
    assert create_template(con, "X", "monthly", date(2024, 1, 1), date(2024, 2, 1), admin.user_id, now=now).code == "invalid_template_type"
    assert create_template(con, "X", "weekly", date(2024, 2, 1), date(2024, 2, 1), admin.user_id, now=now).code == "invalid_date_range"


def test_endless_template(con, admin, now):
    res = create_template(con, "Forever", "weekly", date(2024, 1, 1), None, admin.user_id, now=now)

    assert res.ok
    assert res.value.status == "draft"
    assert res.value.effective_to == date(2124, 1, 1)
    assert is_endless(res.value)


def test_endless_template_cannot_overlap_active(con, admin, template, now):
    res = create_template(con, "Forever", "weekly", date(2024, 6, 1), None, admin.user_id, now=now)
    assert res.code == "endless_overlaps_active"

    # with an end date the same range is fine
    assert create_template(con, "Summer", "weekly", date(2024, 6, 1), date(2024, 9, 1), admin.user_id, now=now).ok


def test_archived_template_takes_no_sessions(con, admin, template, now):
    other = create_template(con, "Next", "weekly", date(2025, 1, 1), date(2025, 12, 31), admin.user_id, now=now).value
    activate_template(con, other.template_id, admin.user_id, now=now)

    assert _session(con, admin, template, "09:00", "10:00").code == "template_archived"


def test_retire_session(con, admin, template, pool_session):
    assert retire_session(con, pool_session.session_id, admin.user_id).ok
    assert get_template(con, template.template_id).session_count == 0
    assert template_sessions(con, template.template_id) == []
    assert retire_session(con, pool_session.session_id, admin.user_id).code == "session_not_found"

    # the slot is free again
    assert _session(con, admin, template, "09:00", "10:00").ok


def test_instructor_week(con, admin, template, pool_session, alice, now):
    # Friday 1 March: this week's Monday (26 Feb) has gone
    week = instructor_week(con, alice.user_id, now)
    assert week.week_start == date(2024, 2, 26)
    assert [(s.date, s.is_past, s.can_request_cover) for s in week.slots] == [(date(2024, 2, 26), True, False)]
    assert week.can_go_previous and week.can_go_next

    cover = create_cover(con, pool_session.session_id, date(2024, 3, 4), admin.user_id, now=now).value
    next_week = instructor_week(con, alice.user_id, now, week_offset=1)
    slot = next_week.slots[0]
    assert slot.date == date(2024, 3, 4)
    assert slot.cover.cover_id == cover.cover_id
    assert not slot.can_request_cover
    assert next_week.upcoming == [slot]


def test_instructor_week_bounded_by_template(con, admin, template, pool_session, alice):
    first_week = datetime(2024, 1, 3, 12, 0, tzinfo=CENTRE_TZ)
    week = instructor_week(con, alice.user_id, first_week)
    assert week.week_start == date(2024, 1, 1)
    assert not week.can_go_previous

    monday = datetime(2024, 1, 1, 8, 0, tzinfo=CENTRE_TZ)
    today = instructor_week(con, alice.user_id, monday)
    assert [s.is_same_day for s in today.slots] == [True]
    assert today.today[0].can_request_cover


def test_one_active_index_rejects_second_active(con, admin, template, now):
    draft = create_template(con, "Summer", "weekly", date(2024, 7, 1), date(2024, 9, 1), admin.user_id, now=now).value

    with pytest.raises(sqlite3.IntegrityError):
        set_status(con, draft.template_id, "active")
    con.rollback()

    assert get_template(con, draft.template_id).status == "draft"
    assert find_active_template(con).template_id == template.template_id
