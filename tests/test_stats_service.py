from datetime import date, datetime

from config import CENTRE_TZ, DEFAULT_HOURLY_RATE
from cover_service import accept_cover, confirm_cover, create_cover
from stats_service import instructor_earnings, month_for

from conftest import make_instructor

MID_MARCH = datetime(2024, 3, 20, 12, 0, tzinfo=CENTRE_TZ)


def test_permanent_occurrences_by_month(con, pool_session, alice):
    report = instructor_earnings(con, alice.user_id, MID_MARCH).value

    # Mondays from 1 Jan: 5 in January, 4 in February, 3 so far in March
    assert report.current_month.key == "2024-03"
    assert report.current_month.month_name == "March 2024"
    assert report.current_month.sessions == 3
    assert report.current_month.hours == 3.0
    assert report.current_month.earnings == 90.0  # Alice's own rate
    assert [(m.key, m.sessions) for m in report.previous_months] == [("2024-02", 4), ("2024-01", 5)]
    assert report.totals.sessions == 12
    assert report.totals.earnings == 360.0


def test_occurrence_counts_only_once_started(con, pool_session, alice):
    before = datetime(2024, 3, 18, 8, 59, tzinfo=CENTRE_TZ)
    after = datetime(2024, 3, 18, 9, 1, tzinfo=CENTRE_TZ)

    assert instructor_earnings(con, alice.user_id, before).value.current_month.sessions == 2
    assert instructor_earnings(con, alice.user_id, after).value.current_month.sessions == 3


def test_cover_rate_and_breakdown(con, admin, pool_session, bob, now):
    cover = create_cover(con, pool_session.session_id, date(2024, 3, 4), admin.user_id, payment_rate=40.0, now=now).value
    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, now=now)

    report = instructor_earnings(con, bob.user_id, MID_MARCH).value

    march = month_for(report, "2024-03")
    assert (march.sessions, march.covers, march.earnings) == (0, 1, 40.0)
    item = march.breakdown[0]
    assert item.kind == "cover"
    assert item.cover_id == cover.cover_id
    assert item.class_name == "Aqua Fit"
    assert report.previous_months == []


def test_unconfirmed_and_future_covers_not_counted(con, admin, pool_session, bob, carol, now):
    accepted_only = create_cover(con, pool_session.session_id, date(2024, 3, 4), admin.user_id, now=now).value
    accept_cover(con, accepted_only.cover_id, bob.user_id, now=now)

    future = create_cover(con, pool_session.session_id, date(2024, 3, 25), admin.user_id, now=now).value
    accept_cover(con, future.cover_id, carol.user_id, now=now)
    confirm_cover(con, future.cover_id, admin.user_id, now=now)

    assert instructor_earnings(con, bob.user_id, MID_MARCH).value.totals.covers == 0
    assert instructor_earnings(con, carol.user_id, MID_MARCH).value.totals.covers == 0


def test_empty_current_month(con, bob):
    report = instructor_earnings(con, bob.user_id, MID_MARCH).value
    assert report.current_month.key == "2024-03"
    assert report.current_month.breakdown == []
    assert report.totals.hours == 0


def test_unknown_or_admin(con, admin):
    assert instructor_earnings(con, 999, MID_MARCH).code == "instructor_not_found"
    assert instructor_earnings(con, admin.user_id, MID_MARCH).code == "not_instructor"


def test_cover_without_rate_uses_instructors_own_rate(con, admin, studio_session, now):
    erin = make_instructor(con, admin, "erin@centre.test", "Erin", ["Spin"], hourly_rate=40.0)
    cover = create_cover(con, studio_session.session_id, date(2024, 3, 6), admin.user_id, now=now).value
    accept_cover(con, cover.cover_id, erin.user_id, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, now=now)

    march = month_for(instructor_earnings(con, erin.user_id, MID_MARCH).value, "2024-03")

    assert march.earnings == 40.0
    assert march.breakdown[0].rate == 40.0


def test_cover_without_any_rate_uses_default(con, admin, studio_session, bob, now):
    cover = create_cover(con, studio_session.session_id, date(2024, 3, 6), admin.user_id, now=now).value
    accept_cover(con, cover.cover_id, bob.user_id, now=now)
    confirm_cover(con, cover.cover_id, admin.user_id, now=now)

    march = month_for(instructor_earnings(con, bob.user_id, MID_MARCH).value, "2024-03")

    assert march.breakdown[0].rate == DEFAULT_HOURLY_RATE
    assert march.earnings == DEFAULT_HOURLY_RATE
