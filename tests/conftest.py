import os

os.environ.setdefault("CENTRE_TZ", "Europe/London")

from datetime import date, datetime

import pytest

from config import CENTRE_TZ
from db import get_con, init_db
from template_repo import get_template
from timetable_service import activate_template, add_session, create_template
from user_service import approve_instructor, create_admin, register_instructor

# Friday lunchtime, three days before the Monday the scenarios cover
NOW = datetime(2024, 3, 1, 12, 0, tzinfo=CENTRE_TZ)


@pytest.fixture
def con():
    c = get_con(":memory:")
    init_db(c)
    yield c
    c.close()


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def admin(con):
    return create_admin(con, "admin@centre.test", "Ada", "Admin", slack_user_id="UADMIN", now=NOW).value


def make_instructor(con, admin, email, first_name, qualifications, approve=True, **kw):
    res = register_instructor(con, email, first_name, "Tester", qualifications=qualifications, now=NOW, **kw)
    assert res.ok, res.code
    if not approve:
        return res.value
    res = approve_instructor(con, res.value.user_id, admin.user_id, now=NOW)
    assert res.ok, res.code
    return res.value


@pytest.fixture
def alice(con, admin):
    return make_instructor(con, admin, "alice@centre.test", "Alice", ["Pool Lifeguard"], hourly_rate=30.0, slack_user_id="UALICE")


@pytest.fixture
def bob(con, admin):
    return make_instructor(con, admin, "bob@centre.test", "Bob", ["Senior Lifeguard"], slack_user_id="UBOB")


@pytest.fixture
def carol(con, admin):
    return make_instructor(con, admin, "carol@centre.test", "Carol", ["lifeguard", "First Aid"])


@pytest.fixture
def dave(con, admin):
    # qualified for yoga only
    return make_instructor(con, admin, "dave@centre.test", "Dave", ["Yoga"])


@pytest.fixture
def template(con, admin):
    res = create_template(con, "2024 Timetable", "weekly", date(2024, 1, 1), date(2024, 12, 31), admin.user_id, now=NOW)
    assert res.ok, res.code
    assert activate_template(con, res.value.template_id, admin.user_id, now=NOW).ok
    return get_template(con, res.value.template_id)


@pytest.fixture
def pool_session(con, admin, template, alice):
    # Monday 09:00-10:00 in the Pool, Alice teaches it
    res = add_session(
        con,
        template.template_id,
        admin.user_id,
        class_name="Aqua Fit",
        day=1,
        start_time="09:00",
        end_time="10:00",
        venue="Pool",
        assignment_type="permanent",
        permanent_instructor_id=alice.user_id,
        required_qualifications=["Lifeguard"],
        now=NOW,
    )
    assert res.ok, res.code
    return res.value


@pytest.fixture
def studio_session(con, admin, template):
    # Wednesday 18:00-19:00, open assignment, no requirements
    res = add_session(
        con,
        template.template_id,
        admin.user_id,
        class_name="Spin",
        day=3,
        start_time="18:00",
        end_time="19:00",
        venue="Studio 1",
        assignment_type="open",
        now=NOW,
    )
    assert res.ok, res.code
    return res.value
