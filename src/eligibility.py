# src/eligibility.py
"""
Who may accept a cover.

Qualification matching is deliberately fuzzy: an instructor qualifies when
ANY required qualification and ANY held qualification contain one another
as a case-insensitive substring ("Senior Lifeguard" satisfies "lifeguard",
and "Yoga" satisfies "Yoga Level 3"). It is not exact-set matching, and an
empty requirement set admits everyone.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime

from cover_repo import get_cover, list_accepted_by, list_open_covers_for
from cover_time import opportunity_sort_key
from models import CoverRequest, Instructor, Session
from session_repo import get_session
from user_repo import get_user, list_instructors


def qualification_matches(held: str, required: str) -> bool:
    a = held.lower()
    b = required.lower()
    return a in b or b in a


def is_eligible(instructor_qualifications, required_qualifications) -> bool:
    required = list(required_qualifications or [])
    if not required:
        return True
    held = list(instructor_qualifications or [])
    return any(qualification_matches(h, r) for r in required for h in held)


def eligibility_reasons(instructor: Instructor, cover: CoverRequest, session: Session) -> list[str]:
    reasons: list[str] = []

    if not instructor.is_approved:
        reasons.append("instructor_not_approved")

    # can't pick up your own session
    if cover.requested_for is not None and cover.requested_for == instructor.user_id:
        reasons.append("is_requested_for")

    if not is_eligible(instructor.qualifications, session.required_qualifications):
        reasons.append("unqualified")

    return reasons


def eligible_instructors_for_cover(
    con: sqlite3.Connection, cover_id: str
) -> tuple[list[int], dict[int, list[str]]]:
    """
    Returns (eligible instructor ids, {rejected id: reason codes}) over approved instructors.
    """
    cover = get_cover(con, cover_id)
    if cover is None:
        raise ValueError(f"cover_not_found: {cover_id}")
    session = get_session(con, cover.session_id)
    if session is None:
        raise ValueError(f"session_not_found: {cover.session_id}")

    eligible: list[int] = []
    rejected: dict[int, list[str]] = {}

    for inst in list_instructors(con, status="approved"):
        reasons = eligibility_reasons(inst, cover, session)
        if reasons:
            rejected[inst.user_id] = reasons
        else:
            eligible.append(inst.user_id)

    return eligible, rejected


@dataclass
class CoverOpportunity:
    cover: CoverRequest
    session: Session


@dataclass
class OpportunityBoard:
    open_requests: list[CoverOpportunity]
    accepted_requests: list[CoverOpportunity]

    @property
    def urgent_count(self) -> int:
        return sum(1 for o in self.open_requests if o.cover.urgency == "urgent")


def list_open_opportunities(
    con: sqlite3.Connection, instructor_id: int, now: datetime
) -> list[CoverOpportunity]:
    """
    Open covers this instructor could accept right now, most urgent first,
    then soonest. Empty for unknown or unapproved instructors.
    """
    inst = get_user(con, instructor_id)
    if not isinstance(inst, Instructor) or not inst.is_approved:
        return []

    out: list[CoverOpportunity] = []
    for cover in list_open_covers_for(con, instructor_id, now):
        session = get_session(con, cover.session_id)
        if session is None:
            continue
        if not is_eligible(inst.qualifications, session.required_qualifications):
            continue
        out.append(CoverOpportunity(cover=cover, session=session))

    out.sort(key=lambda o: opportunity_sort_key(o.cover.urgency, o.cover.session_datetime))
    return out


def opportunity_board(
    con: sqlite3.Connection, instructor_id: int, now: datetime
) -> OpportunityBoard:
    accepted: list[CoverOpportunity] = []
    for cover in list_accepted_by(con, instructor_id):
        session = get_session(con, cover.session_id)
        if session is not None:
            accepted.append(CoverOpportunity(cover=cover, session=session))

    return OpportunityBoard(
        open_requests=list_open_opportunities(con, instructor_id, now),
        accepted_requests=accepted,
    )
