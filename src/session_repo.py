# src/session_repo.py
from __future__ import annotations

import sqlite3

from models import Session
from parse_helpers import join_pipe, split_pipe


def _row_to_session(row: sqlite3.Row) -> Session:
    return Session(
        session_id=row["session_id"],
        template_id=row["template_id"],
        class_name=row["class_name"],
        day_of_week=row["day_of_week"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        duration=row["duration"],
        venue=row["venue"],
        assignment_type=row["assignment_type"],
        created_by=row["created_by"],
        permanent_instructor_id=row["permanent_instructor_id"],
        required_qualifications=frozenset(split_pipe(row["required_qualifications"])),
        description=row["description"],
        max_participants=row["max_participants"],
        is_active=bool(row["is_active"]),
    )


def insert_session(con: sqlite3.Connection, s: Session) -> int:
    """IMPORTANT: does NOT commit. Caller decides."""
    cur = con.execute(
        """
        INSERT INTO sessions (
          template_id, class_name, description, day_of_week, start_time, end_time,
          duration, venue, max_participants, assignment_type, permanent_instructor_id,
          required_qualifications, is_active, created_by
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            s.template_id,
            s.class_name,
            s.description,
            s.day_of_week,
            s.start_time,
            s.end_time,
            s.duration,
            s.venue,
            s.max_participants,
            s.assignment_type,
            s.permanent_instructor_id,
            join_pipe(s.required_qualifications),
            int(s.is_active),
            s.created_by,
        ),
    )
    s.session_id = cur.lastrowid
    return s.session_id


def get_session(con: sqlite3.Connection, session_id: int) -> Session | None:
    row = con.execute(
        "SELECT * FROM sessions WHERE session_id = ?", (session_id,)
    ).fetchone()
    return _row_to_session(row) if row else None


def list_template_sessions(con: sqlite3.Connection, template_id: int) -> list[Session]:
    rows = con.execute(
        """
        SELECT * FROM sessions
        WHERE template_id = ? AND is_active = 1
        ORDER BY day_of_week ASC, start_time ASC
        """,
        (template_id,),
    ).fetchall()
    return [_row_to_session(r) for r in rows]


def list_slot_sessions(
    con: sqlite3.Connection, template_id: int, day_of_week: int, venue: str
) -> list[Session]:
    """Active sessions sharing a (template, day, venue) slot. Overlap is decided in Python."""
    rows = con.execute(
        """
        SELECT * FROM sessions
        WHERE template_id = ? AND day_of_week = ? AND venue = ? AND is_active = 1
        ORDER BY start_time ASC
        """,
        (template_id, day_of_week, venue),
    ).fetchall()
    return [_row_to_session(r) for r in rows]


def list_permanent_sessions(
    con: sqlite3.Connection, instructor_id: int, template_id: int | None = None
) -> list[Session]:
    if template_id is None:
        rows = con.execute(
            """
            SELECT * FROM sessions
            WHERE permanent_instructor_id = ? AND is_active = 1
            ORDER BY day_of_week ASC, start_time ASC
            """,
            (instructor_id,),
        ).fetchall()
    else:
        rows = con.execute(
            """
            SELECT * FROM sessions
            WHERE permanent_instructor_id = ? AND template_id = ? AND is_active = 1
            ORDER BY day_of_week ASC, start_time ASC
            """,
            (instructor_id, template_id),
        ).fetchall()
    return [_row_to_session(r) for r in rows]


def deactivate_session(con: sqlite3.Connection, session_id: int) -> bool:
    cur = con.execute(
        "UPDATE sessions SET is_active = 0 WHERE session_id = ? AND is_active = 1",
        (session_id,),
    )
    return cur.rowcount == 1
