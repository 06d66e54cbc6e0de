# src/template_repo.py
from __future__ import annotations

import sqlite3

from models import TimetableTemplate
from parse_helpers import parse_date, parse_dt


def _row_to_template(row: sqlite3.Row) -> TimetableTemplate:
    return TimetableTemplate(
        template_id=row["template_id"],
        name=row["name"],
        template_type=row["template_type"],
        status=row["status"],
        effective_from=parse_date(row["effective_from"]),
        effective_to=parse_date(row["effective_to"]),
        session_count=row["session_count"],
        created_by=row["created_by"],
        created_at=parse_dt(row["created_at"]),
    )


def insert_template(con: sqlite3.Connection, t: TimetableTemplate) -> int:
    """IMPORTANT: does NOT commit. Caller decides."""
    cur = con.execute(
        """
        INSERT INTO timetable_templates (
          name, template_type, status, effective_from, effective_to,
          session_count, created_by, created_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            t.name,
            t.template_type,
            t.status,
            t.effective_from.isoformat(),
            t.effective_to.isoformat(),
            t.session_count,
            t.created_by,
            t.created_at.isoformat(),
        ),
    )
    t.template_id = cur.lastrowid
    return t.template_id


def get_template(con: sqlite3.Connection, template_id: int) -> TimetableTemplate | None:
    row = con.execute(
        "SELECT * FROM timetable_templates WHERE template_id = ?", (template_id,)
    ).fetchone()
    return _row_to_template(row) if row else None


def find_active(con: sqlite3.Connection) -> TimetableTemplate | None:
    row = con.execute(
        "SELECT * FROM timetable_templates WHERE status = 'active'"
    ).fetchone()
    return _row_to_template(row) if row else None


def list_templates(con: sqlite3.Connection) -> list[TimetableTemplate]:
    rows = con.execute(
        "SELECT * FROM timetable_templates ORDER BY created_at DESC, template_id DESC"
    ).fetchall()
    return [_row_to_template(r) for r in rows]


def archive_active(con: sqlite3.Connection) -> int:
    cur = con.execute(
        "UPDATE timetable_templates SET status = 'archived' WHERE status = 'active'"
    )
    return cur.rowcount


def set_status(con: sqlite3.Connection, template_id: int, status: str) -> None:
    con.execute(
        "UPDATE timetable_templates SET status = ? WHERE template_id = ?",
        (status, template_id),
    )


def bump_session_count(con: sqlite3.Connection, template_id: int, delta: int) -> None:
    con.execute(
        """
        UPDATE timetable_templates
        SET session_count = MAX(session_count + ?, 0)
        WHERE template_id = ?
        """,
        (delta, template_id),
    )
