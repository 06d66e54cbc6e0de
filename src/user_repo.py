# src/user_repo.py
from __future__ import annotations

import sqlite3
from datetime import datetime

from models import Admin, Instructor, InstructorPreferences, InstructorStats, User
from parse_helpers import iso_or_none, join_pipe, parse_dt, split_pipe


def _row_to_user(row: sqlite3.Row) -> User:
    if row["role"] == "admin":
        return Admin(
            user_id=row["user_id"],
            email=row["email"],
            first_name=row["first_name"],
            last_name=row["last_name"],
            status=row["status"],
            phone=row["phone"],
            created_at=parse_dt(row["created_at"]),
            slack_user_id=row["slack_user_id"],
        )

    return Instructor(
        user_id=row["user_id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        status=row["status"],
        phone=row["phone"],
        created_at=parse_dt(row["created_at"]),
        qualifications=frozenset(split_pipe(row["qualifications"])),
        hourly_rate=row["hourly_rate"],
        max_hours_per_week=row["max_hours_per_week"],
        slack_user_id=row["slack_user_id"],
        preferences=InstructorPreferences(
            email_digest=row["email_digest"],
            cover_types=split_pipe(row["cover_types"]),
            min_notice_hours=row["min_notice_hours"],
            max_distance_from_venue=row["max_distance_from_venue"],
        ),
        stats=InstructorStats(
            total_hours_worked=row["total_hours_worked"],
            reliability_score=row["reliability_score"],
            last_active=parse_dt(row["last_active"]),
        ),
        approved_at=parse_dt(row["approved_at"]),
        approved_by=row["approved_by"],
    )


def insert_user(con: sqlite3.Connection, user: User) -> int:
    """
    Inserts the user and sets user.user_id from the autoincrement id.
    IMPORTANT: does NOT commit. Caller decides.
    """
    if isinstance(user, Instructor):
        extra = (
            join_pipe(user.qualifications),
            user.hourly_rate,
            user.max_hours_per_week,
            user.slack_user_id,
            user.preferences.email_digest,
            join_pipe(user.preferences.cover_types),
            user.preferences.min_notice_hours,
            user.preferences.max_distance_from_venue,
        )
    else:
        extra = ("", None, None, user.slack_user_id, "immediate", "", 24, None)

    cur = con.execute(
        """
        INSERT INTO users (
          email, role, status, first_name, last_name, phone, created_at,
          qualifications, hourly_rate, max_hours_per_week, slack_user_id,
          email_digest, cover_types, min_notice_hours, max_distance_from_venue
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            user.email.lower(),
            user.role,
            user.status,
            user.first_name,
            user.last_name,
            user.phone,
            iso_or_none(user.created_at),
            *extra,
        ),
    )
    user.user_id = cur.lastrowid
    return user.user_id


def get_user(con: sqlite3.Connection, user_id: int) -> User | None:
    row = con.execute("SELECT * FROM users WHERE user_id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def get_user_by_email(con: sqlite3.Connection, email: str) -> User | None:
    row = con.execute(
        "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
    ).fetchone()
    return _row_to_user(row) if row else None


def get_user_by_slack(con: sqlite3.Connection, slack_user_id: str) -> User | None:
    row = con.execute(
        "SELECT * FROM users WHERE slack_user_id = ?",
        (slack_user_id,),
    ).fetchone()
    return _row_to_user(row) if row else None


def list_instructors(
    con: sqlite3.Connection, status: str | None = None
) -> list[Instructor]:
    if status is None:
        rows = con.execute(
            "SELECT * FROM users WHERE role = 'instructor' ORDER BY status ASC, created_at DESC"
        ).fetchall()
    else:
        rows = con.execute(
            """
            SELECT * FROM users
            WHERE role = 'instructor' AND status = ?
            ORDER BY first_name ASC, last_name ASC
            """,
            (status,),
        ).fetchall()
    return [_row_to_user(r) for r in rows]


def set_status(
    con: sqlite3.Connection,
    user_id: int,
    status: str,
    approved_at: datetime | None = None,
    approved_by: int | None = None,
) -> None:
    con.execute(
        """
        UPDATE users
        SET status = ?,
            approved_at = COALESCE(?, approved_at),
            approved_by = COALESCE(?, approved_by)
        WHERE user_id = ?
        """,
        (status, iso_or_none(approved_at), approved_by, user_id),
    )


def delete_user(con: sqlite3.Connection, user_id: int) -> None:
    con.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
