# src/cover_repo.py
from __future__ import annotations

import sqlite3
from datetime import date, datetime

from config import CENTRE_TZ
from models import LIVE_COVER_STATUSES, WORKED_COVER_STATUSES, CoverRequest
from parse_helpers import parse_date, parse_dt, utc_iso

_LIVE = ", ".join(f"'{s}'" for s in LIVE_COVER_STATUSES)
_WORKED = ", ".join(f"'{s}'" for s in WORKED_COVER_STATUSES)


def _local(v: str | None) -> datetime | None:
    dt = parse_dt(v)
    return dt.astimezone(CENTRE_TZ) if dt else None


def _row_to_cover(row: sqlite3.Row) -> CoverRequest:
    return CoverRequest(
        cover_id=row["cover_id"],
        session_id=row["session_id"],
        cover_date=parse_date(row["cover_date"]),
        session_datetime=_local(row["session_datetime"]),
        urgency=row["urgency"],
        status=row["status"],
        requested_by=row["requested_by"],
        requested_at=_local(row["requested_at"]),
        requested_for=row["requested_for"],
        reason=row["reason"],
        accepted_by=row["accepted_by"],
        accepted_at=_local(row["accepted_at"]),
        confirmed_by=row["confirmed_by"],
        confirmed_at=_local(row["confirmed_at"]),
        payment_rate=row["payment_rate"],
        payment_status=row["payment_status"],
    )


def insert_cover(con: sqlite3.Connection, cover: CoverRequest) -> str:
    """
    Inserts cover with a numeric autoincrement id, then sets cover_id like C000001.
    IMPORTANT: does NOT commit. Caller decides.
    Raises sqlite3.IntegrityError if a live cover already holds (session, date).
    """
    cur = con.execute(
        """
        INSERT INTO cover_requests (
          cover_id, session_id, cover_date, session_datetime, urgency, status, reason,
          requested_by, requested_for, requested_at, payment_rate, payment_status
        )
        VALUES (NULL, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            cover.session_id,
            cover.cover_date.isoformat(),
            utc_iso(cover.session_datetime),
            cover.urgency,
            cover.status,
            cover.reason,
            cover.requested_by,
            cover.requested_for,
            utc_iso(cover.requested_at),
            cover.payment_rate,
            cover.payment_status,
        ),
    )
    new_id = cur.lastrowid
    cover_id = f"C{new_id:06d}"

    con.execute("UPDATE cover_requests SET cover_id = ? WHERE id = ?", (cover_id, new_id))
    cover.cover_id = cover_id
    return cover_id


def get_cover(con: sqlite3.Connection, cover_id: str) -> CoverRequest | None:
    row = con.execute(
        "SELECT * FROM cover_requests WHERE cover_id = ?", (cover_id,)
    ).fetchone()
    return _row_to_cover(row) if row else None


def find_live_cover(
    con: sqlite3.Connection, session_id: int, cover_date: date
) -> CoverRequest | None:
    row = con.execute(
        f"""
        SELECT * FROM cover_requests
        WHERE session_id = ? AND cover_date = ? AND status IN ({_LIVE})
        """,
        (session_id, cover_date.isoformat()),
    ).fetchone()
    return _row_to_cover(row) if row else None


# ----------------------------
# Conditional transitions. Each returns True only if the row was in the
# expected state, so a lost race is visible to the caller.
# IMPORTANT: none of these commit.
# ----------------------------
def mark_accepted(
    con: sqlite3.Connection, cover_id: str, instructor_id: int, at: datetime
) -> bool:
    cur = con.execute(
        """
        UPDATE cover_requests
        SET status = 'accepted', accepted_by = ?, accepted_at = ?
        WHERE cover_id = ? AND status = 'open'
        """,
        (instructor_id, utc_iso(at), cover_id),
    )
    return cur.rowcount == 1


def mark_confirmed(
    con: sqlite3.Connection, cover_id: str, admin_id: int, at: datetime
) -> bool:
    cur = con.execute(
        """
        UPDATE cover_requests
        SET status = 'confirmed', confirmed_by = ?, confirmed_at = ?
        WHERE cover_id = ? AND status = 'accepted'
        """,
        (admin_id, utc_iso(at), cover_id),
    )
    return cur.rowcount == 1


def reopen(
    con: sqlite3.Connection, cover_id: str, accepted_by: int | None = None
) -> bool:
    """accepted -> open. With accepted_by set, only that instructor's acceptance is undone."""
    if accepted_by is None:
        cur = con.execute(
            """
            UPDATE cover_requests
            SET status = 'open', accepted_by = NULL, accepted_at = NULL
            WHERE cover_id = ? AND status = 'accepted'
            """,
            (cover_id,),
        )
    else:
        cur = con.execute(
            """
            UPDATE cover_requests
            SET status = 'open', accepted_by = NULL, accepted_at = NULL
            WHERE cover_id = ? AND status = 'accepted' AND accepted_by = ?
            """,
            (cover_id, accepted_by),
        )
    return cur.rowcount == 1


def mark_cancelled(con: sqlite3.Connection, cover_id: str) -> bool:
    cur = con.execute(
        """
        UPDATE cover_requests
        SET status = 'cancelled'
        WHERE cover_id = ? AND status IN ('open', 'accepted')
        """,
        (cover_id,),
    )
    return cur.rowcount == 1


def mark_completed(con: sqlite3.Connection, cover_ids: list[str]) -> list[str]:
    """confirmed -> completed. Returns the cover_ids actually moved."""
    moved: list[str] = []
    for cover_id in cover_ids:
        cur = con.execute(
            """
            UPDATE cover_requests SET status = 'completed'
            WHERE cover_id = ? AND status = 'confirmed'
            """,
            (cover_id,),
        )
        if cur.rowcount == 1:
            moved.append(cover_id)
    return moved


def set_payment_status(con: sqlite3.Connection, cover_id: str, payment_status: str) -> bool:
    cur = con.execute(
        f"""
        UPDATE cover_requests SET payment_status = ?
        WHERE cover_id = ? AND status IN ({_WORKED})
        """,
        (payment_status, cover_id),
    )
    return cur.rowcount == 1


# ----------------------------
# Queries
# ----------------------------
def list_covers(con: sqlite3.Connection, status: str, limit: int | None = None) -> list[CoverRequest]:
    sql = "SELECT * FROM cover_requests WHERE status = ? ORDER BY session_datetime ASC"
    params: tuple = (status,)
    if limit is not None:
        sql += " LIMIT ?"
        params = (status, limit)
    return [_row_to_cover(r) for r in con.execute(sql, params).fetchall()]


def list_open_covers_for(
    con: sqlite3.Connection, instructor_id: int, now: datetime
) -> list[CoverRequest]:
    """Open covers not raised for this instructor whose session hasn't started."""
    rows = con.execute(
        """
        SELECT * FROM cover_requests
        WHERE status = 'open'
          AND (requested_for IS NULL OR requested_for != ?)
          AND session_datetime >= ?
        ORDER BY session_datetime ASC
        """,
        (instructor_id, utc_iso(now)),
    ).fetchall()
    return [_row_to_cover(r) for r in rows]


def list_accepted_by(con: sqlite3.Connection, instructor_id: int) -> list[CoverRequest]:
    rows = con.execute(
        """
        SELECT * FROM cover_requests
        WHERE status = 'accepted' AND accepted_by = ?
        ORDER BY session_datetime ASC
        """,
        (instructor_id,),
    ).fetchall()
    return [_row_to_cover(r) for r in rows]


def list_worked_covers(
    con: sqlite3.Connection, instructor_id: int, before: datetime
) -> list[CoverRequest]:
    rows = con.execute(
        f"""
        SELECT * FROM cover_requests
        WHERE accepted_by = ? AND status IN ({_WORKED}) AND session_datetime < ?
        ORDER BY cover_date ASC
        """,
        (instructor_id, utc_iso(before)),
    ).fetchall()
    return [_row_to_cover(r) for r in rows]


def list_confirmed_started_before(con: sqlite3.Connection, before: datetime) -> list[CoverRequest]:
    rows = con.execute(
        """
        SELECT * FROM cover_requests
        WHERE status = 'confirmed' AND session_datetime < ?
        ORDER BY session_datetime ASC
        """,
        (utc_iso(before),),
    ).fetchall()
    return [_row_to_cover(r) for r in rows]


def list_live_covers_between(
    con: sqlite3.Connection, session_ids: list[int], start: date, end: date
) -> list[CoverRequest]:
    if not session_ids:
        return []
    marks = ", ".join("?" for _ in session_ids)
    rows = con.execute(
        f"""
        SELECT * FROM cover_requests
        WHERE session_id IN ({marks})
          AND cover_date >= ? AND cover_date <= ?
          AND status IN ({_LIVE})
        """,
        (*session_ids, start.isoformat(), end.isoformat()),
    ).fetchall()
    return [_row_to_cover(r) for r in rows]


def count_by_status(con: sqlite3.Connection) -> dict[str, int]:
    rows = con.execute(
        "SELECT status, COUNT(*) AS n FROM cover_requests GROUP BY status"
    ).fetchall()
    return {r["status"]: r["n"] for r in rows}
