# src/audit_repo.py
from __future__ import annotations

import json
import sqlite3
from datetime import datetime

from models import AuditEvent
from parse_helpers import parse_dt, utc_iso


def _row_to_event(row: sqlite3.Row) -> AuditEvent:
    return AuditEvent(
        action=row["action"],
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        performed_by=row["performed_by"],
        details=json.loads(row["details"] or "{}"),
        ip_address=row["ip_address"],
        user_agent=row["user_agent"],
        performed_at=parse_dt(row["performed_at"]),
        retain_until=parse_dt(row["retain_until"]),
    )


def insert_event(con: sqlite3.Connection, event: AuditEvent) -> None:
    """IMPORTANT: does NOT commit. Caller decides."""
    con.execute(
        """
        INSERT INTO audit_log (
          action, entity_type, entity_id, performed_by, performed_at,
          details, ip_address, user_agent, retain_until
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            event.action,
            event.entity_type,
            str(event.entity_id),
            event.performed_by,
            utc_iso(event.performed_at),
            json.dumps(event.details, default=str),
            event.ip_address,
            event.user_agent,
            utc_iso(event.retain_until),
        ),
    )


def entity_history(
    con: sqlite3.Connection, entity_type: str, entity_id: str, limit: int = 20
) -> list[AuditEvent]:
    rows = con.execute(
        """
        SELECT * FROM audit_log
        WHERE entity_type = ? AND entity_id = ?
        ORDER BY performed_at DESC, audit_id DESC
        LIMIT ?
        """,
        (entity_type, str(entity_id), limit),
    ).fetchall()
    return [_row_to_event(r) for r in rows]


def user_activity(con: sqlite3.Connection, user_id: int, limit: int = 50) -> list[AuditEvent]:
    rows = con.execute(
        """
        SELECT * FROM audit_log
        WHERE performed_by = ?
        ORDER BY performed_at DESC, audit_id DESC
        LIMIT ?
        """,
        (user_id, limit),
    ).fetchall()
    return [_row_to_event(r) for r in rows]


def delete_expired(con: sqlite3.Connection, now: datetime) -> int:
    cur = con.execute("DELETE FROM audit_log WHERE retain_until < ?", (utc_iso(now),))
    return cur.rowcount
