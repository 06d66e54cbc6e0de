# src/audit.py
"""
Audit trail for state changes.

Recording is best-effort: a sink never raises into the operation that
triggered it. The operation has already committed by the time it records.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

from audit_repo import delete_expired, insert_event
from config import AUDIT_RETENTION_DAYS, CENTRE_TZ
from models import AuditEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuditContext:
    performed_by: int | None = None
    ip_address: str | None = None
    user_agent: str | None = None


class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class MemoryAuditSink:
    """Keeps events in a list instead of persisting them."""

    def __init__(self) -> None:
        self.events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)


class SqliteAuditSink:
    def __init__(self, con: sqlite3.Connection) -> None:
        self.con = con

    def record(self, event: AuditEvent) -> None:
        try:
            insert_event(self.con, event)
            self.con.commit()
        except Exception:
            logger.exception(
                "audit write failed: %s %s %s", event.action, event.entity_type, event.entity_id
            )
            try:
                self.con.rollback()
            except sqlite3.Error:
                logger.exception("audit rollback failed")


def emit(
    sink: AuditSink | None,
    action: str,
    entity_type: str,
    entity_id,
    ctx: AuditContext | None,
    performed_by: int | None,
    details: dict | None = None,
    now: datetime | None = None,
) -> None:
    """Build an AuditEvent and hand it to the sink, swallowing any sink failure."""
    if sink is None:
        return

    at = now or datetime.now(CENTRE_TZ)
    ctx = ctx or AuditContext()
    event = AuditEvent(
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        performed_by=ctx.performed_by if ctx.performed_by is not None else performed_by,
        details=details or {},
        ip_address=ctx.ip_address,
        user_agent=ctx.user_agent,
        performed_at=at,
        retain_until=at + timedelta(days=AUDIT_RETENTION_DAYS),
    )
    try:
        sink.record(event)
    except Exception:
        # sinks are supposed to swallow their own errors; this is the backstop
        logger.exception("audit sink raised for %s %s", action, entity_id)


def purge_expired(con: sqlite3.Connection, now: datetime | None = None) -> int:
    """Drop audit rows past their retain_until. Returns how many went."""
    removed = delete_expired(con, now or datetime.now(CENTRE_TZ))
    con.commit()
    if removed:
        logger.info("purged %d expired audit events", removed)
    return removed
