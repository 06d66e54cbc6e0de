# src/db.py
from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from config import DB_PATH


def get_con(path: Path | str | None = None) -> sqlite3.Connection:
    con = sqlite3.connect(path or DB_PATH)
    con.row_factory = sqlite3.Row
    con.execute("PRAGMA foreign_keys = ON;")
    return con


def init_db(con: sqlite3.Connection) -> None:
    """
    Central schema bootstrap.
    Repos/services assume these tables + column names exist.
    """
    con.executescript(
        """
        -- Users (admins + instructors; instructor-only columns are NULL for admins)
        CREATE TABLE IF NOT EXISTS users (
          user_id INTEGER PRIMARY KEY AUTOINCREMENT,
          email TEXT NOT NULL UNIQUE,           -- lower-cased
          role TEXT NOT NULL,                   -- admin | instructor
          status TEXT NOT NULL,                 -- pending | approved | rejected | suspended
          first_name TEXT NOT NULL,
          last_name TEXT NOT NULL,
          phone TEXT,
          created_at TEXT NOT NULL,
          approved_at TEXT,
          approved_by INTEGER,
          qualifications TEXT NOT NULL DEFAULT '',   -- pipe separated
          hourly_rate REAL,
          max_hours_per_week REAL,
          slack_user_id TEXT,
          email_digest TEXT NOT NULL DEFAULT 'immediate',
          cover_types TEXT NOT NULL DEFAULT '',      -- pipe separated
          min_notice_hours INTEGER NOT NULL DEFAULT 24,
          max_distance_from_venue REAL,
          total_hours_worked REAL NOT NULL DEFAULT 0,
          reliability_score REAL NOT NULL DEFAULT 5,
          last_active TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_users_role_status ON users(role, status);

        -- Timetable templates
        CREATE TABLE IF NOT EXISTS timetable_templates (
          template_id INTEGER PRIMARY KEY AUTOINCREMENT,
          name TEXT NOT NULL,
          template_type TEXT NOT NULL,          -- weekly | bi-weekly
          status TEXT NOT NULL,                 -- draft | active | archived
          effective_from TEXT NOT NULL,         -- ISO date
          effective_to TEXT NOT NULL,           -- ISO date, exclusive
          session_count INTEGER NOT NULL DEFAULT 0,
          created_by INTEGER NOT NULL,
          created_at TEXT NOT NULL,
          CHECK (effective_from < effective_to)
        );

        -- at most one active template
        CREATE UNIQUE INDEX IF NOT EXISTS uq_templates_one_active
          ON timetable_templates(status) WHERE status = 'active';

        -- Recurring weekly sessions
        CREATE TABLE IF NOT EXISTS sessions (
          session_id INTEGER PRIMARY KEY AUTOINCREMENT,
          template_id INTEGER NOT NULL REFERENCES timetable_templates(template_id),
          class_name TEXT NOT NULL,
          description TEXT NOT NULL DEFAULT '',
          day_of_week INTEGER NOT NULL,         -- 0 = Sunday
          start_time TEXT NOT NULL,             -- HH:MM
          end_time TEXT NOT NULL,               -- HH:MM
          duration INTEGER NOT NULL,            -- minutes
          venue TEXT NOT NULL,
          max_participants INTEGER,
          assignment_type TEXT NOT NULL,        -- permanent | open | cover_needed
          permanent_instructor_id INTEGER REFERENCES users(user_id) ON DELETE SET NULL,
          required_qualifications TEXT NOT NULL DEFAULT '',  -- pipe separated
          is_active INTEGER NOT NULL DEFAULT 1,
          created_by INTEGER NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_sessions_template ON sessions(template_id);
        CREATE INDEX IF NOT EXISTS idx_sessions_slot ON sessions(template_id, day_of_week, venue);
        CREATE INDEX IF NOT EXISTS idx_sessions_instructor ON sessions(permanent_instructor_id);

        -- Cover requests
        CREATE TABLE IF NOT EXISTS cover_requests (
          id INTEGER PRIMARY KEY AUTOINCREMENT,
          cover_id TEXT UNIQUE,
          session_id INTEGER NOT NULL REFERENCES sessions(session_id),
          cover_date TEXT NOT NULL,             -- ISO date (centre local)
          session_datetime TEXT NOT NULL,       -- UTC ISO datetime
          urgency TEXT NOT NULL,                -- urgent | normal | advance_planned
          status TEXT NOT NULL,                 -- open | accepted | confirmed | cancelled | completed
          reason TEXT NOT NULL DEFAULT '',
          requested_by INTEGER NOT NULL,
          requested_for INTEGER,
          requested_at TEXT NOT NULL,
          accepted_by INTEGER,
          accepted_at TEXT,
          confirmed_by INTEGER,
          confirmed_at TEXT,
          payment_rate REAL,
          payment_status TEXT NOT NULL DEFAULT 'pending'
        );

        CREATE INDEX IF NOT EXISTS idx_covers_status_time ON cover_requests(status, session_datetime);
        CREATE INDEX IF NOT EXISTS idx_covers_accepted_by ON cover_requests(accepted_by);

        -- one live cover per (session, date)
        CREATE UNIQUE INDEX IF NOT EXISTS uq_covers_live_slot
          ON cover_requests(session_id, cover_date)
          WHERE status IN ('open', 'accepted', 'confirmed');

        -- Compliance documents
        CREATE TABLE IF NOT EXISTS documents (
          document_id INTEGER PRIMARY KEY AUTOINCREMENT,
          instructor_id INTEGER NOT NULL REFERENCES users(user_id) ON DELETE CASCADE,
          document_type TEXT NOT NULL,          -- qualification | insurance | dbs_check
          qualification_type TEXT,
          file_name TEXT NOT NULL,
          file_path TEXT NOT NULL,
          file_size INTEGER NOT NULL,
          status TEXT NOT NULL,                 -- pending | approved | rejected | expired
          uploaded_at TEXT NOT NULL,
          expiry_date TEXT,
          reviewed_by INTEGER,
          reviewed_at TEXT,
          review_notes TEXT NOT NULL DEFAULT ''
        );

        CREATE INDEX IF NOT EXISTS idx_documents_instructor ON documents(instructor_id, document_type);

        -- Append-only audit trail
        CREATE TABLE IF NOT EXISTS audit_log (
          audit_id INTEGER PRIMARY KEY AUTOINCREMENT,
          action TEXT NOT NULL,
          entity_type TEXT NOT NULL,
          entity_id TEXT NOT NULL,
          performed_by INTEGER,
          performed_at TEXT NOT NULL,
          details TEXT NOT NULL DEFAULT '{}',   -- JSON
          ip_address TEXT,
          user_agent TEXT,
          retain_until TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_audit_entity ON audit_log(entity_type, entity_id);
        CREATE INDEX IF NOT EXISTS idx_audit_user ON audit_log(performed_by, performed_at);
        CREATE INDEX IF NOT EXISTS idx_audit_retain ON audit_log(retain_until);
        """
    )
    con.commit()


@contextmanager
def write_txn(con: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Single-writer transaction: check-then-write inside is atomic.
    Commits on normal exit, rolls back and re-raises on error.
    """
    if not con.in_transaction:
        con.execute("BEGIN IMMEDIATE")
    try:
        yield con
    except Exception:
        con.rollback()
        raise
    con.commit()
