# src/document_service.py
"""
Compliance documents (qualification certificates, insurance, DBS checks).

Expiry is only ever applied lazily: an approved document past its expiry
date flips to "expired" the next time it is saved, so readers should go
through document_flags() rather than trusting the stored status alone.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import PurePath

from audit import AuditContext, AuditSink, SqliteAuditSink, emit
from config import ALLOWED_DOCUMENT_EXTENSIONS, CENTRE_TZ, EXPIRY_WARNING_DAYS, MAX_DOCUMENT_BYTES
from db import write_txn
from document_repo import (
    get_document,
    insert_document,
    list_documents,
    list_pending_documents,
    update_document,
)
from models import DOCUMENT_TYPES, Document, Instructor
from outcome import Outcome, failure, success
from user_repo import get_user
from user_service import require_admin

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentFlags:
    is_expired: bool
    is_expiring_soon: bool


def document_flags(doc: Document, now: datetime | None = None) -> DocumentFlags:
    now = now or datetime.now(CENTRE_TZ)
    if doc.expiry_date is None:
        return DocumentFlags(False, False)
    is_expired = now > doc.expiry_date
    soon = doc.expiry_date <= now + timedelta(days=EXPIRY_WARNING_DAYS)
    return DocumentFlags(is_expired=is_expired, is_expiring_soon=soon and not is_expired)


def save_document(con: sqlite3.Connection, doc: Document, now: datetime | None = None) -> Document:
    """Persist doc, expiring it first if it is approved and past its date. Does NOT commit."""
    if doc.status == "approved" and document_flags(doc, now).is_expired:
        doc.status = "expired"
    if doc.document_id:
        update_document(con, doc)
    else:
        insert_document(con, doc)
    return doc


def submit_document(
    con: sqlite3.Connection,
    instructor_id: int,
    document_type: str,
    file_name: str,
    file_path: str,
    file_size: int,
    expiry_date: datetime | None = None,
    qualification_type: str | None = None,
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    now = now or datetime.now(CENTRE_TZ)

    inst = get_user(con, instructor_id)
    if inst is None:
        return failure("instructor_not_found")
    if not isinstance(inst, Instructor):
        return failure("not_instructor")

    if document_type not in DOCUMENT_TYPES:
        return failure(f"invalid_document(unknown type {document_type})")
    ext = PurePath(file_name).suffix.lower()
    if ext not in ALLOWED_DOCUMENT_EXTENSIONS:
        return failure(f"invalid_document(file type {ext or 'none'} not allowed)")
    if file_size < 0 or file_size > MAX_DOCUMENT_BYTES:
        return failure("invalid_document(file too large)")

    doc = Document(
        document_id=0,
        instructor_id=instructor_id,
        document_type=document_type,
        file_name=file_name.strip(),
        file_path=file_path,
        file_size=file_size,
        status="pending",
        uploaded_at=now,
        qualification_type=(qualification_type or "").strip() or None,
        expiry_date=expiry_date,
    )
    with write_txn(con):
        save_document(con, doc, now)

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "document_uploaded",
        "Document",
        doc.document_id,
        ctx,
        instructor_id,
        {"documentType": document_type},
        now,
    )
    logger.info("document %s uploaded by instructor %s", doc.document_id, instructor_id)
    return success(doc)


def review_document(
    con: sqlite3.Connection,
    document_id: int,
    admin_id: int,
    approve: bool,
    notes: str = "",
    audit: AuditSink | None = None,
    ctx: AuditContext | None = None,
    now: datetime | None = None,
) -> Outcome:
    now = now or datetime.now(CENTRE_TZ)

    guard = require_admin(con, admin_id)
    if not guard.ok:
        return guard

    with write_txn(con):
        doc = get_document(con, document_id)
        if doc is None:
            return failure("document_not_found")
        if doc.status != "pending":
            return failure("document_not_pending")

        doc.status = "approved" if approve else "rejected"
        doc.reviewed_by = admin_id
        doc.reviewed_at = now
        doc.review_notes = notes.strip()
        save_document(con, doc, now)

    emit(
        audit if audit is not None else SqliteAuditSink(con),
        "document_approved" if approve else "document_rejected",
        "Document",
        document_id,
        ctx,
        admin_id,
        {"instructorId": doc.instructor_id, "documentType": doc.document_type, "status": doc.status},
        now,
    )
    logger.info("document %s reviewed: %s", document_id, doc.status)
    return success(doc)


@dataclass
class DocumentOverview:
    documents: list[Document]
    approved: list[Document]
    pending: list[Document]
    rejected: list[Document]
    expired: list[Document]
    expiring_soon: list[Document]


def document_overview(
    con: sqlite3.Connection, instructor_id: int, now: datetime | None = None
) -> DocumentOverview:
    now = now or datetime.now(CENTRE_TZ)
    docs = list_documents(con, instructor_id)
    flags = {d.document_id: document_flags(d, now) for d in docs}
    return DocumentOverview(
        documents=docs,
        approved=[d for d in docs if d.status == "approved" and not flags[d.document_id].is_expired],
        pending=[d for d in docs if d.status == "pending"],
        rejected=[d for d in docs if d.status == "rejected"],
        expired=[d for d in docs if d.status == "expired" or flags[d.document_id].is_expired],
        expiring_soon=[d for d in docs if flags[d.document_id].is_expiring_soon],
    )


def review_queue(con: sqlite3.Connection) -> list[Document]:
    """Pending documents across all instructors, oldest upload first."""
    return list_pending_documents(con)
