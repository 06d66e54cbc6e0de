# src/document_repo.py
from __future__ import annotations

import sqlite3

from models import Document
from parse_helpers import iso_or_none, parse_dt


def _row_to_document(row: sqlite3.Row) -> Document:
    return Document(
        document_id=row["document_id"],
        instructor_id=row["instructor_id"],
        document_type=row["document_type"],
        file_name=row["file_name"],
        file_path=row["file_path"],
        file_size=row["file_size"],
        status=row["status"],
        uploaded_at=parse_dt(row["uploaded_at"]),
        qualification_type=row["qualification_type"],
        expiry_date=parse_dt(row["expiry_date"]),
        reviewed_by=row["reviewed_by"],
        reviewed_at=parse_dt(row["reviewed_at"]),
        review_notes=row["review_notes"],
    )


def insert_document(con: sqlite3.Connection, doc: Document) -> int:
    """IMPORTANT: does NOT commit. Caller decides."""
    cur = con.execute(
        """
        INSERT INTO documents (
          instructor_id, document_type, qualification_type, file_name, file_path,
          file_size, status, uploaded_at, expiry_date, reviewed_by, reviewed_at, review_notes
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            doc.instructor_id,
            doc.document_type,
            doc.qualification_type,
            doc.file_name,
            doc.file_path,
            doc.file_size,
            doc.status,
            doc.uploaded_at.isoformat(),
            iso_or_none(doc.expiry_date),
            doc.reviewed_by,
            iso_or_none(doc.reviewed_at),
            doc.review_notes,
        ),
    )
    doc.document_id = cur.lastrowid
    return doc.document_id


def update_document(con: sqlite3.Connection, doc: Document) -> None:
    con.execute(
        """
        UPDATE documents
        SET status = ?, expiry_date = ?, reviewed_by = ?, reviewed_at = ?, review_notes = ?
        WHERE document_id = ?
        """,
        (
            doc.status,
            iso_or_none(doc.expiry_date),
            doc.reviewed_by,
            iso_or_none(doc.reviewed_at),
            doc.review_notes,
            doc.document_id,
        ),
    )


def get_document(con: sqlite3.Connection, document_id: int) -> Document | None:
    row = con.execute(
        "SELECT * FROM documents WHERE document_id = ?", (document_id,)
    ).fetchone()
    return _row_to_document(row) if row else None


def list_documents(con: sqlite3.Connection, instructor_id: int) -> list[Document]:
    rows = con.execute(
        """
        SELECT * FROM documents
        WHERE instructor_id = ?
        ORDER BY uploaded_at DESC, document_id DESC
        """,
        (instructor_id,),
    ).fetchall()
    return [_row_to_document(r) for r in rows]


def list_pending_documents(con: sqlite3.Connection) -> list[Document]:
    rows = con.execute(
        "SELECT * FROM documents WHERE status = 'pending' ORDER BY uploaded_at ASC, document_id ASC"
    ).fetchall()
    return [_row_to_document(r) for r in rows]
