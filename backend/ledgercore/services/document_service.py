# Overview: Service-layer operations for document numbering (journal codes, stock transaction codes).

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from ledgercore.time_utils import utcnow
from .exceptions import SequenceConflictError, ValidationError


JOURNAL_SEQUENCE = "journal_entry"


def _stock_sequence_type(year: int) -> str:
    return f"stock_transaction_{year}"


def allocate_number(*, org_id: int, document_type: str) -> int:
    """
    Atomically allocate the next number for an organization/document type.

    Uses a single UPDATE ... SET next_number = next_number + 1 so two
    concurrent callers can never read the same value. The first allocation
    for a type inserts the sequence row; losing that insert race raises
    SequenceConflictError, which the enclosing run_with_retry retries.

    Must run inside the caller's transaction (no commit here).
    """
    if not org_id:
        raise ValidationError("org_id is required")
    if not document_type:
        raise ValidationError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.org_id == org_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(org_id=org_id, document_type=document_type)
            .scalar()
        )
        return current - 1

    seq = DocumentSequence(org_id=org_id, document_type=document_type, next_number=2)
    db.session.add(seq)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise SequenceConflictError(
            f"Document sequence {document_type} was created concurrently",
            {"org_id": org_id, "document_type": document_type},
        ) from exc
    return 1


def next_journal_code(*, org_id: int) -> str:
    """Journal codes look like JE-000001 and are unique per organization."""
    prefix = current_app.config.get("JOURNAL_CODE_PREFIX", "JE")
    number = allocate_number(org_id=org_id, document_type=JOURNAL_SEQUENCE)
    return f"{prefix}-{number:06d}"


def next_stock_transaction_code(*, org_id: int, on_date: date | None = None) -> str:
    """Stock transaction codes look like ST-2026-0001; numbering restarts each year."""
    year = (on_date or utcnow().date()).year
    number = allocate_number(org_id=org_id, document_type=_stock_sequence_type(year))
    return f"ST-{year}-{number:04d}"
