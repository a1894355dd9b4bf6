from __future__ import annotations

from ..extensions import db
from ledgercore.time_utils import to_utc_z


def _num(value):
    return str(value) if value is not None else None


class Account(db.Model):
    """
    Chart-of-accounts entry.

    Looked up by stable account_number code (e.g. "A-1200" Inventory).
    Owned by setup/configuration; the posting services only read it.
    A missing or inactive account is a configuration error for the tenant.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.UniqueConstraint("org_id", "account_number", name="uq_accounts_org_number"),
        db.Index("ix_accounts_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    account_number = db.Column(db.String(32), nullable=False)
    account_name = db.Column(db.String(255), nullable=False)
    # asset, liability, equity, revenue, expense, cogs
    account_type = db.Column(db.String(16), nullable=False)
    parent_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)

    is_system_account = db.Column(db.Boolean, nullable=False, default=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    description = db.Column(db.Text, nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    parent_account = db.relationship("Account", remote_side=[id])

    def __repr__(self) -> str:
        return f"<Account id={self.id} number={self.account_number!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "account_number": self.account_number,
            "account_name": self.account_name,
            "account_type": self.account_type,
            "parent_account_id": self.parent_account_id,
            "is_system_account": self.is_system_account,
            "is_active": self.is_active,
            "description": self.description,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
        }


class JournalEntry(db.Model):
    """
    Journal entry header: one balanced accounting event.

    LIFECYCLE:
    - draft: manual entries only, may still be posted
    - posted: committed to the general ledger; automated postings are
      created directly in this state
    - cancelled: reserved status; a posted entry is never mutated. Its
      financial effect is cancelled by a new reversing entry whose
      reversal_of_id points back to it.

    INVARIANT: total_debit == total_credit (within 0.0001) for posted entries.
    """
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.UniqueConstraint("org_id", "journal_code", name="uq_journal_entries_org_code"),
        db.Index("ix_journal_entries_reference", "org_id", "reference_type", "reference_id"),
        db.Index("ix_journal_entries_org_posting_date", "org_id", "posting_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    journal_code = db.Column(db.String(32), nullable=False)
    posting_date = db.Column(db.Date, nullable=False)

    # Link back to the source business document
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    reference_code = db.Column(db.String(100), nullable=True)

    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    # AR, AP, Inventory, COGS, Manual, POS
    source_module = db.Column(db.String(16), nullable=False, index=True)

    total_debit = db.Column(db.Numeric(20, 4), nullable=False, default=0)
    total_credit = db.Column(db.Numeric(20, 4), nullable=False, default=0)

    # at most one reversing entry per original
    reversal_of_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True, unique=True)

    posted_by = db.Column(db.String(64), nullable=True)
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "JournalLine",
        backref="journal_entry",
        lazy=True,
        order_by="JournalLine.line_number",
    )
    reversal_of = db.relationship("JournalEntry", remote_side=[id])

    def __repr__(self) -> str:
        return f"<JournalEntry id={self.id} code={self.journal_code!r} status={self.status}>"

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "journal_code": self.journal_code,
            "posting_date": self.posting_date.isoformat() if self.posting_date else None,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reference_code": self.reference_code,
            "description": self.description,
            "status": self.status,
            "source_module": self.source_module,
            "total_debit": _num(self.total_debit),
            "total_credit": _num(self.total_credit),
            "reversal_of_id": self.reversal_of_id,
            "posted_by": self.posted_by,
            "posted_at": to_utc_z(self.posted_at) if self.posted_at else None,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class JournalLine(db.Model):
    """
    One debit-or-credit leg of a journal entry.

    INVARIANT: exactly one of (debit, credit) is > 0, the other is 0.
    Created in bulk with the header; immutable afterwards.
    """
    __tablename__ = "journal_lines"
    __table_args__ = (
        db.UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_lines_entry_line"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    debit = db.Column(db.Numeric(20, 4), nullable=False, default=0)
    credit = db.Column(db.Numeric(20, 4), nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)
    line_number = db.Column(db.Integer, nullable=False)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    account = db.relationship("Account")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal_entry_id": self.journal_entry_id,
            "account_id": self.account_id,
            "account_number": self.account.account_number if self.account else None,
            "debit": _num(self.debit),
            "credit": _num(self.credit),
            "description": self.description,
            "line_number": self.line_number,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-tenant document sequences.

    WHY: Journal codes and stock transaction codes must never be issued
    twice under concurrent postings. Numbers are allocated with a single
    UPDATE ... SET next_number = next_number + 1 (gap-tolerant, never duplicate).
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
