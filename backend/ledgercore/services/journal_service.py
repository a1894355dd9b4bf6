# Overview: Service-layer operations for journals; line validation, balanced posting and reversals.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Account, JournalEntry, JournalLine
from ledgercore.amounts import ZERO, BALANCE_EPSILON, quantize, to_decimal
from ledgercore.time_utils import parse_posting_date, utcnow
from .concurrency import lock_for_update
from .document_service import next_journal_code
from .exceptions import PersistenceError, ValidationError

"""
Journal Invariants (authoritative)

- A posted entry has at least two lines and sum(debit) == sum(credit)
  within 0.0001. total_debit/total_credit on the header equal the line sums.
- Every line has exactly one of debit/credit > 0; amounts are never negative.
- Lines reference active accounts of the entry's organization.
- Journal codes come from the per-organization sequence (JE-000001...).
- Header and lines are written together inside a SAVEPOINT: if the lines
  fail, the header is rolled back with them (no header without lines).
- Posted entries are immutable. Corrections are reversing entries whose
  reversal_of_id points at the original; an entry is reversed at most once.
- Only Manual entries may be saved as draft; draft -> posted is the only
  status change performed in place.
"""

STATUS_DRAFT = "draft"
STATUS_POSTED = "posted"
STATUS_CANCELLED = "cancelled"

SOURCE_MODULES = ("AR", "AP", "Inventory", "COGS", "Manual", "POS")


@dataclass
class LineValidation:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def _config(key: str, default):
    try:
        return current_app.config.get(key, default)
    except RuntimeError:
        return default


def _line_value(line, name: str, default=None):
    if isinstance(line, dict):
        return line.get(name, default)
    return getattr(line, name, default)


def validate_lines(lines, org_id: int | None = None) -> LineValidation:
    """
    Validate journal lines and collect every violation.

    Checks, in order: at least two lines; per line non-negative amounts,
    exactly one of debit/credit, an account reference (active and owned by
    org_id when org_id is given); finally debits == credits.
    """
    errors: list[str] = []
    lines = list(lines or [])

    if len(lines) < 2:
        errors.append("Journal entry must have at least 2 lines")

    total_debit = ZERO
    total_credit = ZERO
    account_ids = set()

    for index, line in enumerate(lines, start=1):
        try:
            debit = to_decimal(_line_value(line, "debit"))
            credit = to_decimal(_line_value(line, "credit"))
        except ValueError:
            errors.append(f"Line {index}: invalid amount")
            continue

        if debit < 0 or credit < 0:
            errors.append(f"Line {index}: amounts cannot be negative")
        elif debit > 0 and credit > 0:
            errors.append(f"Line {index}: cannot have both debit and credit")
        elif debit == 0 and credit == 0:
            errors.append(f"Line {index}: must have either debit or credit")

        account_id = _line_value(line, "account_id")
        if not account_id:
            errors.append(f"Line {index}: account is required")
        else:
            account_ids.add(account_id)

        total_debit += debit
        total_credit += credit

    if org_id is not None and account_ids:
        usable = {
            row.id
            for row in db.session.query(Account.id).filter(
                Account.id.in_(account_ids),
                Account.org_id == org_id,
                Account.is_active.is_(True),
                Account.deleted_at.is_(None),
            )
        }
        for index, line in enumerate(lines, start=1):
            account_id = _line_value(line, "account_id")
            if account_id and account_id not in usable:
                errors.append(f"Line {index}: account {account_id} not found or inactive")

    if abs(total_debit - total_credit) >= BALANCE_EPSILON:
        errors.append(
            f"Debits ({quantize(total_debit)}) must equal credits ({quantize(total_credit)})"
        )

    return LineValidation(is_valid=not errors, errors=errors)


def _years_before(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        # Feb 29 -> Feb 28
        return day.replace(year=day.year - years, day=28)


def validate_posting_date(value, now: datetime | None = None) -> date:
    """
    Parse and bound-check a posting date.

    Rejects dates more than POSTING_MAX_FUTURE_DAYS ahead or more than
    POSTING_MAX_PAST_YEARS back. Returns the normalized date.
    """
    if value is None or value == "":
        raise ValidationError("Posting date is required")
    try:
        posting_date = parse_posting_date(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid posting date: {value!r}") from exc

    today = (now or utcnow()).date()
    max_future_days = int(_config("POSTING_MAX_FUTURE_DAYS", 1))
    max_past_years = int(_config("POSTING_MAX_PAST_YEARS", 5))

    if posting_date > today + timedelta(days=max_future_days):
        raise ValidationError(
            f"Posting date cannot be more than {max_future_days} day(s) in the future",
            {"posting_date": posting_date.isoformat()},
        )
    if posting_date < _years_before(today, max_past_years):
        raise ValidationError(
            f"Posting date cannot be more than {max_past_years} years in the past",
            {"posting_date": posting_date.isoformat()},
        )
    return posting_date


def calculate_totals(lines) -> tuple[Decimal, Decimal]:
    total_debit = sum((to_decimal(_line_value(l, "debit")) for l in lines), ZERO)
    total_credit = sum((to_decimal(_line_value(l, "credit")) for l in lines), ZERO)
    return quantize(total_debit), quantize(total_credit)


def _write_lines(entry: JournalEntry, lines: list[dict], user_id) -> list[JournalLine]:
    rows = [
        JournalLine(
            org_id=entry.org_id,
            journal_entry_id=entry.id,
            account_id=line["account_id"],
            debit=line["debit"],
            credit=line["credit"],
            description=line.get("description"),
            line_number=number,
            created_by=user_id,
        )
        for number, line in enumerate(lines, start=1)
    ]
    db.session.add_all(rows)
    db.session.flush()
    return rows


def post_journal(
    *,
    org_id: int,
    posting_date,
    lines,
    source_module: str,
    reference_type: str | None = None,
    reference_id=None,
    reference_code: str | None = None,
    description: str | None = None,
    user_id=None,
    status: str = STATUS_POSTED,
    reversal_of_id: int | None = None,
) -> JournalEntry:
    """
    Validate and write one journal entry (header + lines).

    lines: iterable of dicts/objects with account_id, debit, credit, description.
    Flushes inside the caller's transaction; the caller commits.
    """
    if source_module not in SOURCE_MODULES:
        raise ValidationError(f"Unknown source module: {source_module}")
    if status not in (STATUS_DRAFT, STATUS_POSTED):
        raise ValidationError(f"Journal entries cannot be created with status {status!r}")
    if status == STATUS_DRAFT and source_module != "Manual":
        raise ValidationError("Only manual journal entries can be saved as draft")

    entry_date = validate_posting_date(posting_date)

    lines = list(lines or [])
    validation = validate_lines(lines, org_id=org_id)
    if not validation.is_valid:
        raise ValidationError(
            "Invalid journal lines: " + "; ".join(validation.errors),
            {"errors": validation.errors},
        )

    normalized = [
        {
            "account_id": _line_value(line, "account_id"),
            "debit": quantize(_line_value(line, "debit")),
            "credit": quantize(_line_value(line, "credit")),
            "description": _line_value(line, "description"),
        }
        for line in lines
    ]
    total_debit, total_credit = calculate_totals(normalized)
    journal_code = next_journal_code(org_id=org_id)
    user = str(user_id) if user_id is not None else None
    now = utcnow()

    try:
        with db.session.begin_nested():
            entry = JournalEntry(
                org_id=org_id,
                journal_code=journal_code,
                posting_date=entry_date,
                reference_type=reference_type,
                reference_id=str(reference_id) if reference_id is not None else None,
                reference_code=reference_code,
                description=description,
                status=status,
                source_module=source_module,
                total_debit=total_debit,
                total_credit=total_credit,
                reversal_of_id=reversal_of_id,
                posted_by=user if status == STATUS_POSTED else None,
                posted_at=now if status == STATUS_POSTED else None,
                created_by=user,
            )
            db.session.add(entry)
            db.session.flush()
            _write_lines(entry, normalized, user)
    except SQLAlchemyError as exc:
        raise PersistenceError(
            "Failed to create journal entry",
            {"journal_code": journal_code, "reference_type": reference_type, "reference_id": reference_id},
        ) from exc

    return entry


def get_journal_entry(org_id: int, journal_entry_id: int) -> JournalEntry | None:
    return db.session.query(JournalEntry).filter_by(id=journal_entry_id, org_id=org_id).first()


def find_reversal(org_id: int, journal_entry_id: int) -> JournalEntry | None:
    return (
        db.session.query(JournalEntry)
        .filter_by(org_id=org_id, reversal_of_id=journal_entry_id)
        .first()
    )


def reverse_journal(
    *,
    org_id: int,
    journal_entry_id: int,
    posting_date=None,
    description: str | None = None,
    user_id=None,
) -> JournalEntry:
    """
    Post the mirror image of a posted entry (debits and credits swapped).

    The original is left untouched. Reversing an entry twice, reversing a
    reversal or reversing a draft raises ValidationError.
    """
    original = lock_for_update(
        db.session.query(JournalEntry).filter_by(id=journal_entry_id, org_id=org_id)
    ).first()
    if not original:
        raise ValidationError(f"Journal entry {journal_entry_id} not found")
    if original.status != STATUS_POSTED:
        raise ValidationError(
            f"Only posted journal entries can be reversed ({original.journal_code} is {original.status})"
        )
    if original.reversal_of_id is not None:
        raise ValidationError(f"Journal entry {original.journal_code} is itself a reversal")
    if find_reversal(org_id, original.id):
        raise ValidationError(
            f"Journal entry {original.journal_code} has already been reversed",
            {"journal_entry_id": original.id},
        )

    mirrored = [
        {
            "account_id": line.account_id,
            "debit": line.credit,
            "credit": line.debit,
            "description": f"Reversal - {line.description}" if line.description else "Reversal",
        }
        for line in original.lines
    ]

    return post_journal(
        org_id=org_id,
        posting_date=posting_date or utcnow().date(),
        lines=mirrored,
        source_module=original.source_module,
        reference_type=original.reference_type,
        reference_id=original.reference_id,
        reference_code=original.reference_code,
        description=description or f"Reversal of {original.journal_code}",
        user_id=user_id,
        reversal_of_id=original.id,
    )


def post_draft_journal(*, org_id: int, journal_entry_id: int, user_id=None) -> JournalEntry:
    """Move a draft entry to posted after re-validating its date and lines."""
    entry = lock_for_update(
        db.session.query(JournalEntry).filter_by(id=journal_entry_id, org_id=org_id)
    ).first()
    if not entry:
        raise ValidationError(f"Journal entry {journal_entry_id} not found")
    if entry.status != STATUS_DRAFT:
        raise ValidationError(f"Journal entry {entry.journal_code} is not a draft")

    validate_posting_date(entry.posting_date)
    validation = validate_lines(entry.lines, org_id=org_id)
    if not validation.is_valid:
        raise ValidationError(
            "Invalid journal lines: " + "; ".join(validation.errors),
            {"errors": validation.errors},
        )

    entry.status = STATUS_POSTED
    entry.posted_by = str(user_id) if user_id is not None else None
    entry.posted_at = utcnow()
    db.session.flush()
    return entry


def list_journal_entries(
    org_id: int,
    *,
    reference_type: str | None = None,
    reference_id=None,
    source_module: str | None = None,
    status: str | None = None,
) -> list[JournalEntry]:
    query = db.session.query(JournalEntry).filter(JournalEntry.org_id == org_id)
    if reference_type is not None:
        query = query.filter(JournalEntry.reference_type == reference_type)
    if reference_id is not None:
        query = query.filter(JournalEntry.reference_id == str(reference_id))
    if source_module is not None:
        query = query.filter(JournalEntry.source_module == source_module)
    if status is not None:
        query = query.filter(JournalEntry.status == status)
    return query.order_by(JournalEntry.id.asc()).all()


def verify_journal_balances(org_id: int) -> list[dict]:
    """Posted entries whose lines do not balance or disagree with the header totals."""
    problems = []
    for entry in list_journal_entries(org_id, status=STATUS_POSTED):
        line_debit, line_credit = calculate_totals(entry.lines)
        header_ok = (
            abs(line_debit - to_decimal(entry.total_debit)) < BALANCE_EPSILON
            and abs(line_credit - to_decimal(entry.total_credit)) < BALANCE_EPSILON
        )
        if abs(line_debit - line_credit) >= BALANCE_EPSILON or not header_ok:
            problems.append({
                "id": entry.id,
                "journal_code": entry.journal_code,
                "total_debit": str(entry.total_debit),
                "total_credit": str(entry.total_credit),
                "line_debit": str(line_debit),
                "line_credit": str(line_credit),
            })
    return problems
