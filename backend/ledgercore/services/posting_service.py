# Overview: Service-layer orchestration primitives shared by every posting flow.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ledgercore.amounts import is_zero, quantize
from . import journal_service
from .account_service import resolve_accounts
from .concurrency import run_with_retry
from .exceptions import PostingError, PostingResult, UnrecoverablePostingError, ValidationError

"""
Posting Orchestration Invariants (authoritative)

- One orchestration = one database transaction. Journal and stock ledger
  writes of the same business event commit together or not at all.
- Accounts are resolved before anything is written; a missing account fails
  the posting with "<Name> account (<code>) not found".
- Zero net effect is a skipped no-op: nothing is written, success=True.
- PostingError never escapes run_posting; it becomes PostingResult.failure.
- If rolling back a failed posting itself fails, the session state is
  unknown: UnrecoverablePostingError is logged at critical and re-raised.
"""


def build_lines(legs) -> list[tuple]:
    """
    Normalize (account_number, debit, credit, description) legs.

    Amounts are quantized; legs with both sides zero are dropped.
    """
    result = []
    for account_number, debit, credit, description in legs:
        debit = quantize(debit)
        credit = quantize(credit)
        if is_zero(debit) and is_zero(credit):
            continue
        result.append((account_number, debit, credit, description))
    return result


def post_balanced_journal(
    *,
    org_id: int,
    posting_date,
    legs,
    source_module: str,
    reference_type: str | None = None,
    reference_id=None,
    reference_code: str | None = None,
    description: str | None = None,
    user_id=None,
):
    """Resolve account codes for the legs and post them as one journal entry."""
    legs = build_lines(legs)
    accounts = resolve_accounts(org_id, [leg[0] for leg in legs])
    lines = [
        {
            "account_id": accounts[number].id,
            "debit": debit,
            "credit": credit,
            "description": leg_description,
        }
        for number, debit, credit, leg_description in legs
    ]
    return journal_service.post_journal(
        org_id=org_id,
        posting_date=posting_date,
        lines=lines,
        source_module=source_module,
        reference_type=reference_type,
        reference_id=reference_id,
        reference_code=reference_code,
        description=description,
        user_id=user_id,
    )


def _rollback_or_raise(operation_name: str, original: Exception) -> None:
    try:
        db.session.rollback()
    except SQLAlchemyError as rollback_exc:
        current_app.logger.critical(
            "%s: rollback after failed posting did not complete; session state unknown",
            operation_name,
        )
        raise UnrecoverablePostingError(
            f"{operation_name}: rollback failed after posting error",
            original=original,
        ) from rollback_exc


def run_posting(operation_name: str, func) -> PostingResult:
    """
    Run one posting orchestration as a single retried transaction.

    func does the writes (flush only) and returns a PostingResult; it is
    re-run from scratch after a concurrency conflict.
    """
    def _op():
        result = func()
        db.session.commit()
        return result

    try:
        result = run_with_retry(_op)
    except PostingError as exc:
        _rollback_or_raise(operation_name, exc)
        current_app.logger.exception("%s failed: %s", operation_name, exc.message)
        return PostingResult.failure(exc.message, exc.details)
    except ValueError as exc:
        _rollback_or_raise(operation_name, exc)
        current_app.logger.exception("%s rejected input", operation_name)
        return PostingResult.failure(str(exc))
    except SQLAlchemyError as exc:
        _rollback_or_raise(operation_name, exc)
        current_app.logger.exception("%s failed while writing", operation_name)
        return PostingResult.failure(f"Failed to persist {operation_name}")

    if result.skipped:
        current_app.logger.info("%s skipped: %s", operation_name, result.details.get("reason"))
    return result


def require_positive_amount(value, label: str):
    amount = quantize(value)
    if amount < 0:
        raise ValidationError(f"{label} cannot be negative", {label: str(amount)})
    return amount


def post_manual_journal(
    *,
    org_id: int,
    posting_date,
    lines,
    description: str | None = None,
    user_id=None,
    draft: bool = False,
) -> PostingResult:
    """Manual journal entry by account id; optionally saved as draft for later posting."""
    def _post():
        entry = journal_service.post_journal(
            org_id=org_id,
            posting_date=posting_date,
            lines=lines,
            source_module="Manual",
            description=description,
            user_id=user_id,
            status=journal_service.STATUS_DRAFT if draft else journal_service.STATUS_POSTED,
        )
        return PostingResult.posted(
            journal_entry_ids=[entry.id],
            details={"journal_code": entry.journal_code, "status": entry.status},
        )

    return run_posting("post_manual_journal", _post)


def post_draft(*, org_id: int, journal_entry_id: int, user_id=None) -> PostingResult:
    def _post():
        entry = journal_service.post_draft_journal(
            org_id=org_id, journal_entry_id=journal_entry_id, user_id=user_id
        )
        return PostingResult.posted(
            journal_entry_ids=[entry.id],
            details={"journal_code": entry.journal_code, "status": entry.status},
        )

    return run_posting("post_draft", _post)


def reverse_journal_entry(
    *,
    org_id: int,
    journal_entry_id: int,
    posting_date=None,
    description: str | None = None,
    user_id=None,
) -> PostingResult:
    def _post():
        reversal = journal_service.reverse_journal(
            org_id=org_id,
            journal_entry_id=journal_entry_id,
            posting_date=posting_date,
            description=description,
            user_id=user_id,
        )
        return PostingResult.posted(
            journal_entry_ids=[reversal.id],
            details={"journal_code": reversal.journal_code, "reversal_of_id": journal_entry_id},
        )

    return run_posting("reverse_journal_entry", _post)
