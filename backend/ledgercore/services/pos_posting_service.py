# Overview: Service-layer posting for point-of-sale; sale journals, COGS with stock-out and voids.

from __future__ import annotations

from ..extensions import db
from ..models import JournalEntry
from ledgercore.amounts import amounts_equal, is_zero, quantize
from ledgercore.time_utils import utcnow
from . import journal_service
from .account_service import (
    CASH,
    COST_OF_GOODS_SOLD,
    INVENTORY,
    SALES_DISCOUNTS,
    SALES_REVENUE,
    SALES_TAX_PAYABLE,
    resolve_accounts,
)
from .exceptions import PostingResult, ValidationError
from .journal_service import validate_posting_date
from .ledger_service import append_ledger_entry, reverse_ledger_entries
from .posting_service import post_balanced_journal, require_positive_amount, run_posting
from .valuation_service import COGSResult, compute_cogs

"""
POS Posting Invariants (authoritative)

Sale journal (source POS, reference pos_transaction):
    DR Cash/Bank (A-1000)          total_amount
    DR Sales Discounts (R-4010)    discount_amount   (only when > 0)
    CR Sales Revenue (R-4000)      subtotal          (gross, before discount)
    CR Sales Tax Payable (L-2100)  tax_amount        (only when > 0)
  Balances because total = subtotal - discount + tax.

COGS (source COGS, reference pos_transaction):
- Items are costed at their most recent valuation rate across warehouses
  (POS terminals do not pick a costing warehouse); purchase_price when the
  item has no history; unknown items cost 0.
- Stock leaves the selling warehouse: one negative ledger movement per item
  under voucher ST-POS-<transaction code>.
- Total COGS of zero skips the whole posting (no journal, no ledger rows).

Void:
- Every posted, not yet reversed POS/COGS journal of the transaction gets a
  mirrored reversing entry; every stock movement gets a positive offset
  under voucher ST-POS-VOID-<transaction code>. A second void is rejected.
"""

REFERENCE_TYPE = "pos_transaction"


def post_pos_sale(
    *,
    org_id: int,
    user_id,
    transaction_id,
    transaction_code: str,
    transaction_date,
    subtotal,
    total_amount,
    discount_amount=0,
    tax_amount=0,
    description: str | None = None,
) -> PostingResult:
    def _post():
        gross = require_positive_amount(subtotal, "subtotal")
        discount = require_positive_amount(discount_amount, "discount_amount")
        tax = require_positive_amount(tax_amount, "tax_amount")
        total = require_positive_amount(total_amount, "total_amount")
        if is_zero(gross) and is_zero(total) and is_zero(tax) and is_zero(discount):
            return PostingResult.skipped_noop("POS sale has no amounts", {"transaction_code": transaction_code})

        expected = quantize(gross - discount + tax)
        if not amounts_equal(total, expected):
            raise ValidationError(
                f"POS total {total} does not equal subtotal - discount + tax ({expected})",
                {"transaction_code": transaction_code, "total_amount": str(total), "expected": str(expected)},
            )

        accounts = [CASH, SALES_REVENUE]
        if discount > 0:
            accounts.append(SALES_DISCOUNTS)
        if tax > 0:
            accounts.append(SALES_TAX_PAYABLE)
        resolve_accounts(org_id, accounts)

        entry = post_balanced_journal(
            org_id=org_id,
            posting_date=transaction_date,
            legs=[
                (CASH, total, 0, f"Cash received - POS {transaction_code}"),
                (SALES_DISCOUNTS, discount, 0, f"Sales discount - POS {transaction_code}"),
                (SALES_REVENUE, 0, gross, f"Sales revenue - POS {transaction_code}"),
                (SALES_TAX_PAYABLE, 0, tax, f"Sales tax collected - POS {transaction_code}"),
            ],
            source_module="POS",
            reference_type=REFERENCE_TYPE,
            reference_id=transaction_id,
            reference_code=transaction_code,
            description=description or f"POS Sale - {transaction_code}",
            user_id=user_id,
        )
        return PostingResult.posted(
            journal_entry_ids=[entry.id],
            details={"journal_code": entry.journal_code},
        )

    return run_posting("post_pos_sale", _post)


def calculate_cogs(*, org_id: int, items) -> COGSResult:
    """Read-only COGS preview for POS items (warehouse-agnostic valuation)."""
    return compute_cogs(org_id, items, warehouse_id=None)


def post_pos_cogs(
    *,
    org_id: int,
    user_id,
    transaction_id,
    transaction_code: str,
    transaction_date,
    warehouse_id: int,
    items,
    description: str | None = None,
) -> PostingResult:
    def _post():
        entry_date = validate_posting_date(transaction_date)
        cogs = calculate_cogs(org_id=org_id, items=items)
        for line in cogs.items:
            if line.quantity <= 0:
                raise ValidationError(
                    f"Sold quantity must be positive for item {line.item_id}",
                    {"item_id": line.item_id},
                )
        if is_zero(cogs.total_cogs):
            return PostingResult.skipped_noop(
                "Total COGS is zero",
                {"transaction_code": transaction_code, "items": len(cogs.items)},
            )

        resolve_accounts(org_id, [COST_OF_GOODS_SOLD, INVENTORY])

        stock_code = f"ST-POS-{transaction_code}"
        for line in cogs.items:
            append_ledger_entry(
                org_id=org_id,
                item_id=line.item_id,
                warehouse_id=warehouse_id,
                delta=-line.quantity,
                rate=line.rate,
                transaction_type="pos_sale",
                voucher_type="POS Sale",
                voucher_no=stock_code,
                reference_type=REFERENCE_TYPE,
                reference_id=transaction_id,
                reference_code=transaction_code,
                transaction_date=entry_date,
                created_by=user_id,
            )

        entry = post_balanced_journal(
            org_id=org_id,
            posting_date=entry_date,
            legs=[
                (COST_OF_GOODS_SOLD, cogs.total_cogs, 0,
                 f"COGS for {len(cogs.items)} items sold - POS {transaction_code}"),
                (INVENTORY, 0, cogs.total_cogs, f"Inventory reduction - POS {transaction_code}"),
            ],
            source_module="COGS",
            reference_type=REFERENCE_TYPE,
            reference_id=transaction_id,
            reference_code=transaction_code,
            description=description or f"COGS - POS Sale {transaction_code} ({len(cogs.items)} items)",
            user_id=user_id,
        )
        return PostingResult.posted(
            journal_entry_ids=[entry.id],
            stock_transaction_code=stock_code,
            details=cogs.to_dict(),
        )

    return run_posting("post_pos_cogs", _post)


def _posted_originals(org_id: int, transaction_id) -> list[JournalEntry]:
    return (
        db.session.query(JournalEntry)
        .filter(
            JournalEntry.org_id == org_id,
            JournalEntry.reference_type == REFERENCE_TYPE,
            JournalEntry.reference_id == str(transaction_id),
            JournalEntry.status == journal_service.STATUS_POSTED,
            JournalEntry.reversal_of_id.is_(None),
        )
        .order_by(JournalEntry.id.asc())
        .all()
    )


def reverse_pos_transaction(
    *,
    org_id: int,
    user_id,
    transaction_id,
    transaction_code: str | None = None,
    void_date=None,
    reason: str | None = None,
) -> PostingResult:
    """
    Void a POS transaction by mirroring everything that was posted for it.

    Works from what is in the books (journals and stock movements referencing
    the transaction), so no sale amounts need to be passed in.
    """
    def _post():
        entry_date = validate_posting_date(void_date or utcnow().date())
        originals = _posted_originals(org_id, transaction_id)
        if not originals:
            raise ValidationError(
                f"No posted journal entries found for POS transaction {transaction_code or transaction_id}",
                {"transaction_id": str(transaction_id)},
            )

        code = transaction_code or originals[0].reference_code or str(transaction_id)
        pending = [e for e in originals if journal_service.find_reversal(org_id, e.id) is None]
        if not pending:
            raise ValidationError(
                f"POS transaction {code} has already been reversed",
                {"transaction_id": str(transaction_id)},
            )

        suffix = f": {reason}" if reason else ""
        reversal_ids = []
        for original in pending:
            label = "Void/Reversal COGS" if original.source_module == "COGS" else "Void/Reversal"
            reversal = journal_service.reverse_journal(
                org_id=org_id,
                journal_entry_id=original.id,
                posting_date=entry_date,
                description=f"{label} - POS {code}{suffix}",
                user_id=user_id,
            )
            reversal_ids.append(reversal.id)

        stock_code = f"ST-POS-VOID-{code}"
        offsets = reverse_ledger_entries(
            org_id=org_id,
            reference_type=REFERENCE_TYPE,
            reference_id=transaction_id,
            transaction_type="pos_void",
            voucher_type="POS Void",
            voucher_no=stock_code,
            reference_code=code,
            transaction_date=entry_date,
            created_by=user_id,
        )

        return PostingResult.posted(
            journal_entry_ids=reversal_ids,
            stock_transaction_code=stock_code if offsets else None,
            details={"reversed_journals": len(reversal_ids), "reversed_stock_entries": len(offsets)},
        )

    return run_posting("reverse_pos_transaction", _post)
