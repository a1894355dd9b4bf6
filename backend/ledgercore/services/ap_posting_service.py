# Overview: Service-layer posting for accounts payable; purchase receipts into stock and supplier payments.

from __future__ import annotations

from ledgercore.amounts import ZERO, is_zero, quantize
from ledgercore.time_utils import utcnow
from .account_service import ACCOUNTS_PAYABLE, CASH, INVENTORY, resolve_accounts
from .exceptions import PostingResult, ValidationError
from .journal_service import validate_posting_date
from .ledger_service import append_ledger_entry
from .posting_service import post_balanced_journal, require_positive_amount, run_posting
from .valuation_service import coerce_stock_lines

"""
AP Posting

- Purchase receipt: positive ledger movement per item at the receipt rate
  (moves the warehouse valuation rate to the weighted average), then
  DR Inventory (A-1200) / CR Accounts Payable (L-2000) for the receipt value.
- Supplier payment: DR Accounts Payable (L-2000) / CR Cash/Bank (A-1000).
"""


def post_purchase_receipt(
    *,
    org_id: int,
    user_id,
    receipt_id,
    receipt_code: str,
    warehouse_id: int,
    items,
    receipt_date=None,
    description: str | None = None,
) -> PostingResult:
    """
    Receive purchased stock.

    items: StockLine (or mappings) with item_id, quantity and the unit rate paid.
    """
    def _post():
        entry_date = validate_posting_date(receipt_date or utcnow().date())
        lines = [line for line in coerce_stock_lines(items) if not is_zero(line.quantity)]
        if not lines:
            return PostingResult.skipped_noop("No quantities received", {"receipt_code": receipt_code})

        total = ZERO
        for line in lines:
            if line.quantity < 0:
                raise ValidationError(
                    f"Received quantity must be positive for item {line.item_id}",
                    {"item_id": line.item_id},
                )
            if line.rate is None:
                raise ValidationError(
                    f"Receipt rate is required for item {line.item_id}",
                    {"item_id": line.item_id},
                )
            total += quantize(line.quantity * require_positive_amount(line.rate, "rate"))
        total = quantize(total)

        if not is_zero(total):
            resolve_accounts(org_id, [INVENTORY, ACCOUNTS_PAYABLE])

        for line in lines:
            append_ledger_entry(
                org_id=org_id,
                item_id=line.item_id,
                warehouse_id=warehouse_id,
                delta=line.quantity,
                rate=line.rate,
                incoming=True,
                transaction_type="purchase_receipt",
                voucher_type="Purchase Receipt",
                voucher_no=receipt_code,
                reference_type="purchase_receipt",
                reference_id=receipt_id,
                reference_code=receipt_code,
                transaction_date=entry_date,
                created_by=user_id,
            )

        journal_ids = []
        if not is_zero(total):
            entry = post_balanced_journal(
                org_id=org_id,
                posting_date=entry_date,
                legs=[
                    (INVENTORY, total, 0, f"Inventory purchase - Receipt {receipt_code}"),
                    (ACCOUNTS_PAYABLE, 0, total, f"AP to supplier - Receipt {receipt_code}"),
                ],
                source_module="AP",
                reference_type="purchase_receipt",
                reference_id=receipt_id,
                reference_code=receipt_code,
                description=description or f"Purchase receipt {receipt_code}",
                user_id=user_id,
            )
            journal_ids.append(entry.id)

        return PostingResult.posted(
            journal_entry_ids=journal_ids,
            details={"total_amount": str(total), "line_count": len(lines)},
        )

    return run_posting("post_purchase_receipt", _post)


def post_supplier_payment(
    *,
    org_id: int,
    user_id,
    payment_id,
    receipt_id,
    receipt_code: str,
    payment_date,
    payment_amount,
    payment_method: str | None = None,
    description: str | None = None,
) -> PostingResult:
    def _post():
        amount = require_positive_amount(payment_amount, "payment_amount")
        if is_zero(amount):
            return PostingResult.skipped_noop("Payment amount is zero", {"receipt_code": receipt_code})

        method = payment_method or "cash"
        resolve_accounts(org_id, [ACCOUNTS_PAYABLE, CASH])
        entry = post_balanced_journal(
            org_id=org_id,
            posting_date=payment_date,
            legs=[
                (ACCOUNTS_PAYABLE, amount, 0, f"AP payment for Receipt {receipt_code}"),
                (CASH, 0, amount, f"Payment via {method} - Receipt {receipt_code}"),
            ],
            source_module="AP",
            reference_type="supplier_payment",
            reference_id=payment_id,
            reference_code=receipt_code,
            description=description or f"Payment for purchase receipt {receipt_code} via {method}",
            user_id=user_id,
        )
        return PostingResult.posted(
            journal_entry_ids=[entry.id],
            details={"journal_code": entry.journal_code, "receipt_id": receipt_id},
        )

    return run_posting("post_supplier_payment", _post)
