# Overview: Service-layer posting for accounts receivable; sales invoices, customer payments and invoice stock-out.

from __future__ import annotations

from ledgercore.amounts import is_zero
from ledgercore.time_utils import utcnow
from .account_service import (
    ACCOUNTS_RECEIVABLE,
    CASH,
    COST_OF_GOODS_SOLD,
    INVENTORY,
    SALES_REVENUE,
    resolve_accounts,
)
from .exceptions import PostingResult, ValidationError
from .journal_service import validate_posting_date
from .ledger_service import append_ledger_entry
from .posting_service import post_balanced_journal, require_positive_amount, run_posting
from .valuation_service import compute_cogs

"""
AR Posting

- Invoice:  DR Accounts Receivable (A-1100) / CR Sales Revenue (R-4000)
- Payment:  DR Cash/Bank (A-1000) / CR Accounts Receivable (A-1100)
- Stock-out for an invoice: negative ledger movement per item at the
  warehouse valuation rate, plus DR Cost of Goods Sold (C-5000) /
  CR Inventory (A-1200) when that cost is non-zero.
"""


def post_sales_invoice(
    *,
    org_id: int,
    user_id,
    invoice_id,
    invoice_code: str,
    invoice_date,
    total_amount,
    customer_id=None,
    description: str | None = None,
) -> PostingResult:
    def _post():
        total = require_positive_amount(total_amount, "total_amount")
        if is_zero(total):
            return PostingResult.skipped_noop("Invoice total is zero", {"invoice_code": invoice_code})

        resolve_accounts(org_id, [ACCOUNTS_RECEIVABLE, SALES_REVENUE])
        entry = post_balanced_journal(
            org_id=org_id,
            posting_date=invoice_date,
            legs=[
                (ACCOUNTS_RECEIVABLE, total, 0, f"AR from customer - Invoice {invoice_code}"),
                (SALES_REVENUE, 0, total, f"Revenue from Invoice {invoice_code}"),
            ],
            source_module="AR",
            reference_type="sales_invoice",
            reference_id=invoice_id,
            reference_code=invoice_code,
            description=description or f"Sales invoice {invoice_code}",
            user_id=user_id,
        )
        details = {"journal_code": entry.journal_code}
        if customer_id is not None:
            details["customer_id"] = customer_id
        return PostingResult.posted(journal_entry_ids=[entry.id], details=details)

    return run_posting("post_sales_invoice", _post)


def post_invoice_payment(
    *,
    org_id: int,
    user_id,
    payment_id,
    invoice_id,
    invoice_code: str,
    payment_date,
    payment_amount,
    payment_method: str | None = None,
    description: str | None = None,
) -> PostingResult:
    def _post():
        amount = require_positive_amount(payment_amount, "payment_amount")
        if is_zero(amount):
            return PostingResult.skipped_noop("Payment amount is zero", {"invoice_code": invoice_code})

        method = payment_method or "cash"
        resolve_accounts(org_id, [CASH, ACCOUNTS_RECEIVABLE])
        entry = post_balanced_journal(
            org_id=org_id,
            posting_date=payment_date,
            legs=[
                (CASH, amount, 0, f"Payment received via {method} - Invoice {invoice_code}"),
                (ACCOUNTS_RECEIVABLE, 0, amount, f"AR payment for Invoice {invoice_code}"),
            ],
            source_module="AR",
            reference_type="invoice_payment",
            reference_id=payment_id,
            reference_code=invoice_code,
            description=description or f"Payment for invoice {invoice_code} via {method}",
            user_id=user_id,
        )
        return PostingResult.posted(
            journal_entry_ids=[entry.id],
            details={"journal_code": entry.journal_code, "invoice_id": invoice_id},
        )

    return run_posting("post_invoice_payment", _post)


def post_invoice_stock_out(
    *,
    org_id: int,
    user_id,
    invoice_id,
    invoice_code: str,
    warehouse_id: int,
    items,
    posting_date=None,
) -> PostingResult:
    """
    Ship invoiced items out of a warehouse.

    Ledger movements are always written for the shipped quantities; the COGS
    journal is only posted when the items carry a non-zero cost.
    """
    def _post():
        entry_date = validate_posting_date(posting_date or utcnow().date())
        cogs = compute_cogs(org_id, items, warehouse_id=warehouse_id)
        if not cogs.items:
            return PostingResult.skipped_noop("No items to ship", {"invoice_code": invoice_code})
        for line in cogs.items:
            if line.quantity <= 0:
                raise ValidationError(
                    f"Shipped quantity must be positive for item {line.item_id}",
                    {"item_id": line.item_id},
                )

        post_journal_needed = not is_zero(cogs.total_cogs)
        if post_journal_needed:
            resolve_accounts(org_id, [COST_OF_GOODS_SOLD, INVENTORY])

        for line in cogs.items:
            append_ledger_entry(
                org_id=org_id,
                item_id=line.item_id,
                warehouse_id=warehouse_id,
                delta=-line.quantity,
                rate=line.rate,
                transaction_type="sales_invoice",
                voucher_type="Sales Invoice",
                voucher_no=invoice_code,
                reference_type="sales_invoice",
                reference_id=invoice_id,
                reference_code=invoice_code,
                transaction_date=entry_date,
                created_by=user_id,
            )

        journal_ids = []
        if post_journal_needed:
            entry = post_balanced_journal(
                org_id=org_id,
                posting_date=entry_date,
                legs=[
                    (COST_OF_GOODS_SOLD, cogs.total_cogs, 0,
                     f"COGS for {len(cogs.items)} items - Invoice {invoice_code}"),
                    (INVENTORY, 0, cogs.total_cogs, f"Inventory reduction - Invoice {invoice_code}"),
                ],
                source_module="COGS",
                reference_type="sales_invoice",
                reference_id=invoice_id,
                reference_code=invoice_code,
                description=f"COGS - Invoice {invoice_code}",
                user_id=user_id,
            )
            journal_ids.append(entry.id)

        return PostingResult.posted(journal_entry_ids=journal_ids, details=cogs.to_dict())

    return run_posting("post_invoice_stock_out", _post)
