# Overview: Pytest coverage for receivable and payable postings, including invoice stock-out and purchase receipts.

from decimal import Decimal

from conftest import journal_legs, receive_stock
from ledgercore.models import Account, JournalEntry, StockLedgerEntry
from ledgercore.services import ledger_service
from ledgercore.services.ap_posting_service import post_purchase_receipt, post_supplier_payment
from ledgercore.services.ar_posting_service import (
    post_invoice_payment,
    post_invoice_stock_out,
    post_sales_invoice,
)
from ledgercore.services.valuation_service import StockLine
from ledgercore.time_utils import utcnow


def _invoice(org, amount="1000.00", **overrides):
    kwargs = dict(
        org_id=org.id,
        user_id=3,
        invoice_id=77,
        invoice_code="INV-0077",
        invoice_date=utcnow().date(),
        total_amount=amount,
        customer_id=12,
    )
    kwargs.update(overrides)
    return post_sales_invoice(**kwargs)


class TestSalesInvoice:
    def test_simple_sale(self, db_session, org_a, chart_a):
        result = _invoice(org_a)

        assert result.success
        assert not result.skipped
        assert result.details["journal_code"] == "JE-000001"
        assert result.details["customer_id"] == 12
        entry = db_session.get(JournalEntry, result.journal_entry_id)
        assert entry.source_module == "AR"
        assert entry.reference_type == "sales_invoice"
        assert entry.reference_id == "77"
        assert journal_legs(entry.id) == {
            "A-1100": (Decimal("1000"), Decimal("0")),
            "R-4000": (Decimal("0"), Decimal("1000")),
        }

    def test_zero_total_skipped(self, db_session, org_a, chart_a):
        result = _invoice(org_a, amount="0")
        assert result.success
        assert result.skipped
        assert db_session.query(JournalEntry).count() == 0

    def test_negative_total_fails(self, db_session, org_a, chart_a):
        result = _invoice(org_a, amount="-5")
        assert not result.success
        assert "cannot be negative" in result.error

    def test_missing_receivable_account(self, db_session, org_a, chart_a):
        account = db_session.query(Account).filter_by(org_id=org_a.id, account_number="A-1100").one()
        account.is_active = False
        db_session.commit()

        result = _invoice(org_a)
        assert not result.success
        assert result.error == "Accounts Receivable account (A-1100) not found"

    def test_payment_clears_receivable(self, db_session, org_a, chart_a):
        result = post_invoice_payment(
            org_id=org_a.id,
            user_id=3,
            payment_id=5,
            invoice_id=77,
            invoice_code="INV-0077",
            payment_date=utcnow().date(),
            payment_amount="400.00",
            payment_method="card",
        )

        assert result.success
        entry = db_session.get(JournalEntry, result.journal_entry_id)
        assert entry.reference_type == "invoice_payment"
        assert "card" in entry.description
        assert journal_legs(entry.id) == {
            "A-1000": (Decimal("400"), Decimal("0")),
            "A-1100": (Decimal("0"), Decimal("400")),
        }


class TestInvoiceStockOut:
    def test_ships_at_warehouse_rate(self, db_session, org_a, chart_a, warehouse_a, warehouse_a2, item_a):
        receive_stock(org_a, warehouse_a, item_a, 10, "12.00", reference_id="PR-1")
        receive_stock(org_a, warehouse_a2, item_a, 10, "30.00", reference_id="PR-2")

        result = post_invoice_stock_out(
            org_id=org_a.id,
            user_id=3,
            invoice_id=77,
            invoice_code="INV-0077",
            warehouse_id=warehouse_a.id,
            items=[StockLine(item_id=item_a.id, quantity=Decimal("3"))],
        )

        assert result.success
        assert result.details["total_cogs"] == "36.0000"
        assert journal_legs(result.journal_entry_id) == {
            "C-5000": (Decimal("36"), Decimal("0")),
            "A-1200": (Decimal("0"), Decimal("36")),
        }
        assert ledger_service.get_latest_balance(org_a.id, item_a.id, warehouse_a.id).quantity == Decimal("7")
        assert ledger_service.get_latest_balance(org_a.id, item_a.id, warehouse_a2.id).quantity == Decimal("10")

    def test_zero_cost_writes_ledger_only(self, db_session, org_a, chart_a, warehouse_a, item_a2):
        result = post_invoice_stock_out(
            org_id=org_a.id,
            user_id=3,
            invoice_id=78,
            invoice_code="INV-0078",
            warehouse_id=warehouse_a.id,
            items=[{"item_id": item_a2.id, "quantity": 1}],
        )

        assert result.success
        assert result.journal_entry_ids == []
        movement = db_session.query(StockLedgerEntry).one()
        assert movement.actual_qty == Decimal("-1")
        assert movement.qty_after_trans == Decimal("-1")


class TestPurchaseReceipt:
    def test_receipt_re_averages_and_posts(self, db_session, org_a, chart_a, warehouse_a, item_a):
        receive_stock(org_a, warehouse_a, item_a, 10, "10.00", reference_id="opening")

        result = post_purchase_receipt(
            org_id=org_a.id,
            user_id=3,
            receipt_id=9,
            receipt_code="PR-0009",
            warehouse_id=warehouse_a.id,
            items=[{"item_id": item_a.id, "quantity": 10, "rate": "14.00"}],
        )

        assert result.success
        assert result.details["total_amount"] == "140.0000"
        entry = db_session.get(JournalEntry, result.journal_entry_id)
        assert entry.source_module == "AP"
        assert journal_legs(entry.id) == {
            "A-1200": (Decimal("140"), Decimal("0")),
            "L-2000": (Decimal("0"), Decimal("140")),
        }
        balance = ledger_service.get_latest_balance(org_a.id, item_a.id, warehouse_a.id)
        assert balance.quantity == Decimal("20")
        assert balance.valuation_rate == Decimal("12")

    def test_missing_rate_fails_without_writes(self, db_session, org_a, chart_a, warehouse_a, item_a):
        result = post_purchase_receipt(
            org_id=org_a.id,
            user_id=3,
            receipt_id=9,
            receipt_code="PR-0009",
            warehouse_id=warehouse_a.id,
            items=[{"item_id": item_a.id, "quantity": 4}],
        )

        assert not result.success
        assert "rate is required" in result.error
        assert db_session.query(StockLedgerEntry).count() == 0
        assert db_session.query(JournalEntry).count() == 0

    def test_missing_payable_account_rolls_back_stock(self, db_session, org_a, chart_a, warehouse_a, item_a):
        account = db_session.query(Account).filter_by(org_id=org_a.id, account_number="L-2000").one()
        account.is_active = False
        db_session.commit()

        result = post_purchase_receipt(
            org_id=org_a.id,
            user_id=3,
            receipt_id=9,
            receipt_code="PR-0009",
            warehouse_id=warehouse_a.id,
            items=[{"item_id": item_a.id, "quantity": 4, "rate": "3.00"}],
        )

        assert not result.success
        assert result.error == "Accounts Payable account (L-2000) not found"
        assert db_session.query(StockLedgerEntry).count() == 0

    def test_supplier_payment(self, db_session, org_a, chart_a):
        result = post_supplier_payment(
            org_id=org_a.id,
            user_id=3,
            payment_id=21,
            receipt_id=9,
            receipt_code="PR-0009",
            payment_date=utcnow().date(),
            payment_amount="140.00",
            payment_method="bank_transfer",
        )

        assert result.success
        entry = db_session.get(JournalEntry, result.journal_entry_id)
        assert entry.reference_type == "supplier_payment"
        assert journal_legs(entry.id) == {
            "L-2000": (Decimal("140"), Decimal("0")),
            "A-1000": (Decimal("0"), Decimal("140")),
        }
