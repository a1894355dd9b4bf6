# Overview: Pytest coverage for tenant isolation behavior.

"""
Multi-Tenant Isolation Tests

Two organizations share one database. These tests verify that:
1. Journal codes and stock transaction codes are numbered per organization
2. Accounts, items and warehouses of another organization are never usable
3. Ledger balances, valuations and journal lookups only see the caller's rows
4. Voids and reversals cannot reach into another organization's postings
"""

from decimal import Decimal

import pytest

from conftest import account_id, receive_stock
from ledgercore.models import JournalEntry
from ledgercore.services import journal_service, ledger_service
from ledgercore.services.account_service import get_account
from ledgercore.services.ar_posting_service import post_sales_invoice
from ledgercore.services.exceptions import ValidationError
from ledgercore.services.pos_posting_service import post_pos_sale, reverse_pos_transaction
from ledgercore.services.stock_adjustment_service import post_stock_adjustment
from ledgercore.services.valuation_service import stock_valuation, valuation_rate_for
from ledgercore.time_utils import utcnow


def _invoice(org, invoice_id):
    return post_sales_invoice(
        org_id=org.id,
        user_id=1,
        invoice_id=invoice_id,
        invoice_code=f"INV-{invoice_id}",
        invoice_date=utcnow().date(),
        total_amount="10.00",
    )


class TestNumbering:
    def test_journal_codes_are_per_tenant(self, db_session, org_a, org_b, chart_a, chart_b):
        codes_a = [db_session.get(JournalEntry, _invoice(org_a, i).journal_entry_id).journal_code for i in (1, 2)]
        code_b = db_session.get(JournalEntry, _invoice(org_b, 3).journal_entry_id).journal_code

        assert codes_a == ["JE-000001", "JE-000002"]
        assert code_b == "JE-000001"

    def test_stock_codes_are_per_tenant(self, db_session, org_a, org_b, chart_a, chart_b,
                                        warehouse_a, warehouse_b, item_a, item_b):
        year = utcnow().year
        results = [
            post_stock_adjustment(
                org_id=org.id,
                user_id=1,
                adjustment_id=f"ADJ-{org.code}",
                adjustment_code=f"ADJ-{org.code}",
                warehouse_id=warehouse.id,
                adjustment_date=utcnow().date(),
                items=[{"item_id": item.id, "difference": 1}],
            )
            for org, warehouse, item in ((org_a, warehouse_a, item_a), (org_b, warehouse_b, item_b))
        ]
        assert [r.stock_transaction_code for r in results] == [f"ST-{year}-0001", f"ST-{year}-0001"]


class TestForeignReferences:
    def test_foreign_account_not_resolvable(self, db_session, org_a, org_b, chart_a):
        assert get_account(org_a.id, "A-1000") is not None
        assert get_account(org_b.id, "A-1000") is None

    def test_foreign_account_in_lines_rejected(self, db_session, org_a, org_b, chart_a, chart_b):
        lines = [
            {"account_id": account_id(org_b, "A-1000"), "debit": 5, "credit": 0},
            {"account_id": account_id(org_a, "R-4000"), "debit": 0, "credit": 5},
        ]
        with pytest.raises(ValidationError):
            journal_service.post_journal(
                org_id=org_a.id,
                posting_date=utcnow().date(),
                lines=lines,
                source_module="Manual",
            )

    def test_sale_without_own_chart_fails(self, db_session, org_a, org_b, chart_a):
        result = post_pos_sale(
            org_id=org_b.id,
            user_id=1,
            transaction_id=1,
            transaction_code="POS-1",
            transaction_date=utcnow().date(),
            subtotal="10.00",
            total_amount="10.00",
        )
        assert not result.success
        assert result.error == "Cash/Bank account (A-1000) not found"


class TestReads:
    def test_ledger_and_valuation_are_scoped(self, db_session, org_a, org_b, warehouse_a, warehouse_b, item_a, item_b):
        receive_stock(org_a, warehouse_a, item_a, 5, "3.00")
        receive_stock(org_b, warehouse_b, item_b, 7, "9.00")

        assert ledger_service.list_ledger_entries(org_b.id, item_id=item_a.id) == []
        assert ledger_service.get_latest_balance(org_b.id, item_a.id, warehouse_a.id).quantity == 0
        assert not valuation_rate_for(org_b.id, item_a.id).found
        assert stock_valuation(org_a.id)["total_value"] == "15.0000"
        assert stock_valuation(org_b.id)["total_value"] == "63.0000"
        assert ledger_service.ledger_keys(org_a.id) == [(item_a.id, warehouse_a.id)]

    def test_journal_lookup_is_scoped(self, db_session, org_a, org_b, chart_a):
        entry_id = _invoice(org_a, 1).journal_entry_id
        assert journal_service.get_journal_entry(org_a.id, entry_id) is not None
        assert journal_service.get_journal_entry(org_b.id, entry_id) is None

    def test_cross_tenant_void_fails(self, db_session, org_a, org_b, chart_a, chart_b):
        sale = post_pos_sale(
            org_id=org_a.id,
            user_id=1,
            transaction_id=44,
            transaction_code="POS-44",
            transaction_date=utcnow().date(),
            subtotal="10.00",
            total_amount="10.00",
        )
        assert sale.success

        result = reverse_pos_transaction(org_id=org_b.id, user_id=1, transaction_id=44)
        assert not result.success
        assert db_session.query(JournalEntry).filter(JournalEntry.reversal_of_id.isnot(None)).count() == 0

    def test_cross_tenant_journal_reversal_fails(self, db_session, org_a, org_b, chart_a):
        entry_id = _invoice(org_a, 1).journal_entry_id
        with pytest.raises(ValidationError):
            journal_service.reverse_journal(org_id=org_b.id, journal_entry_id=entry_id)
        assert Decimal(db_session.get(JournalEntry, entry_id).total_debit) == Decimal("10")
