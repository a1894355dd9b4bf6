# Overview: Pytest coverage for stock adjustments and their inventory journals.

from decimal import Decimal

from conftest import journal_legs, receive_stock
from ledgercore.models import JournalEntry, StockLedgerEntry
from ledgercore.services import ledger_service
from ledgercore.services.stock_adjustment_service import AdjustmentLine, post_stock_adjustment
from ledgercore.time_utils import utcnow


def _adjust(org, warehouse, items, code="ADJ-1", **overrides):
    kwargs = dict(
        org_id=org.id,
        user_id="stocktaker",
        adjustment_id=code,
        adjustment_code=code,
        warehouse_id=warehouse.id,
        adjustment_date=utcnow().date(),
        items=items,
        reason="cycle count",
    )
    kwargs.update(overrides)
    return post_stock_adjustment(**kwargs)


class TestStockAdjustment:
    def test_all_zero_differences_skipped(self, db_session, org_a, chart_a, warehouse_a, item_a):
        result = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": 0}])

        assert result.success
        assert result.skipped
        assert db_session.query(StockLedgerEntry).count() == 0
        assert db_session.query(JournalEntry).count() == 0

    def test_gain_debits_inventory(self, db_session, org_a, chart_a, warehouse_a, item_a):
        receive_stock(org_a, warehouse_a, item_a, 10, "4.00")

        result = _adjust(org_a, warehouse_a, [AdjustmentLine(item_id=item_a.id, difference=Decimal("3"))])

        assert result.success
        assert result.details["net_value"] == "12.0000"
        entry = db_session.get(JournalEntry, result.journal_entry_id)
        assert entry.source_module == "Inventory"
        assert entry.description == "Stock adjustment ADJ-1: cycle count"
        assert journal_legs(entry.id) == {
            "A-1200": (Decimal("12"), Decimal("0")),
            "C-5000": (Decimal("0"), Decimal("12")),
        }
        balance = ledger_service.get_latest_balance(org_a.id, item_a.id, warehouse_a.id)
        assert balance.quantity == Decimal("13")
        assert balance.valuation_rate == Decimal("4")

    def test_loss_credits_inventory(self, db_session, org_a, chart_a, warehouse_a, item_a):
        receive_stock(org_a, warehouse_a, item_a, 10, "4.00")

        result = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": -2, "unit_cost": "5.00"}])

        assert result.success
        movement = db_session.query(StockLedgerEntry).filter_by(transaction_type="stock_adjustment").one()
        assert movement.valuation_rate == Decimal("4")
        assert movement.qty_after_trans == Decimal("8")
        assert movement.stock_value_diff == Decimal("-8")
        # GL inventory moves by exactly the ledger value change
        assert journal_legs(result.journal_entry_id) == {
            "C-5000": (Decimal("8"), Decimal("0")),
            "A-1200": (Decimal("0"), -movement.stock_value_diff),
        }

    def test_gain_at_unit_cost_reaverages(self, db_session, org_a, chart_a, warehouse_a, item_a):
        receive_stock(org_a, warehouse_a, item_a, 10, "4.00")

        result = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": 10, "unit_cost": "6.00"}])

        assert result.success
        movement = db_session.query(StockLedgerEntry).filter_by(transaction_type="stock_adjustment").one()
        assert movement.valuation_rate == Decimal("5")
        assert movement.stock_value_diff == Decimal("60")
        assert journal_legs(result.journal_entry_id) == {
            "A-1200": (Decimal("60"), Decimal("0")),
            "C-5000": (Decimal("0"), Decimal("60")),
        }

    def test_zero_net_difference_skipped(self, db_session, org_a, chart_a, warehouse_a, item_a, item_a2):
        result = _adjust(org_a, warehouse_a, [
            {"item_id": item_a.id, "difference": 2, "unit_cost": "3.00"},
            {"item_id": item_a2.id, "difference": -2, "unit_cost": "3.00"},
        ])

        assert result.success
        assert result.skipped
        assert result.stock_transaction_code is None
        assert db_session.query(StockLedgerEntry).count() == 0
        assert db_session.query(JournalEntry).count() == 0

        follow_up = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": 1}], code="ADJ-2")
        assert follow_up.stock_transaction_code == f"ST-{utcnow().year}-0001"

    def test_zero_value_writes_ledger_only(self, db_session, org_a, chart_a, warehouse_a, item_a2):
        result = _adjust(org_a, warehouse_a, [{"item_id": item_a2.id, "difference": 3, "unit_cost": "0"}])

        assert result.success
        assert not result.skipped
        assert result.journal_entry_ids == []
        assert result.details["net_value"] == "0.0000"
        assert db_session.query(StockLedgerEntry).count() == 1
        assert db_session.query(JournalEntry).count() == 0

    def test_stock_codes_increment(self, db_session, org_a, chart_a, warehouse_a, item_a):
        year = utcnow().year
        first = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": 1}], code="ADJ-1")
        second = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": 1}], code="ADJ-2")

        assert first.stock_transaction_code == f"ST-{year}-0001"
        assert second.stock_transaction_code == f"ST-{year}-0002"
        vouchers = {e.voucher_no for e in db_session.query(StockLedgerEntry)}
        assert vouchers == {first.stock_transaction_code, second.stock_transaction_code}

    def test_negative_unit_cost_rejected(self, db_session, org_a, chart_a, warehouse_a, item_a):
        result = _adjust(org_a, warehouse_a, [{"item_id": item_a.id, "difference": 1, "unit_cost": "-1"}])
        assert not result.success
        assert db_session.query(StockLedgerEntry).count() == 0
