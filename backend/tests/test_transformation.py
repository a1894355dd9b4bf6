# Overview: Pytest coverage for stock transformations (inputs consumed, outputs produced, waste expensed).

from decimal import Decimal

from conftest import journal_legs, receive_stock
from ledgercore.models import JournalEntry, StockLedgerEntry
from ledgercore.services import ledger_service
from ledgercore.services.transformation_service import TransformationOutput, post_transformation


def _transform(org, warehouse, inputs, outputs):
    return post_transformation(
        org_id=org.id,
        user_id="kitchen",
        transformation_id="TR-1",
        transformation_code="TR-1",
        warehouse_id=warehouse.id,
        inputs=inputs,
        outputs=outputs,
    )


class TestTransformation:
    def test_waste_is_expensed(self, db_session, org_a, chart_a, warehouse_a, item_a, item_a2):
        receive_stock(org_a, warehouse_a, item_a, 10, "6.00")

        result = _transform(
            org_a,
            warehouse_a,
            inputs=[{"item_id": item_a.id, "quantity": 10}],
            outputs=[TransformationOutput(item_id=item_a2.id, produced_qty=Decimal("8"), wasted_qty=Decimal("2"))],
        )

        assert result.success
        assert result.details == {
            "input_cost": "60.0000",
            "cost_per_unit": "6.0000",
            "produced_value": "48.0000",
            "waste_cost": "12.0000",
        }
        assert journal_legs(result.journal_entry_id) == {
            "C-5000": (Decimal("12"), Decimal("0")),
            "A-1200": (Decimal("0"), Decimal("12")),
        }

        source = ledger_service.get_latest_balance(org_a.id, item_a.id, warehouse_a.id)
        product = ledger_service.get_latest_balance(org_a.id, item_a2.id, warehouse_a.id)
        assert source.quantity == 0
        assert product.quantity == Decimal("8")
        assert product.valuation_rate == Decimal("6")
        assert product.stock_value == Decimal("48")

    def test_no_waste_no_journal(self, db_session, org_a, chart_a, warehouse_a, item_a, item_a2):
        receive_stock(org_a, warehouse_a, item_a, 4, "5.00")

        result = _transform(
            org_a,
            warehouse_a,
            inputs=[{"item_id": item_a.id, "quantity": 4}],
            outputs=[{"item_id": item_a2.id, "produced_qty": 2}],
        )

        assert result.success
        assert result.journal_entry_ids == []
        assert result.details["cost_per_unit"] == "10.0000"
        assert result.stock_transaction_code is not None
        movements = db_session.query(StockLedgerEntry).filter_by(transaction_type="transformation").all()
        assert sorted(m.actual_qty for m in movements) == [Decimal("-4"), Decimal("2")]

    def test_outputs_required(self, db_session, org_a, chart_a, warehouse_a, item_a):
        receive_stock(org_a, warehouse_a, item_a, 4, "5.00")

        result = _transform(org_a, warehouse_a, inputs=[{"item_id": item_a.id, "quantity": 4}], outputs=[])

        assert not result.success
        assert result.error == "Transformation requires at least one output"
        assert db_session.query(StockLedgerEntry).count() == 1
        assert db_session.query(JournalEntry).count() == 0
