# Overview: Flask CLI command tests using the app's click test runner.

from decimal import Decimal

from sqlalchemy import update

from conftest import receive_stock
from ledgercore.models import Account, Organization, StockLedgerEntry


class TestOrgCommands:
    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["orgs", "create", "--name", "Gamma LLC", "--code", "GAMMA", "--currency", "eur"])
        assert "PASS Created organization: Gamma LLC" in result.output
        org = db_session.query(Organization).filter_by(code="GAMMA").one()
        assert org.currency_code == "EUR"

        duplicate = runner.invoke(args=["orgs", "create", "--name", "Other", "--code", "GAMMA"])
        assert "FAIL" in duplicate.output

        listing = runner.invoke(args=["orgs", "list"])
        assert "Gamma LLC" in listing.output

    def test_bad_currency_rejected(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["orgs", "create", "--name", "X", "--code", "X1", "--currency", "EURO"])
        assert "FAIL" in result.output
        assert db_session.query(Organization).filter_by(code="X1").count() == 0


class TestAccountCommands:
    def test_seed_is_idempotent(self, app, db_session, org_a):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["accounts", "seed", "--org-id", str(org_a.id)])
        assert "PASS Created" in first.output
        count = db_session.query(Account).filter_by(org_id=org_a.id).count()
        assert count > 0

        second = runner.invoke(args=["accounts", "seed", "--org-id", str(org_a.id)])
        assert "already complete" in second.output
        assert db_session.query(Account).filter_by(org_id=org_a.id).count() == count

        listing = runner.invoke(args=["accounts", "list", "--org-id", str(org_a.id)])
        assert "C-5000" in listing.output

    def test_seed_unknown_org(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["accounts", "seed", "--org-id", "9999"])
        assert "FAIL Organization ID 9999 not found" in result.output


class TestLedgerCommands:
    def test_balance_and_valuation(self, app, db_session, org_a, warehouse_a, item_a):
        receive_stock(org_a, warehouse_a, item_a, 10, "5.00")
        runner = app.test_cli_runner()

        balance = runner.invoke(args=[
            "ledger", "balance", "--org-id", str(org_a.id), "--item-code", "WIDGET", "--warehouse-code", "MAIN",
        ])
        assert "WIDGET @ MAIN: qty=10.0000" in balance.output

        valuation = runner.invoke(args=["ledger", "valuation", "--org-id", str(org_a.id)])
        assert "Total stock value: 50.0000 USD" in valuation.output

    def test_verify_passes_then_fails(self, app, db_session, org_a, warehouse_a, item_a):
        first = receive_stock(org_a, warehouse_a, item_a, 10, "5.00", reference_id="PR-1")
        receive_stock(org_a, warehouse_a, item_a, 2, "5.00", reference_id="PR-2")
        runner = app.test_cli_runner()

        clean = runner.invoke(args=["ledger", "verify", "--org-id", str(org_a.id)])
        assert clean.exit_code == 0
        assert "PASS" in clean.output

        db_session.execute(
            update(StockLedgerEntry)
            .where(StockLedgerEntry.id == first.id)
            .values(qty_after_trans=Decimal("11"))
        )
        db_session.commit()

        broken = runner.invoke(args=["ledger", "verify", "--org-id", str(org_a.id)])
        assert broken.exit_code == 1
        assert "Running balance broken" in broken.output
