"""
Pytest fixtures for ledgercore tests.

Provides an in-memory database, two tenants with seeded charts of accounts,
warehouses and items, plus small helpers for reading posted journals.
"""

from decimal import Decimal

import pytest
from ledgercore import create_app
from ledgercore.extensions import db
from ledgercore.models import Account, Item, JournalEntry, Organization, Warehouse
from ledgercore.services.account_service import seed_default_chart
from ledgercore.services.ledger_service import append_ledger_entry


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def chart_a(db_session, org_a):
    """Default chart of accounts for Organization A."""
    accounts = seed_default_chart(org_a.id)
    db_session.commit()
    return accounts


@pytest.fixture(scope='function')
def chart_b(db_session, org_b):
    """Default chart of accounts for Organization B."""
    accounts = seed_default_chart(org_b.id)
    db_session.commit()
    return accounts


@pytest.fixture(scope='function')
def warehouse_a(db_session, org_a):
    warehouse = Warehouse(org_id=org_a.id, code="MAIN", name="Main Warehouse")
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def warehouse_a2(db_session, org_a):
    warehouse = Warehouse(org_id=org_a.id, code="BACK", name="Back Room")
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def warehouse_b(db_session, org_b):
    warehouse = Warehouse(org_id=org_b.id, code="MAIN", name="Beta Main")
    db_session.add(warehouse)
    db_session.commit()
    return warehouse


@pytest.fixture(scope='function')
def item_a(db_session, org_a):
    """Item with a configured purchase price."""
    item = Item(org_id=org_a.id, item_code="WIDGET", item_name="Widget", purchase_price=Decimal("20.00"))
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_a2(db_session, org_a):
    """Item without a purchase price."""
    item = Item(org_id=org_a.id, item_code="GADGET", item_name="Gadget", purchase_price=None)
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, org_b):
    item = Item(org_id=org_b.id, item_code="WIDGET", item_name="Beta Widget", purchase_price=Decimal("7.50"))
    db_session.add(item)
    db_session.commit()
    return item


def receive_stock(org, warehouse, item, quantity, rate, reference_id="seed"):
    """Put stock on hand through the ledger (incoming, re-averaging) and commit."""
    entry = append_ledger_entry(
        org_id=org.id,
        item_id=item.id,
        warehouse_id=warehouse.id,
        delta=Decimal(str(quantity)),
        rate=Decimal(str(rate)),
        incoming=True,
        transaction_type="purchase_receipt",
        voucher_type="Purchase Receipt",
        voucher_no=f"PR-{reference_id}",
        reference_type="purchase_receipt",
        reference_id=reference_id,
    )
    db.session.commit()
    return entry


def account_id(org, account_number):
    account = db.session.query(Account).filter_by(org_id=org.id, account_number=account_number).one()
    return account.id


def journal_legs(entry_id):
    """Posted lines as {account_number: (debit, credit)} for compact assertions."""
    entry = db.session.get(JournalEntry, entry_id)
    return {
        line.account.account_number: (Decimal(line.debit), Decimal(line.credit))
        for line in entry.lines
    }
