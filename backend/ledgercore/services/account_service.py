# Overview: Service-layer operations for the chart of accounts; lookup by code and default chart seeding.

from __future__ import annotations

from ..extensions import db
from ..models import Account, Organization
from .exceptions import ConfigurationError, ValidationError

"""
Chart of Accounts Invariants (authoritative)

- Accounts are looked up by stable account_number codes, scoped to org_id.
- A usable account is active and not soft-deleted (deleted_at IS NULL).
- Posting services never create accounts on the fly. A missing account is a
  tenant configuration error and fails the posting before anything is written.
- Seeding is idempotent: existing account numbers are left untouched.
"""

CASH = "A-1000"
ACCOUNTS_RECEIVABLE = "A-1100"
INVENTORY = "A-1200"
ACCOUNTS_PAYABLE = "L-2000"
SALES_TAX_PAYABLE = "L-2100"
SALES_REVENUE = "R-4000"
SALES_DISCOUNTS = "R-4010"
COST_OF_GOODS_SOLD = "C-5000"
INVENTORY_ADJUSTMENT = "E-6500"

# Names used in "<name> account (<code>) not found" errors
POSTING_ACCOUNT_LABELS = {
    CASH: "Cash/Bank",
    ACCOUNTS_RECEIVABLE: "Accounts Receivable",
    INVENTORY: "Inventory",
    ACCOUNTS_PAYABLE: "Accounts Payable",
    SALES_TAX_PAYABLE: "Sales Tax Payable",
    SALES_REVENUE: "Sales Revenue",
    SALES_DISCOUNTS: "Sales Discounts",
    COST_OF_GOODS_SOLD: "Cost of Goods Sold",
    INVENTORY_ADJUSTMENT: "Inventory Adjustment",
}

# (account_number, account_name, account_type, is_system_account, sort_order, parent_number, description)
DEFAULT_CHART = [
    ("A-1000", "Cash and Bank", "asset", True, 100, None, None),
    ("A-1100", "Accounts Receivable", "asset", True, 200, None, None),
    ("A-1200", "Inventory", "asset", True, 300, None, None),
    ("A-1500", "Fixed Assets", "asset", False, 400, None, None),
    ("L-2000", "Accounts Payable", "liability", True, 500, None, None),
    ("L-2100", "Sales Tax Payable", "liability", True, 600, None, None),
    ("L-2200", "Accrued Expenses", "liability", False, 650, None, None),
    ("L-2500", "Long-term Debt", "liability", False, 700, None, None),
    ("E-3000", "Owner's Equity", "equity", False, 800, None, None),
    ("E-3100", "Retained Earnings", "equity", False, 900, None, None),
    ("R-4000", "Sales Revenue", "revenue", True, 1000, None, None),
    ("R-4010", "Sales Discounts", "revenue", True, 1010, "R-4000",
     "Contra-revenue account for sales discounts and price reductions"),
    ("R-4100", "Service Revenue", "revenue", False, 1100, None, None),
    ("R-4900", "Other Income", "revenue", False, 1200, None, None),
    ("C-5000", "Cost of Goods Sold", "cogs", True, 1300, None, None),
    ("E-6000", "Operating Expenses", "expense", False, 1400, None, None),
    ("E-6100", "Salaries and Wages", "expense", False, 1500, None, None),
    ("E-6200", "Rent Expense", "expense", False, 1600, None, None),
    ("E-6300", "Utilities Expense", "expense", False, 1700, None, None),
    ("E-6400", "Depreciation Expense", "expense", False, 1800, None, None),
    ("E-6900", "Miscellaneous Expense", "expense", False, 1900, None, None),
    ("E-6500", "Inventory Adjustment - Loss/Gain", "expense", True, 2000, None, None),
]

ACCOUNT_TYPES = {"asset", "liability", "equity", "revenue", "expense", "cogs"}


def account_label(account_number: str) -> str:
    return POSTING_ACCOUNT_LABELS.get(account_number, account_number)


def get_account(org_id: int, account_number: str) -> Account | None:
    """Active, non-deleted account for the organization, or None."""
    return (
        db.session.query(Account)
        .filter(
            Account.org_id == org_id,
            Account.account_number == account_number,
            Account.is_active.is_(True),
            Account.deleted_at.is_(None),
        )
        .first()
    )


def require_account(org_id: int, account_number: str) -> Account:
    account = get_account(org_id, account_number)
    if account is None:
        raise ConfigurationError(
            f"{account_label(account_number)} account ({account_number}) not found",
            {"org_id": org_id, "account_number": account_number},
        )
    return account


def resolve_accounts(org_id: int, account_numbers) -> dict[str, Account]:
    """Resolve every code up front; the first missing one raises ConfigurationError."""
    resolved = {}
    for number in account_numbers:
        if number not in resolved:
            resolved[number] = require_account(org_id, number)
    return resolved


def list_accounts(org_id: int, *, include_inactive: bool = False) -> list[Account]:
    query = db.session.query(Account).filter(Account.org_id == org_id, Account.deleted_at.is_(None))
    if not include_inactive:
        query = query.filter(Account.is_active.is_(True))
    return query.order_by(Account.sort_order.asc(), Account.account_number.asc()).all()


def seed_default_chart(org_id: int) -> list[Account]:
    """
    Create the default chart of accounts for an organization.

    Returns only the accounts created by this call. Caller commits.
    """
    org = db.session.query(Organization).filter_by(id=org_id).first()
    if not org:
        raise ValidationError(f"Organization {org_id} not found")

    existing = {
        a.account_number: a
        for a in db.session.query(Account).filter(Account.org_id == org_id).all()
    }
    created = []
    for number, name, account_type, is_system, sort_order, parent_number, description in DEFAULT_CHART:
        if number in existing:
            continue
        parent = existing.get(parent_number) if parent_number else None
        account = Account(
            org_id=org_id,
            account_number=number,
            account_name=name,
            account_type=account_type,
            parent_account_id=parent.id if parent else None,
            is_system_account=is_system,
            is_active=True,
            description=description,
            sort_order=sort_order,
        )
        db.session.add(account)
        db.session.flush()
        existing[number] = account
        created.append(account)
    return created
