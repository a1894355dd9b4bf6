"""Ledger core schema: tenants, warehouses, items, stock ledger, chart of accounts, journals

Revision ID: lc001
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "lc001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=None if nullable else sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=True),
        sa.Column("currency_code", sa.String(length=3), nullable=False, server_default="USD"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_organizations_code", "organizations", ["code"], unique=True)
    op.create_index("ix_organizations_is_active", "organizations", ["is_active"], unique=False)

    op.create_table(
        "warehouses",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.UniqueConstraint("org_id", "code", name="uq_warehouses_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_warehouses_org_id", "warehouses", ["org_id"], unique=False)
    op.create_index("ix_warehouses_org_active", "warehouses", ["org_id", "is_active"], unique=False)

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_code", sa.String(length=64), nullable=False),
        sa.Column("item_name", sa.String(length=255), nullable=False),
        sa.Column("purchase_price", sa.Numeric(20, 4), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.UniqueConstraint("org_id", "item_code", name="uq_items_org_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_items_org_id", "items", ["org_id"], unique=False)
    op.create_index("ix_items_org_active", "items", ["org_id", "is_active"], unique=False)

    op.create_table(
        "stock_ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("warehouse_id", sa.Integer(), nullable=False),
        sa.Column("posting_date", sa.Date(), nullable=False),
        sa.Column("posting_time", sa.Time(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.Column("actual_qty", sa.Numeric(20, 4), nullable=False),
        sa.Column("qty_after_trans", sa.Numeric(20, 4), nullable=False),
        sa.Column("incoming_rate", sa.Numeric(20, 4), nullable=True),
        sa.Column("valuation_rate", sa.Numeric(20, 4), nullable=True),
        sa.Column("stock_value", sa.Numeric(20, 4), nullable=True),
        sa.Column("stock_value_diff", sa.Numeric(20, 4), nullable=True),
        sa.Column("transaction_type", sa.String(length=32), nullable=False),
        sa.Column("voucher_type", sa.String(length=50), nullable=False),
        sa.Column("voucher_no", sa.String(length=100), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("reference_code", sa.String(length=100), nullable=True),
        sa.Column("reverses_entry_id", sa.Integer(), nullable=True),
        sa.Column("is_cancelled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"]),
        sa.ForeignKeyConstraint(["warehouse_id"], ["warehouses.id"]),
        sa.ForeignKeyConstraint(["reverses_entry_id"], ["stock_ledger_entries.id"]),
        sa.UniqueConstraint(
            "org_id", "item_id", "warehouse_id", "sequence_no",
            name="uq_stock_ledger_key_sequence",
        ),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stock_ledger_entries_org_id", "stock_ledger_entries", ["org_id"], unique=False)
    op.create_index("ix_stock_ledger_entries_item_id", "stock_ledger_entries", ["item_id"], unique=False)
    op.create_index("ix_stock_ledger_entries_warehouse_id", "stock_ledger_entries", ["warehouse_id"], unique=False)
    op.create_index("ix_stock_ledger_entries_transaction_type", "stock_ledger_entries", ["transaction_type"], unique=False)
    op.create_index("ix_stock_ledger_entries_reverses_entry_id", "stock_ledger_entries", ["reverses_entry_id"], unique=False)
    op.create_index(
        "ix_stock_ledger_key_posting",
        "stock_ledger_entries",
        ["org_id", "item_id", "warehouse_id", "posting_date", "posting_time"],
        unique=False,
    )
    op.create_index(
        "ix_stock_ledger_org_item_posting",
        "stock_ledger_entries",
        ["org_id", "item_id", "posting_date", "posting_time"],
        unique=False,
    )
    op.create_index("ix_stock_ledger_reference", "stock_ledger_entries", ["org_id", "reference_type", "reference_id"], unique=False)
    op.create_index("ix_stock_ledger_voucher", "stock_ledger_entries", ["voucher_type", "voucher_no"], unique=False)

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("account_number", sa.String(length=32), nullable=False),
        sa.Column("account_name", sa.String(length=255), nullable=False),
        sa.Column("account_type", sa.String(length=16), nullable=False),
        sa.Column("parent_account_id", sa.Integer(), nullable=True),
        sa.Column("is_system_account", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("deleted_at", nullable=True),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["parent_account_id"], ["accounts.id"]),
        sa.UniqueConstraint("org_id", "account_number", name="uq_accounts_org_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_accounts_org_id", "accounts", ["org_id"], unique=False)
    op.create_index("ix_accounts_org_active", "accounts", ["org_id", "is_active"], unique=False)

    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("journal_code", sa.String(length=32), nullable=False),
        sa.Column("posting_date", sa.Date(), nullable=False),
        sa.Column("reference_type", sa.String(length=32), nullable=True),
        sa.Column("reference_id", sa.String(length=64), nullable=True),
        sa.Column("reference_code", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("source_module", sa.String(length=16), nullable=False),
        sa.Column("total_debit", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("total_credit", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("reversal_of_id", sa.Integer(), nullable=True),
        sa.Column("posted_by", sa.String(length=64), nullable=True),
        _timestamp("posted_at", nullable=True),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["reversal_of_id"], ["journal_entries.id"]),
        sa.UniqueConstraint("org_id", "journal_code", name="uq_journal_entries_org_code"),
        sa.UniqueConstraint("reversal_of_id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_journal_entries_org_id", "journal_entries", ["org_id"], unique=False)
    op.create_index("ix_journal_entries_status", "journal_entries", ["status"], unique=False)
    op.create_index("ix_journal_entries_source_module", "journal_entries", ["source_module"], unique=False)
    op.create_index("ix_journal_entries_reference", "journal_entries", ["org_id", "reference_type", "reference_id"], unique=False)
    op.create_index("ix_journal_entries_org_posting_date", "journal_entries", ["org_id", "posting_date"], unique=False)

    op.create_table(
        "journal_lines",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("journal_entry_id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("debit", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("credit", sa.Numeric(20, 4), nullable=False, server_default="0"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("line_number", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.ForeignKeyConstraint(["journal_entry_id"], ["journal_entries.id"]),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"]),
        sa.UniqueConstraint("journal_entry_id", "line_number", name="uq_journal_lines_entry_line"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_journal_lines_org_id", "journal_lines", ["org_id"], unique=False)
    op.create_index("ix_journal_lines_journal_entry_id", "journal_lines", ["journal_entry_id"], unique=False)
    op.create_index("ix_journal_lines_account_id", "journal_lines", ["account_id"], unique=False)

    op.create_table(
        "document_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["org_id"], ["organizations.id"]),
        sa.UniqueConstraint("org_id", "document_type", name="uq_doc_sequences_org_type"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_document_sequences_org_id", "document_sequences", ["org_id"], unique=False)
    op.create_index("ix_document_sequences_document_type", "document_sequences", ["document_type"], unique=False)


def downgrade():
    op.drop_table("document_sequences")
    op.drop_table("journal_lines")
    op.drop_table("journal_entries")
    op.drop_table("accounts")
    op.drop_table("stock_ledger_entries")
    op.drop_table("items")
    op.drop_table("warehouses")
    op.drop_table("organizations")
