from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..services.exceptions import ImmutableRecordError
from ledgercore.time_utils import to_utc_z


def _num(value):
    return str(value) if value is not None else None


class Item(db.Model):
    """
    Item master data (the costing subject).

    MULTI-TENANT: Items are scoped to organizations via org_id.
    item_code is unique within an organization.

    purchase_price is the configured standard cost. It is only used as a
    valuation fallback when the item has no stock ledger history yet.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.UniqueConstraint("org_id", "item_code", name="uq_items_org_code"),
        db.Index("ix_items_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    item_code = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(255), nullable=False)

    purchase_price = db.Column(db.Numeric(20, 4), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    organization = db.relationship("Organization", backref=db.backref("items", lazy=True))

    def __repr__(self) -> str:
        return f"<Item id={self.id} code={self.item_code!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "purchase_price": _num(self.purchase_price),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockLedgerEntry(db.Model):
    """
    Immutable record of one inventory movement.

    RUNNING BALANCE:
    For each (org_id, item_id, warehouse_id) key, entries ordered by
    (posting_date, posting_time, sequence_no) satisfy
        qty_after_trans[i] = qty_after_trans[i-1] + actual_qty[i]
    The latest entry is the authoritative stock level and valuation rate.

    CONCURRENCY:
    sequence_no is allocated as (latest sequence_no + 1) while appending.
    The unique constraint on (org_id, item_id, warehouse_id, sequence_no)
    turns a concurrent append against a stale balance into an
    IntegrityError, which the ledger service surfaces as a retryable conflict.

    IMMUTABLE: Never updated or deleted. Corrections are new entries with a
    negated delta (reverses_entry_id points at the corrected entry).
    """
    __tablename__ = "stock_ledger_entries"
    __table_args__ = (
        db.UniqueConstraint(
            "org_id", "item_id", "warehouse_id", "sequence_no",
            name="uq_stock_ledger_key_sequence",
        ),
        db.Index(
            "ix_stock_ledger_key_posting",
            "org_id", "item_id", "warehouse_id", "posting_date", "posting_time",
        ),
        db.Index("ix_stock_ledger_org_item_posting", "org_id", "item_id", "posting_date", "posting_time"),
        db.Index("ix_stock_ledger_reference", "org_id", "reference_type", "reference_id"),
        db.Index("ix_stock_ledger_voucher", "voucher_type", "voucher_no"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    posting_date = db.Column(db.Date, nullable=False)
    posting_time = db.Column(db.Time, nullable=False)
    # business date of the originating event; ordering uses the server-clock stamp above
    transaction_date = db.Column(db.Date, nullable=False)
    sequence_no = db.Column(db.Integer, nullable=False)

    # +ve for in, -ve for out
    actual_qty = db.Column(db.Numeric(20, 4), nullable=False)
    qty_after_trans = db.Column(db.Numeric(20, 4), nullable=False)

    incoming_rate = db.Column(db.Numeric(20, 4), nullable=True)
    valuation_rate = db.Column(db.Numeric(20, 4), nullable=True)
    stock_value = db.Column(db.Numeric(20, 4), nullable=True)
    stock_value_diff = db.Column(db.Numeric(20, 4), nullable=True)

    # e.g. pos_sale, pos_void, sales_invoice, purchase_receipt, stock_adjustment, transformation
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    voucher_type = db.Column(db.String(50), nullable=False)
    voucher_no = db.Column(db.String(100), nullable=False)

    # Originating business document
    reference_type = db.Column(db.String(32), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True)
    reference_code = db.Column(db.String(100), nullable=True)

    reverses_entry_id = db.Column(db.Integer, db.ForeignKey("stock_ledger_entries.id"), nullable=True, index=True)

    is_cancelled = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(db.String(64), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item")
    warehouse = db.relationship("Warehouse")
    reverses_entry = db.relationship("StockLedgerEntry", remote_side=[id])

    def __repr__(self) -> str:
        return (
            f"<StockLedgerEntry id={self.id} item_id={self.item_id} "
            f"warehouse_id={self.warehouse_id} seq={self.sequence_no} qty={self.actual_qty}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "item_id": self.item_id,
            "warehouse_id": self.warehouse_id,
            "posting_date": self.posting_date.isoformat() if self.posting_date else None,
            "posting_time": self.posting_time.isoformat() if self.posting_time else None,
            "transaction_date": self.transaction_date.isoformat() if self.transaction_date else None,
            "sequence_no": self.sequence_no,
            "actual_qty": _num(self.actual_qty),
            "qty_after_trans": _num(self.qty_after_trans),
            "incoming_rate": _num(self.incoming_rate),
            "valuation_rate": _num(self.valuation_rate),
            "stock_value": _num(self.stock_value),
            "stock_value_diff": _num(self.stock_value_diff),
            "transaction_type": self.transaction_type,
            "voucher_type": self.voucher_type,
            "voucher_no": self.voucher_no,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "reference_code": self.reference_code,
            "reverses_entry_id": self.reverses_entry_id,
            "is_cancelled": self.is_cancelled,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(StockLedgerEntry, "before_update")
def _prevent_ledger_update(mapper, connection, target):
    raise ImmutableRecordError(
        f"Stock ledger entry {target.id} is immutable; post a reversing entry instead",
        {"entry_id": target.id},
    )


@event.listens_for(StockLedgerEntry, "before_delete")
def _prevent_ledger_delete(mapper, connection, target):
    raise ImmutableRecordError(
        f"Stock ledger entry {target.id} cannot be deleted",
        {"entry_id": target.id},
    )
