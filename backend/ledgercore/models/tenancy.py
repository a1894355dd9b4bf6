from __future__ import annotations

from ..extensions import db
from ledgercore.time_utils import to_utc_z

class Organization(db.Model):
    """
    Multi-tenant root: Every tenant is an Organization.

    Ledger, journal and account tables are shared across tenants: every row
    carries org_id and every lookup, lock and document sequence is scoped by
    it. Journal amounts and stock values are in the tenant's currency_code.
    """
    __tablename__ = "organizations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(32), nullable=True, unique=True, index=True)  # Short code for lookups

    # ISO 4217; every amount posted for the tenant is in this currency
    currency_code = db.Column(db.String(3), nullable=False, default="USD")

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Organization id={self.id} code={self.code!r} currency={self.currency_code}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "currency_code": self.currency_code,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

class Warehouse(db.Model):
    """
    Stock location within an organization.

    MULTI-TENANT: Warehouse codes are unique within an organization, not globally.
    """
    __tablename__ = "warehouses"
    __table_args__ = (
        db.UniqueConstraint("org_id", "code", name="uq_warehouses_org_code"),
        db.Index("ix_warehouses_org_active", "org_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    code = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(120), nullable=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    organization = db.relationship("Organization", backref=db.backref("warehouses", lazy=True))

    def __repr__(self) -> str:
        return f"<Warehouse id={self.id} code={self.code!r} org_id={self.org_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "code": self.code,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
