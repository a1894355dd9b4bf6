# Overview: Service-layer operations for valuation; valuation rates, COGS and stock value derived from the ledger.

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Item, Organization, StockLedgerEntry, Warehouse
from ledgercore.amounts import ZERO, quantize, to_decimal

"""
Valuation Invariants (authoritative)

- Read-only: nothing here writes to the ledger (no synthetic seed entries).
- The valuation rate of an item is the valuation_rate of its most recent
  non-cancelled ledger entry, restricted to one warehouse when given and
  across all warehouses otherwise.
- Without ledger history the item's purchase_price is used. An unknown item
  values at 0 and is flagged found=False; it never blocks a sale.
- Line cost = quantity x rate, quantized to 4 places. Zero-rate lines are kept
  with cost 0.
"""


@dataclass(frozen=True)
class StockLine:
    item_id: int
    quantity: Decimal
    rate: Decimal | None = None


@dataclass(frozen=True)
class ItemRate:
    item_id: int
    rate: Decimal
    source: str  # ledger | purchase_price | none | missing
    found: bool = True


@dataclass(frozen=True)
class COGSLine:
    item_id: int
    quantity: Decimal
    rate: Decimal
    cost: Decimal
    item_code: str = ""
    item_name: str = ""

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "item_code": self.item_code,
            "item_name": self.item_name,
            "quantity": str(self.quantity),
            "rate": str(self.rate),
            "cost": str(self.cost),
        }


@dataclass
class COGSResult:
    items: list[COGSLine] = field(default_factory=list)
    total_cogs: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "items": [line.to_dict() for line in self.items],
            "total_cogs": str(self.total_cogs),
        }


def coerce_stock_lines(lines) -> list[StockLine]:
    """Accept StockLine instances or mappings with item_id/quantity[/rate]."""
    result = []
    for line in lines or []:
        if isinstance(line, StockLine):
            result.append(line)
            continue
        try:
            item_id = line["item_id"]
            quantity = line["quantity"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"stock line needs item_id and quantity: {line!r}") from exc
        rate = line.get("rate") if hasattr(line, "get") else None
        result.append(
            StockLine(
                item_id=int(item_id),
                quantity=to_decimal(quantity),
                rate=to_decimal(rate) if rate is not None else None,
            )
        )
    return result


def valuation_rate_for(org_id: int, item_id: int, warehouse_id: int | None = None) -> ItemRate:
    item = db.session.query(Item).filter_by(id=item_id, org_id=org_id).first()
    if not item:
        return ItemRate(item_id=item_id, rate=ZERO, source="missing", found=False)

    query = db.session.query(StockLedgerEntry.valuation_rate).filter(
        StockLedgerEntry.org_id == org_id,
        StockLedgerEntry.item_id == item_id,
        StockLedgerEntry.is_cancelled.is_(False),
        StockLedgerEntry.valuation_rate.isnot(None),
    )
    if warehouse_id is not None:
        query = query.filter(StockLedgerEntry.warehouse_id == warehouse_id)
    latest_rate = query.order_by(
        StockLedgerEntry.posting_date.desc(),
        StockLedgerEntry.posting_time.desc(),
        StockLedgerEntry.id.desc(),
    ).limit(1).scalar()

    if latest_rate is not None:
        return ItemRate(item_id=item_id, rate=quantize(latest_rate), source="ledger")
    if item.purchase_price is not None:
        return ItemRate(item_id=item_id, rate=quantize(item.purchase_price), source="purchase_price")
    return ItemRate(item_id=item_id, rate=ZERO, source="none")


def compute_cogs(org_id: int, items, warehouse_id: int | None = None) -> COGSResult:
    """
    Cost each sold line at its current valuation rate.

    A line that already carries a rate is costed at that rate.
    """
    result = COGSResult()
    total = ZERO
    for line in coerce_stock_lines(items):
        quantity = quantize(line.quantity)
        item = db.session.query(Item).filter_by(id=line.item_id, org_id=org_id).first()
        if line.rate is not None:
            rate = quantize(line.rate)
        else:
            rate = valuation_rate_for(org_id, line.item_id, warehouse_id).rate
        cost = quantize(quantity * rate)
        total += cost
        result.items.append(
            COGSLine(
                item_id=line.item_id,
                quantity=quantity,
                rate=rate,
                cost=cost,
                item_code=item.item_code if item else "",
                item_name=item.item_name if item else "",
            )
        )
    result.total_cogs = quantize(total)
    return result


def stock_valuation(org_id: int, warehouse_id: int | None = None) -> dict:
    """
    Latest quantity, rate and value for every (item, warehouse) with ledger history.

    Returns {"rows": [...], "total_value": "...", "currency_code": "..."}.
    """
    latest = (
        db.session.query(
            StockLedgerEntry.item_id.label("item_id"),
            StockLedgerEntry.warehouse_id.label("warehouse_id"),
            func.max(StockLedgerEntry.sequence_no).label("sequence_no"),
        )
        .filter(StockLedgerEntry.org_id == org_id)
        .group_by(StockLedgerEntry.item_id, StockLedgerEntry.warehouse_id)
    )
    if warehouse_id is not None:
        latest = latest.filter(StockLedgerEntry.warehouse_id == warehouse_id)
    latest = latest.subquery()

    rows = (
        db.session.query(StockLedgerEntry, Item, Warehouse)
        .join(
            latest,
            (StockLedgerEntry.item_id == latest.c.item_id)
            & (StockLedgerEntry.warehouse_id == latest.c.warehouse_id)
            & (StockLedgerEntry.sequence_no == latest.c.sequence_no),
        )
        .join(Item, Item.id == StockLedgerEntry.item_id)
        .join(Warehouse, Warehouse.id == StockLedgerEntry.warehouse_id)
        .filter(StockLedgerEntry.org_id == org_id)
        .order_by(Item.item_code.asc(), Warehouse.code.asc())
        .all()
    )

    total = ZERO
    report = []
    for entry, item, warehouse in rows:
        value = to_decimal(entry.stock_value)
        total += value
        report.append({
            "item_id": item.id,
            "item_code": item.item_code,
            "item_name": item.item_name,
            "warehouse_id": warehouse.id,
            "warehouse_code": warehouse.code,
            "quantity": str(quantize(entry.qty_after_trans)),
            "valuation_rate": str(quantize(entry.valuation_rate)),
            "stock_value": str(quantize(value)),
        })
    org = db.session.get(Organization, org_id)
    return {
        "rows": report,
        "total_value": str(quantize(total)),
        "currency_code": org.currency_code if org else None,
    }
