# Overview: Service-layer operations for the stock ledger; append-only movements with running balances.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from ..extensions import db
from ..models import Item, StockLedgerEntry, Warehouse
from ledgercore.amounts import ZERO, is_zero, quantize, to_decimal
from ledgercore.time_utils import parse_posting_date, utcnow
from .concurrency import lock_for_update
from .exceptions import LedgerConflictError, ValidationError

"""
Stock Ledger Invariants (authoritative)

- One ledger key per (org_id, item_id, warehouse_id). Keys never mix tenants.
- Entries are append-only: never updated, never deleted. Corrections are new
  entries with a negated delta and reverses_entry_id set.
- Within a key, entries ordered by (posting_date, posting_time, sequence_no)
  satisfy qty_after_trans[i] = qty_after_trans[i-1] + actual_qty[i]
  (the first entry starts from zero).
- The latest entry is the current balance. Appends read it under a row lock
  and write sequence_no = latest + 1 in the same transaction; a concurrent
  append on the same key collides on the unique sequence_no and raises
  LedgerConflictError, which run_with_retry turns into a full retry.
- Entries are stamped with the server clock (posting_date, posting_time),
  never with the business date of the originating event; that date is kept
  in transaction_date. A stamp earlier than the key's latest entry (clock
  skew between writers) is raised to the latest stamp so appends always
  sort last and later running balances are never recomputed.
- Valuation: inbound movements flagged incoming=True move the valuation rate
  to the weighted average of the existing stock value and the new receipt.
  All other movements carry the previous valuation rate forward.
- Stock may go negative (sales are never blocked by the ledger).
"""


@dataclass(frozen=True)
class LedgerBalance:
    quantity: Decimal
    valuation_rate: Decimal
    stock_value: Decimal
    sequence_no: int
    entry_id: int | None = None

    @property
    def has_history(self) -> bool:
        return self.entry_id is not None


EMPTY_BALANCE = LedgerBalance(quantity=ZERO, valuation_rate=ZERO, stock_value=ZERO, sequence_no=0)


def _latest_entry_query(org_id: int, item_id: int, warehouse_id: int):
    return (
        db.session.query(StockLedgerEntry)
        .filter(
            StockLedgerEntry.org_id == org_id,
            StockLedgerEntry.item_id == item_id,
            StockLedgerEntry.warehouse_id == warehouse_id,
        )
        .order_by(
            StockLedgerEntry.posting_date.desc(),
            StockLedgerEntry.posting_time.desc(),
            StockLedgerEntry.sequence_no.desc(),
        )
    )


def _balance_from_entry(entry: StockLedgerEntry | None) -> LedgerBalance:
    if entry is None:
        return EMPTY_BALANCE
    return LedgerBalance(
        quantity=to_decimal(entry.qty_after_trans),
        valuation_rate=to_decimal(entry.valuation_rate),
        stock_value=to_decimal(entry.stock_value),
        sequence_no=entry.sequence_no,
        entry_id=entry.id,
    )


def get_latest_balance(org_id: int, item_id: int, warehouse_id: int) -> LedgerBalance:
    """Current (quantity, valuation rate, value) for a ledger key; zeros when it has no entries."""
    entry = _latest_entry_query(org_id, item_id, warehouse_id).first()
    return _balance_from_entry(entry)


def _require_item(org_id: int, item_id: int) -> Item:
    item = db.session.query(Item).filter_by(id=item_id, org_id=org_id).first()
    if not item:
        raise ValidationError(f"Item {item_id} not found", {"org_id": org_id, "item_id": item_id})
    return item


def _require_warehouse(org_id: int, warehouse_id: int) -> Warehouse:
    warehouse = db.session.query(Warehouse).filter_by(id=warehouse_id, org_id=org_id).first()
    if not warehouse:
        raise ValidationError(
            f"Warehouse {warehouse_id} not found",
            {"org_id": org_id, "warehouse_id": warehouse_id},
        )
    return warehouse


def _next_valuation_rate(
    balance: LedgerBalance,
    delta: Decimal,
    rate: Decimal,
    incoming: bool,
) -> Decimal:
    if incoming and delta > 0:
        if balance.quantity <= 0:
            return rate
        new_qty = balance.quantity + delta
        return quantize((balance.quantity * balance.valuation_rate + delta * rate) / new_qty)
    if balance.has_history:
        return balance.valuation_rate
    return rate


def append_ledger_entry(
    *,
    org_id: int,
    item_id: int,
    warehouse_id: int,
    delta,
    rate=None,
    transaction_type: str,
    voucher_type: str,
    voucher_no: str,
    reference_type: str | None = None,
    reference_id=None,
    reference_code: str | None = None,
    transaction_date=None,
    incoming: bool = False,
    reverses_entry_id: int | None = None,
    created_by: str | None = None,
) -> StockLedgerEntry:
    """
    Append one movement to a ledger key and return the new entry.

    delta is the signed quantity (+in / -out). rate is the unit cost of this
    movement; when omitted the key's current valuation rate is used (or the
    item's purchase_price for a key with no history).

    transaction_date is the business date of the originating event (defaults
    to today); ordering always follows the server clock.

    Runs inside the caller's transaction: flushes, never commits.
    """
    qty = quantize(delta)
    if is_zero(qty):
        raise ValidationError("Stock movement quantity cannot be zero", {"item_id": item_id})

    item = _require_item(org_id, item_id)
    _require_warehouse(org_id, warehouse_id)

    now = utcnow()
    try:
        event_date = parse_posting_date(transaction_date) if transaction_date is not None else now.date()
    except ValueError as exc:
        raise ValidationError(f"Invalid transaction date: {transaction_date!r}") from exc
    stamp = (now.date(), now.time())

    latest = lock_for_update(_latest_entry_query(org_id, item_id, warehouse_id)).first()
    balance = _balance_from_entry(latest)

    if latest is not None:
        stamp = max(stamp, (latest.posting_date, latest.posting_time))
    entry_date, entry_time = stamp

    if rate is None:
        if balance.has_history:
            movement_rate = balance.valuation_rate
        else:
            movement_rate = quantize(item.purchase_price or 0)
    else:
        movement_rate = quantize(rate)
        if movement_rate < 0:
            raise ValidationError("Stock movement rate cannot be negative", {"item_id": item_id})

    new_qty = balance.quantity + qty
    new_rate = _next_valuation_rate(balance, qty, movement_rate, incoming)
    new_value = quantize(new_qty * new_rate)

    entry = StockLedgerEntry(
        org_id=org_id,
        item_id=item_id,
        warehouse_id=warehouse_id,
        posting_date=entry_date,
        posting_time=entry_time,
        transaction_date=event_date,
        sequence_no=balance.sequence_no + 1,
        actual_qty=qty,
        qty_after_trans=quantize(new_qty),
        incoming_rate=movement_rate,
        valuation_rate=new_rate,
        stock_value=new_value,
        stock_value_diff=quantize(new_value - balance.stock_value),
        transaction_type=transaction_type,
        voucher_type=voucher_type,
        voucher_no=voucher_no,
        reference_type=reference_type,
        reference_id=str(reference_id) if reference_id is not None else None,
        reference_code=reference_code,
        reverses_entry_id=reverses_entry_id,
        created_by=str(created_by) if created_by is not None else None,
    )
    db.session.add(entry)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise LedgerConflictError(
            "Concurrent stock movement on the same item and warehouse",
            {"org_id": org_id, "item_id": item_id, "warehouse_id": warehouse_id},
        ) from exc
    return entry


def reversible_entries(org_id: int, reference_type: str, reference_id) -> list[StockLedgerEntry]:
    """Original (non-reversal) entries of a reference that have not been reversed yet."""
    reversal = aliased(StockLedgerEntry)
    return (
        db.session.query(StockLedgerEntry)
        .outerjoin(
            reversal,
            and_(
                reversal.reverses_entry_id == StockLedgerEntry.id,
                reversal.org_id == StockLedgerEntry.org_id,
            ),
        )
        .filter(
            StockLedgerEntry.org_id == org_id,
            StockLedgerEntry.reference_type == reference_type,
            StockLedgerEntry.reference_id == str(reference_id),
            StockLedgerEntry.reverses_entry_id.is_(None),
            StockLedgerEntry.is_cancelled.is_(False),
            reversal.id.is_(None),
        )
        .order_by(StockLedgerEntry.id.asc())
        .all()
    )


def reverse_ledger_entries(
    *,
    org_id: int,
    reference_type: str,
    reference_id,
    transaction_type: str,
    voucher_type: str,
    voucher_no: str,
    reference_code: str | None = None,
    transaction_date=None,
    created_by: str | None = None,
) -> list[StockLedgerEntry]:
    """
    Append an offsetting entry for every not-yet-reversed entry of a reference.

    Each offset negates the original delta at the original movement rate.
    Returns the new entries (empty when nothing is left to reverse).
    """
    reversals = []
    for original in reversible_entries(org_id, reference_type, reference_id):
        reversals.append(
            append_ledger_entry(
                org_id=org_id,
                item_id=original.item_id,
                warehouse_id=original.warehouse_id,
                delta=-to_decimal(original.actual_qty),
                rate=original.incoming_rate if original.incoming_rate is not None else original.valuation_rate,
                transaction_type=transaction_type,
                voucher_type=voucher_type,
                voucher_no=voucher_no,
                reference_type=reference_type,
                reference_id=reference_id,
                reference_code=reference_code or original.reference_code,
                transaction_date=transaction_date,
                reverses_entry_id=original.id,
                created_by=created_by,
            )
        )
    return reversals


def list_ledger_entries(
    org_id: int,
    *,
    item_id: int | None = None,
    warehouse_id: int | None = None,
    reference_type: str | None = None,
    reference_id=None,
    limit: int | None = None,
) -> list[StockLedgerEntry]:
    query = db.session.query(StockLedgerEntry).filter(StockLedgerEntry.org_id == org_id)
    if item_id is not None:
        query = query.filter(StockLedgerEntry.item_id == item_id)
    if warehouse_id is not None:
        query = query.filter(StockLedgerEntry.warehouse_id == warehouse_id)
    if reference_type is not None:
        query = query.filter(StockLedgerEntry.reference_type == reference_type)
    if reference_id is not None:
        query = query.filter(StockLedgerEntry.reference_id == str(reference_id))
    query = query.order_by(
        StockLedgerEntry.posting_date.asc(),
        StockLedgerEntry.posting_time.asc(),
        StockLedgerEntry.sequence_no.asc(),
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def ledger_keys(org_id: int) -> list[tuple[int, int]]:
    """Distinct (item_id, warehouse_id) pairs with ledger history."""
    rows = (
        db.session.query(StockLedgerEntry.item_id, StockLedgerEntry.warehouse_id)
        .filter(StockLedgerEntry.org_id == org_id)
        .distinct()
        .order_by(StockLedgerEntry.item_id, StockLedgerEntry.warehouse_id)
        .all()
    )
    return [(item_id, warehouse_id) for item_id, warehouse_id in rows]


def verify_running_balance(org_id: int, item_id: int, warehouse_id: int) -> list[int]:
    """
    Replay a ledger key and return sequence numbers whose qty_after_trans
    does not equal the previous balance plus actual_qty. Empty list means consistent.
    """
    broken = []
    previous = ZERO
    for entry in list_ledger_entries(org_id, item_id=item_id, warehouse_id=warehouse_id):
        expected = previous + to_decimal(entry.actual_qty)
        if quantize(expected) != quantize(entry.qty_after_trans):
            broken.append(entry.sequence_no)
        previous = to_decimal(entry.qty_after_trans)
    return broken
