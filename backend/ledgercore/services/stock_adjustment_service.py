# Overview: Service-layer posting for stock adjustments; signed ledger movements plus the net value journal.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledgercore.amounts import ZERO, is_zero, quantize, to_decimal
from ledgercore.time_utils import utcnow
from .account_service import COST_OF_GOODS_SOLD, INVENTORY
from .document_service import next_stock_transaction_code
from .exceptions import PostingResult, ValidationError
from .journal_service import validate_posting_date
from .ledger_service import append_ledger_entry
from .posting_service import post_balanced_journal, run_posting
from .valuation_service import valuation_rate_for

"""
Stock Adjustment Invariants (authoritative)

- difference is the signed correction (counted - system). Each non-zero line
  becomes one ledger movement of exactly that delta.
- Differences that net to zero across the lines are skipped: no stock code,
  no ledger rows, no journal.
- Gains enter at their unit_cost when given, else at the warehouse valuation
  rate, and re-average like a receipt. Losses leave at the carried rate.
- The journal amount is the sum of the movements' stock_value_diff; the
  GL Inventory balance and the stock ledger value move together.
- Net value > 0 (gain):  DR Inventory (A-1200) / CR Cost of Goods Sold (C-5000)
  Net value < 0 (loss):  DR Cost of Goods Sold (C-5000) / CR Inventory (A-1200)
  Net value = 0: ledger movements only, no journal.
- Each posted adjustment gets a stock transaction code ST-YYYY-NNNN.
"""


@dataclass(frozen=True)
class AdjustmentLine:
    item_id: int
    difference: Decimal
    unit_cost: Decimal | None = None


def coerce_adjustment_lines(lines) -> list[AdjustmentLine]:
    result = []
    for line in lines or []:
        if isinstance(line, AdjustmentLine):
            result.append(line)
            continue
        try:
            item_id = line["item_id"]
            difference = line["difference"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"adjustment line needs item_id and difference: {line!r}") from exc
        unit_cost = line.get("unit_cost")
        result.append(
            AdjustmentLine(
                item_id=int(item_id),
                difference=to_decimal(difference),
                unit_cost=to_decimal(unit_cost) if unit_cost is not None else None,
            )
        )
    return result


def post_stock_adjustment(
    *,
    org_id: int,
    user_id,
    adjustment_id,
    adjustment_code: str,
    warehouse_id: int,
    adjustment_date,
    items,
    reason: str | None = None,
) -> PostingResult:
    def _post():
        entry_date = validate_posting_date(adjustment_date or utcnow().date())
        lines = [line for line in coerce_adjustment_lines(items) if not is_zero(line.difference)]
        net_difference = quantize(sum((line.difference for line in lines), ZERO))
        if is_zero(net_difference):
            return PostingResult.skipped_noop(
                "Adjustment differences net to zero",
                {"adjustment_code": adjustment_code, "line_count": len(lines)},
            )

        planned = []
        for line in lines:
            if line.unit_cost is not None:
                rate = quantize(line.unit_cost)
                if rate < 0:
                    raise ValidationError(
                        f"Unit cost cannot be negative for item {line.item_id}",
                        {"item_id": line.item_id},
                    )
            else:
                rate = valuation_rate_for(org_id, line.item_id, warehouse_id).rate
            planned.append((line.item_id, quantize(line.difference), rate))

        stock_code = next_stock_transaction_code(org_id=org_id, on_date=entry_date)
        net_value = ZERO
        for item_id, difference, rate in planned:
            movement = append_ledger_entry(
                org_id=org_id,
                item_id=item_id,
                warehouse_id=warehouse_id,
                delta=difference,
                rate=rate,
                incoming=difference > 0,
                transaction_type="stock_adjustment",
                voucher_type="Stock Adjustment",
                voucher_no=stock_code,
                reference_type="stock_adjustment",
                reference_id=adjustment_id,
                reference_code=adjustment_code,
                transaction_date=entry_date,
                created_by=user_id,
            )
            net_value += to_decimal(movement.stock_value_diff)
        net_value = quantize(net_value)

        journal_ids = []
        if not is_zero(net_value):
            amount = abs(net_value)
            if net_value > 0:
                legs = [
                    (INVENTORY, amount, 0, f"Inventory increase - Adjustment {adjustment_code}"),
                    (COST_OF_GOODS_SOLD, 0, amount, f"Inventory gain - Adjustment {adjustment_code}"),
                ]
            else:
                legs = [
                    (COST_OF_GOODS_SOLD, amount, 0, f"Inventory loss - Adjustment {adjustment_code}"),
                    (INVENTORY, 0, amount, f"Inventory decrease - Adjustment {adjustment_code}"),
                ]
            description = f"Stock adjustment {adjustment_code}"
            if reason:
                description = f"{description}: {reason}"
            entry = post_balanced_journal(
                org_id=org_id,
                posting_date=entry_date,
                legs=legs,
                source_module="Inventory",
                reference_type="stock_adjustment",
                reference_id=adjustment_id,
                reference_code=adjustment_code,
                description=description,
                user_id=user_id,
            )
            journal_ids.append(entry.id)

        return PostingResult.posted(
            journal_entry_ids=journal_ids,
            stock_transaction_code=stock_code,
            details={"net_value": str(net_value), "line_count": len(planned)},
        )

    return run_posting("post_stock_adjustment", _post)
