# Overview: Service-layer posting for stock transformations; consume inputs, produce outputs, expense waste.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from ledgercore.amounts import ZERO, is_zero, quantize, to_decimal
from ledgercore.time_utils import utcnow
from .account_service import COST_OF_GOODS_SOLD, INVENTORY, resolve_accounts
from .document_service import next_stock_transaction_code
from .exceptions import PostingResult, ValidationError
from .journal_service import validate_posting_date
from .ledger_service import append_ledger_entry
from .posting_service import post_balanced_journal, run_posting
from .valuation_service import coerce_stock_lines, valuation_rate_for

"""
Transformation costing:

    input cost      = sum(consumed qty x input valuation rate)
    cost per unit   = input cost / (total produced + total wasted)
    output value    = produced qty x cost per unit     (per output)
    waste cost      = input cost - sum(output value)

Inputs leave the warehouse at their valuation rate; outputs enter at the
cost per unit (re-averaging the output valuation). Waste cost stays out of
inventory: DR Cost of Goods Sold (C-5000) / CR Inventory (A-1200).
"""


@dataclass(frozen=True)
class TransformationOutput:
    item_id: int
    produced_qty: Decimal
    wasted_qty: Decimal = Decimal("0")


def coerce_outputs(outputs) -> list[TransformationOutput]:
    result = []
    for out in outputs or []:
        if isinstance(out, TransformationOutput):
            result.append(out)
            continue
        try:
            item_id = out["item_id"]
            produced = out["produced_qty"]
        except (KeyError, TypeError) as exc:
            raise ValueError(f"output needs item_id and produced_qty: {out!r}") from exc
        result.append(
            TransformationOutput(
                item_id=int(item_id),
                produced_qty=to_decimal(produced),
                wasted_qty=to_decimal(out.get("wasted_qty")),
            )
        )
    return result


def post_transformation(
    *,
    org_id: int,
    user_id,
    transformation_id,
    transformation_code: str,
    warehouse_id: int,
    inputs,
    outputs,
    transformation_date=None,
) -> PostingResult:
    def _post():
        entry_date = validate_posting_date(transformation_date or utcnow().date())
        input_lines = coerce_stock_lines(inputs)
        output_lines = coerce_outputs(outputs)
        if not input_lines:
            raise ValidationError("Transformation requires at least one input")
        if not output_lines:
            raise ValidationError("Transformation requires at least one output")

        consumed = []
        input_cost = ZERO
        for line in input_lines:
            qty = quantize(line.quantity)
            if qty <= 0:
                raise ValidationError(
                    f"Input quantity must be positive for item {line.item_id}",
                    {"item_id": line.item_id},
                )
            rate = valuation_rate_for(org_id, line.item_id, warehouse_id).rate
            input_cost += quantize(qty * rate)
            consumed.append((line.item_id, qty, rate))
        input_cost = quantize(input_cost)

        total_units = ZERO
        for out in output_lines:
            if out.produced_qty < 0 or out.wasted_qty < 0:
                raise ValidationError(
                    f"Output quantities cannot be negative for item {out.item_id}",
                    {"item_id": out.item_id},
                )
            total_units += quantize(out.produced_qty) + quantize(out.wasted_qty)
        if total_units <= 0:
            raise ValidationError("Transformation must produce or waste a positive quantity")

        cost_per_unit = quantize(input_cost / total_units)
        produced_value = ZERO
        produced = []
        for out in output_lines:
            qty = quantize(out.produced_qty)
            if is_zero(qty):
                continue
            produced_value += quantize(qty * cost_per_unit)
            produced.append((out.item_id, qty))
        waste_cost = quantize(input_cost - produced_value)
        if waste_cost < 0:
            # rounding on cost_per_unit can overshoot by a fraction of a cent
            waste_cost = ZERO

        if waste_cost > 0:
            resolve_accounts(org_id, [COST_OF_GOODS_SOLD, INVENTORY])

        stock_code = next_stock_transaction_code(org_id=org_id, on_date=entry_date)
        ledger_kwargs = dict(
            org_id=org_id,
            warehouse_id=warehouse_id,
            transaction_type="transformation",
            voucher_type="Transformation",
            voucher_no=stock_code,
            reference_type="transformation",
            reference_id=transformation_id,
            reference_code=transformation_code,
            transaction_date=entry_date,
            created_by=user_id,
        )
        for item_id, qty, rate in consumed:
            append_ledger_entry(item_id=item_id, delta=-qty, rate=rate, **ledger_kwargs)
        for item_id, qty in produced:
            append_ledger_entry(item_id=item_id, delta=qty, rate=cost_per_unit, incoming=True, **ledger_kwargs)

        journal_ids = []
        if waste_cost > 0:
            entry = post_balanced_journal(
                org_id=org_id,
                posting_date=entry_date,
                legs=[
                    (COST_OF_GOODS_SOLD, waste_cost, 0,
                     f"Transformation waste - {transformation_code}"),
                    (INVENTORY, 0, waste_cost, f"Inventory consumed as waste - {transformation_code}"),
                ],
                source_module="Inventory",
                reference_type="transformation",
                reference_id=transformation_id,
                reference_code=transformation_code,
                description=f"Transformation {transformation_code} waste cost",
                user_id=user_id,
            )
            journal_ids.append(entry.id)

        return PostingResult.posted(
            journal_entry_ids=journal_ids,
            stock_transaction_code=stock_code,
            details={
                "input_cost": str(input_cost),
                "cost_per_unit": str(cost_per_unit),
                "produced_value": str(quantize(produced_value)),
                "waste_cost": str(waste_cost),
            },
        )

    return run_posting("post_transformation", _post)
