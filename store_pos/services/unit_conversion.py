# store_pos/services/unit_conversion.py
"""
Multi-unit arithmetic.

A product's units form an ordered chain from the highest unit (e.g. Box) to
the lowest (e.g. Piece). Each level declares `sub_units_per_this_unit`: how
many of the next level make one of this level (0 for the last level).

Everything is recomputed from the top on every call. Values are not rounded
here; rounding is left to whatever displays them.
"""
from typing import Dict, Iterable, List

from ..utils.helpers import normalise_barcode


def _sub_units(level) -> float:
    return float(level.get("sub_units_per_this_unit") or 0)


def calculate_unit_chain(initial_quantity, total_purchase_price, levels: List[dict]) -> List[Dict]:
    """
    totalQuantity[0] = initial_quantity
    totalQuantity[i] = totalQuantity[i-1] * subUnits[i-1]
    cost[0]          = total_purchase_price / initial_quantity
    cost[i]          = cost[i-1] / subUnits[i-1]

    A level below a non-positive `sub_units_per_this_unit` (and every level
    after it) yields zeros.
    """
    initial_quantity = float(initial_quantity or 0)
    total_purchase_price = float(total_purchase_price or 0)

    results = []
    broken = False
    for index, level in enumerate(levels):
        if index == 0:
            total_quantity = initial_quantity
            cost = total_purchase_price / initial_quantity if initial_quantity > 0 else 0.0
        else:
            prev_sub_units = _sub_units(levels[index - 1])
            if broken or prev_sub_units <= 0:
                broken = True
                total_quantity, cost = 0.0, 0.0
            else:
                prev = results[index - 1]
                total_quantity = prev["total_quantity"] * prev_sub_units
                cost = prev["cost_per_unit"] / prev_sub_units

        results.append({
            "unit_name": (level.get("unit_name") or "").strip(),
            "barcode": normalise_barcode(level.get("barcode")),
            "total_quantity": total_quantity,
            "cost_per_unit": cost,
        })
    return results


def conversion_factors(levels: List[dict]) -> List[float]:
    """How many of each level make one of the highest level (highest = 1)."""
    factors = []
    for index, level in enumerate(levels):
        if index == 0:
            factors.append(1.0)
        else:
            factors.append(factors[-1] * _sub_units(levels[index - 1]))
    return factors


def validate_unit_chain(
    levels: List[dict],
    existing_barcodes: Iterable[str] = (),
    initial_quantity=None,
    total_purchase_price=None,
) -> Dict:
    """
    Return field-level errors, empty when the chain is valid.

    Shape: {"units": {index: {field: message}}, "<field>": message}.
    `existing_barcodes` are barcodes already persisted for the store.
    """
    errors: Dict = {}
    unit_errors: Dict[int, Dict[str, str]] = {}

    if not levels:
        errors["unit_levels"] = "At least one unit level is required."
        return errors

    if initial_quantity is not None:
        if float(initial_quantity) <= 0:
            errors["initial_quantity_highest_unit"] = "Initial quantity must be greater than 0."
        elif not float(initial_quantity).is_integer():
            errors["initial_quantity_highest_unit"] = "Initial quantity must be a whole number."
    if total_purchase_price is not None and float(total_purchase_price) <= 0:
        errors["total_purchase_price"] = "Total purchase price must be greater than 0."

    existing = {normalise_barcode(b) for b in existing_barcodes}
    seen_names = set()
    barcode_counts: Dict[str, int] = {}
    for level in levels:
        barcode = normalise_barcode(level.get("barcode"))
        if barcode:
            barcode_counts[barcode] = barcode_counts.get(barcode, 0) + 1

    last_index = len(levels) - 1
    for index, level in enumerate(levels):
        field_errors = {}

        name = (level.get("unit_name") or "").strip()
        if not name:
            field_errors["unit_name"] = "Unit name is required."
        elif name in seen_names:
            field_errors["unit_name"] = "Unit name must be unique."
        else:
            seen_names.add(name)

        barcode = normalise_barcode(level.get("barcode"))
        if not barcode:
            field_errors["barcode"] = "Barcode is required."
        elif barcode_counts.get(barcode, 0) > 1 or barcode in existing:
            field_errors["barcode"] = "Barcode is duplicated in another unit or already exists."

        if index < last_index and _sub_units(level) < 1:
            field_errors["sub_units_per_this_unit"] = "Sub units per this unit must be at least 1."

        if float(level.get("selling_price") or 0) <= 0:
            field_errors["selling_price"] = "Selling price must be greater than 0."

        if field_errors:
            unit_errors[index] = field_errors

    if unit_errors:
        errors["units"] = unit_errors
    return errors
