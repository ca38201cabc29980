"""Fill missing quantity/unit-price/line-total values from the other two."""

import math
from dataclasses import replace
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from slipscan.domain.receipt import ParsedLineItem

CENT = Decimal("0.01")


def as_decimal(value: object) -> Decimal | None:
    """
    Convert a number to Decimal via its string form.

    Going through str() keeps "1.1" as Decimal("1.1") instead of the binary
    float expansion. Booleans, non-numbers and non-finite values map to None.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() else None
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return Decimal(str(value))
    return None


def parse_money(text: str) -> Decimal | None:
    """Parse an OCR amount like "3.00", "3,00" or "-1.25"."""
    try:
        value = Decimal(text.strip().replace(",", "."))
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def round2(value: Decimal) -> Decimal:
    """Round a currency amount to cents, half-up."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def reconcile_amounts(
    qty: Decimal | None,
    unit_price: Decimal | None,
    line_total: Decimal | None,
) -> tuple[Decimal | None, Decimal | None, Decimal | None]:
    """
    Derive a missing line total or unit price.

    Only empty slots are filled; values already present are never changed,
    so applying this twice is the same as applying it once.

    Returns:
        (qty, unit_price, line_total)
    """
    if line_total is None and qty is not None and unit_price is not None:
        line_total = round2(qty * unit_price)

    if unit_price is None and line_total is not None and qty:
        unit_price = round2(line_total / qty)

    return qty, unit_price, line_total


def reconcile_item(item: ParsedLineItem) -> ParsedLineItem:
    """Return a copy of item with derivable amounts filled in."""
    qty, unit_price, line_total = reconcile_amounts(item.qty, item.unit_price, item.line_total)
    return replace(item, qty=qty, unit_price=unit_price, line_total=line_total)
