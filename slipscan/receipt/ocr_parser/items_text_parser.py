"""Text-line based receipt item extraction."""

from dataclasses import dataclass, replace
from decimal import Decimal
from functools import reduce

from slipscan.domain.receipt import ParsedLineItem

from ..reconcile import parse_money, round2
from .common import (
    DEFAULT_PARSER_RULES,
    LEADING_QUANTITY_PATTERN,
    PRICE_PATTERN,
    UNIT_FRAGMENT_PATTERN,
    ParserRules,
    UnitLine,
    _collapse_spaces,
    _has_letters,
    _is_unit_only_line,
    _looks_like_category_header,
    _looks_like_code_only,
    _normalize_lines,
    _parse_unit_line,
    _remove_unit_fragment,
    _strip_leading_receipt_codes,
    _strip_tax_code_suffix,
)


@dataclass(frozen=True)
class _ParseState:
    """Accumulator threaded through the line fold."""

    items: tuple[ParsedLineItem, ...] = ()
    # Item name printed on its own line, waiting for its priced line.
    pending_description: str | None = None
    # "N @ price" line seen before any item, waiting for the next item.
    pending_unit: UnitLine | None = None


def _fill_gaps(
    qty: Decimal | None,
    unit_price: Decimal | None,
    unit_line: UnitLine,
) -> tuple[Decimal | None, Decimal | None]:
    if qty is None and unit_line.qty is not None:
        qty = unit_line.qty
    if unit_price is None and unit_line.unit_price is not None:
        unit_price = unit_line.unit_price
    return qty, unit_price


def _attach_unit_line(state: _ParseState, unit_line: UnitLine) -> _ParseState:
    """Backfill the previous item, or hold the unit line for the next one."""
    if not state.items:
        return replace(state, pending_unit=unit_line)

    last = state.items[-1]
    qty, unit_price = _fill_gaps(last.qty, last.unit_price, unit_line)
    updated = replace(last, qty=qty, unit_price=unit_price)
    return replace(state, items=state.items[:-1] + (updated,))


def _consume_line(state: _ParseState, line: str, rules: ParserRules) -> _ParseState:
    """Classify one normalized line and fold it into the parse state."""
    if _looks_like_category_header(line) or _looks_like_code_only(line):
        return state

    sanitized = line.replace("$", "")
    unit_line = _parse_unit_line(sanitized)
    amounts = list(PRICE_PATTERN.finditer(sanitized))

    if not amounts:
        if unit_line is not None:
            return _attach_unit_line(state, unit_line)
        if _has_letters(sanitized):
            return replace(state, pending_description=sanitized)
        return state

    if unit_line is not None and _is_unit_only_line(sanitized, unit_line):
        return _attach_unit_line(state, unit_line)

    # The rightmost amount is what was charged; earlier numbers are weights,
    # unit prices or codes.
    last_amount = amounts[-1]
    line_total = parse_money(last_amount.group(0))
    if line_total is None:
        return state

    description = sanitized[: last_amount.start()].strip()
    fragment = UNIT_FRAGMENT_PATTERN.search(sanitized) if unit_line is not None else None
    if fragment is not None and fragment.start() <= last_amount.start() and last_amount.end() <= fragment.end():
        # "Bananas 2 @ 1.50": the only amount is the unit price, so the line
        # total is derived as qty x unit price (3.00) instead of read as 1.50.
        description = (sanitized[: fragment.start()] + sanitized[fragment.end() :]).strip()
        line_total = None

    description = _strip_leading_receipt_codes(description)
    description = _strip_tax_code_suffix(description, rules)

    qty: Decimal | None = None
    unit_price: Decimal | None = None
    unit_fragment_text = ""
    if unit_line is not None:
        qty, unit_price = unit_line.qty, unit_line.unit_price
        if fragment is not None:
            unit_fragment_text = fragment.group(0)
        description = _remove_unit_fragment(description)

    if not _has_letters(description) and state.pending_description:
        description = state.pending_description
    elif not _has_letters(description) and unit_line is not None:
        # "2 @ 1.50 3.00" with no name belongs to a neighbouring item.
        if state.items or not _has_letters(unit_fragment_text):
            return _attach_unit_line(state, unit_line)
        # A lone weighed line such as "0.78 kg @ 2.16/kg 1.69".
        description = unit_fragment_text
    description = _collapse_spaces(description)
    if not _has_letters(description):
        return state

    if unit_line is None:
        qty_match = LEADING_QUANTITY_PATTERN.match(description)
        if qty_match and _has_letters(qty_match.group(2)):
            qty = Decimal(int(qty_match.group(1)))
            description = qty_match.group(2).strip()

    pending_unit = state.pending_unit
    if pending_unit is not None:
        qty, unit_price = _fill_gaps(qty, unit_price, pending_unit)
        pending_unit = None

    if line_total is None and qty is not None and unit_price is not None:
        line_total = round2(qty * unit_price)
    if unit_price is None and line_total is not None and qty is not None and qty > 0:
        unit_price = round2(line_total / qty)

    item = ParsedLineItem(
        description=description,
        qty=qty,
        unit_price=unit_price,
        line_total=line_total,
    )
    return _ParseState(
        items=state.items + (item,),
        pending_description=None,
        pending_unit=pending_unit,
    )


def parse_receipt_items(raw_text: str, *, rules: ParserRules | None = None) -> list[ParsedLineItem]:
    """
    Extract line items from raw OCR text.

    This is heuristic-based and will likely need manual correction.
    Handles multi-line item formats where the name, the "N @ price" fragment
    and the charged amount are split across rows.

    Args:
        raw_text: Multi-line text as returned by text recognition
        rules: Keyword tables; defaults to the built-in Canadian grocery set

    Returns:
        Items in receipt order. Lines that cannot be attributed to an item
        are dropped; an unreadable receipt gives an empty list.
    """
    active_rules = rules or DEFAULT_PARSER_RULES
    lines = _normalize_lines(raw_text, active_rules)
    state = reduce(
        lambda acc, line: _consume_line(acc, line, active_rules),
        lines,
        _ParseState(),
    )
    return list(state.items)
