"""Receipt listing workflow orchestration."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

from slipscan.domain.receipt import StoredReceipt, StoredReceiptItem
from slipscan.receipt import end_of_day, parse_flexible_datetime, start_of_day

if TYPE_CHECKING:
    from slipscan.runtime.receipt_storage import ReceiptStore


@dataclass(frozen=True)
class ReceiptListing:
    """Stored receipts for display, newest first."""

    receipts: list[StoredReceipt]


@dataclass(frozen=True)
class ItemwiseListing:
    """Every stored line item with its purchase time."""

    items: list[StoredReceiptItem]


def filter_receipts_by_date(
    receipts: Sequence[StoredReceipt],
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[StoredReceipt]:
    """
    Keep receipts purchased within [date_from, date_to], both days inclusive.

    Receipts whose stored purchase time cannot be parsed are dropped once
    any bound is set.
    """
    if date_from is None and date_to is None:
        return list(receipts)
    return [receipt for receipt in receipts if _purchased_within(receipt.purchase_datetime, date_from, date_to)]


def filter_items_by_date(
    items: Sequence[StoredReceiptItem],
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[StoredReceiptItem]:
    """Same day-inclusive range as filter_receipts_by_date, keyed on each item's receipt time."""
    if date_from is None and date_to is None:
        return list(items)
    return [item for item in items if _purchased_within(item.purchase_datetime, date_from, date_to)]


def _purchased_within(purchase_datetime: str | None, date_from: date | None, date_to: date | None) -> bool:
    purchased = parse_flexible_datetime(purchase_datetime or "")
    if purchased is None:
        return False
    if date_from is not None and purchased < start_of_day(date_from):
        return False
    if date_to is not None and purchased > end_of_day(date_to):
        return False
    return True


def run_list_receipts(
    store: ReceiptStore,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ReceiptListing:
    """Load stored receipts, optionally restricted to a date range."""
    return ReceiptListing(receipts=filter_receipts_by_date(store.fetch_existing_receipts(), date_from, date_to))


def run_list_itemwise(
    store: ReceiptStore,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ItemwiseListing:
    """Load the item-wise table, optionally restricted to a date range."""
    return ItemwiseListing(items=filter_items_by_date(store.fetch_itemwise(), date_from, date_to))
