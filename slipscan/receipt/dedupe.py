"""Detect receipts that were already saved.

Two receipts describe the same purchase when their purchase times agree
within a small window and their totals agree to the cent. The check runs
in two passes:

- Exact: stored purchase_datetime string equals the candidate's.
- Fuzzy: both strings parse to datetimes no more than tolerance_ms apart.
  OCR often misreads the seconds or minutes of a printed time.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal

from slipscan.domain.receipt import StoredReceipt

from .date_utils import parse_flexible_datetime
from .reconcile import as_decimal, round2

DEFAULT_TOLERANCE_MS = 60_000


@dataclass(frozen=True)
class DedupeConfig:
    """Configuration for duplicate detection."""

    tolerance_ms: int = DEFAULT_TOLERANCE_MS
    amount_tolerance: Decimal = Decimal("0.01")


ExistingReceipt = StoredReceipt | Mapping[str, object]


def _field(receipt: ExistingReceipt, name: str) -> object:
    if isinstance(receipt, Mapping):
        return receipt.get(name)
    return getattr(receipt, name, None)


def _money(value: object) -> Decimal | None:
    if isinstance(value, str):
        return None
    return as_decimal(value)


def effective_total(receipt: ExistingReceipt) -> Decimal | None:
    """Stored total, or subtotal + tax when the total was not captured."""
    total = _money(_field(receipt, "total"))
    if total is not None:
        return total
    subtotal = _money(_field(receipt, "subtotal"))
    tax = _money(_field(receipt, "tax"))
    if subtotal is not None and tax is not None:
        return subtotal + tax
    return None


def _totals_match(candidate_total: Decimal | None, receipt: ExistingReceipt, config: DedupeConfig) -> bool:
    """A missing amount on either side does not rule out a match."""
    if candidate_total is None:
        return True
    stored_total = effective_total(receipt)
    if stored_total is None:
        return True
    return abs(candidate_total - stored_total) <= config.amount_tolerance


def is_duplicate_receipt(
    purchase_datetime: str,
    total: Decimal | float | int | None,
    existing: Iterable[ExistingReceipt],
    *,
    config: DedupeConfig | None = None,
) -> bool:
    """
    Decide whether a receipt with this purchase time and total already exists.

    Args:
        purchase_datetime: Candidate purchase time as it will be stored
        total: Candidate total, or None if unknown
        existing: Snapshot of stored receipts (StoredReceipt objects or
            mappings with purchase_datetime/total/subtotal/tax keys)
        config: Tolerances; defaults to 60 seconds and one cent

    Returns:
        True if a stored receipt looks like the same purchase
    """
    if config is None:
        config = DedupeConfig()

    snapshot = list(existing)
    candidate_total = _money(total)

    exact = [r for r in snapshot if _field(r, "purchase_datetime") == purchase_datetime]
    if exact:
        if candidate_total is None:
            return True
        if any(_totals_match(candidate_total, r, config) for r in exact):
            return True

    candidate_time = parse_flexible_datetime(purchase_datetime)
    if candidate_time is None:
        return False

    for receipt in snapshot:
        stored_value = _field(receipt, "purchase_datetime")
        if not isinstance(stored_value, str):
            continue
        stored_time = parse_flexible_datetime(stored_value)
        if stored_time is None:
            continue
        delta_ms = abs((candidate_time - stored_time).total_seconds()) * 1000
        if delta_ms <= config.tolerance_ms and _totals_match(candidate_total, receipt, config):
            return True

    return False


def dedupe_key(purchase_datetime: str, total: Decimal | None) -> str:
    """Key for the strict unique index: "<datetime>|<total to the cent>"."""
    total_part = f"{round2(total):.2f}" if total is not None else "none"
    return f"{purchase_datetime.strip()}|{total_part}"
