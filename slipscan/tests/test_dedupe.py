from decimal import Decimal

from slipscan.domain.receipt import StoredReceipt
from slipscan.receipt import DedupeConfig, dedupe_key, effective_total, is_duplicate_receipt


def test_within_tolerance_and_same_total_is_duplicate() -> None:
    existing = [{"purchase_datetime": "2025-01-14 13:45:30", "total": 11.30}]

    assert is_duplicate_receipt("2025-01-14 13:45:00", 11.30, existing)


def test_outside_default_tolerance_is_not_duplicate() -> None:
    existing = [{"purchase_datetime": "2025-01-14 13:47:00", "total": 11.30}]

    assert not is_duplicate_receipt("2025-01-14 13:45:00", 11.30, existing)


def test_custom_tolerance_widens_window() -> None:
    existing = [{"purchase_datetime": "2025-01-14 13:47:00", "total": 11.30}]

    assert is_duplicate_receipt(
        "2025-01-14 13:45:00",
        Decimal("11.30"),
        existing,
        config=DedupeConfig(tolerance_ms=180_000),
    )


def test_different_total_is_not_duplicate() -> None:
    existing = [StoredReceipt(purchase_datetime="2025-01-14 13:45:00", total=Decimal("12.00"))]

    assert not is_duplicate_receipt("2025-01-14 13:45:00", Decimal("11.30"), existing)


def test_exact_datetime_with_unknown_candidate_total_is_duplicate() -> None:
    existing = [StoredReceipt(purchase_datetime="2025-01-14 13:45:00", total=Decimal("12.00"))]

    assert is_duplicate_receipt("2025-01-14 13:45:00", None, existing)


def test_stored_subtotal_plus_tax_stands_in_for_missing_total() -> None:
    stored = StoredReceipt(
        purchase_datetime="2025-01-14 13:45:10",
        subtotal=Decimal("10.00"),
        tax=Decimal("1.30"),
    )

    assert effective_total(stored) == Decimal("11.30")
    assert is_duplicate_receipt("2025-01-14 13:45:00", Decimal("11.30"), [stored])
    assert not is_duplicate_receipt("2025-01-14 13:45:00", Decimal("20.00"), [stored])


def test_stored_receipt_without_any_amount_does_not_block_match() -> None:
    existing = [{"purchase_datetime": "2025-01-14 13:45:20", "total": None}]

    assert is_duplicate_receipt("2025-01-14 13:45:00", Decimal("11.30"), existing)


def test_unparseable_candidate_only_matches_exact_string() -> None:
    existing = [{"purchase_datetime": "sometime", "total": 5}]

    assert is_duplicate_receipt("sometime", 5, existing)
    assert not is_duplicate_receipt("another time", 5, existing)


def test_empty_snapshot_is_never_duplicate() -> None:
    assert not is_duplicate_receipt("2025-01-14 13:45:00", 11.30, [])


def test_dedupe_key_format() -> None:
    assert dedupe_key("2025-01-14 13:45:00", Decimal("12.3")) == "2025-01-14 13:45:00|12.30"
    assert dedupe_key(" 2025-01-14 13:45:00 ", None) == "2025-01-14 13:45:00|none"
