from datetime import date, datetime

import pytest

from slipscan.receipt import (
    end_of_day,
    format_datetime_local,
    normalize_receipt_datetime,
    normalize_receipt_datetime_from_scan,
    parse_flexible_datetime,
    start_of_day,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2025-01-14 13:45", "2025-01-14 13:45:00"),
        ("2025/1/4 9:05:07", "2025-01-04 09:05:07"),
        ("2025-01-14 1:45 PM", "2025-01-14 13:45:00"),
        ("2025-01-14 12:10 am", "2025-01-14 00:10:00"),
        ("14/01/2025", "2025-01-14 00:00:00"),
        ("01/14/2025 18:30", "2025-01-14 18:30:00"),
        ("14.01.25", "2025-01-14 00:00:00"),
        ("Date: 2025-01-14 13:45 Store #12", "2025-01-14 13:45:00"),
    ],
)
def test_normalize_receipt_datetime(raw: str, expected: str) -> None:
    assert normalize_receipt_datetime(raw) == expected


def test_ambiguous_day_month_defaults_to_day_first() -> None:
    assert normalize_receipt_datetime("03/04/2025") == "2025-04-03 00:00:00"


def test_scan_variant_prefers_current_year_for_short_year_first() -> None:
    assert normalize_receipt_datetime_from_scan("25/01/14", current_year=2025) == "2025-01-14 00:00:00"
    assert normalize_receipt_datetime("25/01/14") == "2014-01-25 00:00:00"


def test_scan_variant_falls_back_when_year_does_not_match() -> None:
    assert normalize_receipt_datetime_from_scan("14/01/25", current_year=2025) == "2025-01-14 00:00:00"
    assert normalize_receipt_datetime("14/01/25") == "2025-01-14 00:00:00"


def test_scan_variant_previous_year_falls_through_to_day_first() -> None:
    # A 2024 "YY/MM/DD" receipt scanned in 2025 is read as D/M/YY.
    assert normalize_receipt_datetime_from_scan("24/12/31 10:00", current_year=2025) == "2031-12-24 10:00:00"


def test_day_above_twelve_is_read_as_day() -> None:
    parsed = parse_flexible_datetime("13/02/2025")

    assert parsed is not None
    assert (parsed.day, parsed.month) == (13, 2)


@pytest.mark.parametrize(
    "canonical",
    [
        "2025-01-14 13:45:00",
        "2024-02-29 00:00:00",
        "1999-12-31 23:59:59",
        "2025-10-05 07:08:09",
    ],
)
def test_canonical_strings_are_unchanged(canonical: str) -> None:
    assert normalize_receipt_datetime(canonical) == canonical


@pytest.mark.parametrize("raw", ["", "   ", "hello world", "2025-01-00", "2025-13-40"])
def test_unparseable_input_gives_none(raw: str) -> None:
    assert normalize_receipt_datetime(raw) is None


def test_invalid_calendar_day_is_rejected_not_wrapped() -> None:
    assert parse_flexible_datetime("31/02/2025") is None


def test_generic_fallback_handles_month_names() -> None:
    assert parse_flexible_datetime("Jan 14 2025 13:45") == datetime(2025, 1, 14, 13, 45)


def test_format_datetime_local_zero_pads() -> None:
    assert format_datetime_local(datetime(2025, 1, 4, 3, 2, 1)) == "2025-01-04 03:02:01"


def test_day_bounds() -> None:
    day = date(2025, 1, 14)
    assert start_of_day(day) == datetime(2025, 1, 14)
    assert end_of_day(day) == datetime(2025, 1, 14, 23, 59, 59, 999999)
