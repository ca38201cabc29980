from decimal import Decimal

from slipscan.domain.receipt import ParsedLineItem
from slipscan.receipt import reconcile_amounts, reconcile_item, round2
from slipscan.receipt.reconcile import as_decimal, parse_money


def test_unit_price_is_derived_from_total_and_qty() -> None:
    assert reconcile_amounts(Decimal("2"), None, Decimal("5.00")) == (Decimal("2"), Decimal("2.50"), Decimal("5.00"))


def test_nothing_to_divide_by_leaves_values_unchanged() -> None:
    assert reconcile_amounts(None, None, Decimal("5.00")) == (None, None, Decimal("5.00"))


def test_zero_quantity_does_not_divide() -> None:
    assert reconcile_amounts(Decimal("0"), None, Decimal("5.00")) == (Decimal("0"), None, Decimal("5.00"))


def test_line_total_is_derived_and_rounded_half_up() -> None:
    _, _, line_total = reconcile_amounts(Decimal("0.78"), Decimal("2.16"), None)
    assert line_total == Decimal("1.68")

    _, _, line_total = reconcile_amounts(Decimal("3"), Decimal("0.335"), None)
    assert line_total == Decimal("1.01")


def test_present_values_are_never_overwritten() -> None:
    assert reconcile_amounts(Decimal("2"), Decimal("1.00"), Decimal("5.00")) == (
        Decimal("2"),
        Decimal("1.00"),
        Decimal("5.00"),
    )


def test_reconcile_item_is_idempotent() -> None:
    item = ParsedLineItem("Milk", qty=Decimal("3"), line_total=Decimal("10.00"))

    once = reconcile_item(item)
    twice = reconcile_item(once)

    assert once.unit_price == Decimal("3.33")
    assert twice == once
    assert item.unit_price is None


def test_round2_half_up() -> None:
    assert round2(Decimal("2.005")) == Decimal("2.01")
    assert round2(Decimal("-2.005")) == Decimal("-2.01")


def test_as_decimal_rejects_non_numbers() -> None:
    assert as_decimal(True) is None
    assert as_decimal("3.00") is None
    assert as_decimal(float("nan")) is None
    assert as_decimal(float("inf")) is None
    assert as_decimal(1.1) == Decimal("1.1")
    assert as_decimal(3) == Decimal(3)


def test_parse_money() -> None:
    assert parse_money("3,00") == Decimal("3.00")
    assert parse_money("-1.25") == Decimal("-1.25")
    assert parse_money("abc") is None
