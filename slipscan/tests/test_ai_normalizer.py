import json
from decimal import Decimal

from slipscan.domain.receipt import AiLineItem, AiReceiptData
from slipscan.receipt import normalize_ai_response, parse_ai_receipt_content


def test_well_formed_payload_is_normalized() -> None:
    content = json.dumps(
        {
            "items": [{"name": " Milk 2L ", "qty": 2, "price": 1.5, "line_total": 3.0}],
            "merchant": "No Frills",
            "purchase_datetime": "2025-01-14 13:45",
            "subtotal": 3.0,
            "tax": 0,
            "total": 3.0,
        }
    )

    data = parse_ai_receipt_content(content)

    assert data.items == [AiLineItem("Milk 2L", Decimal("2"), Decimal("1.5"), Decimal("3.0"))]
    assert data.merchant == "No Frills"
    assert data.purchase_datetime == "2025-01-14 13:45"
    assert data.tax == Decimal("0")
    assert data.total == Decimal("3.0")


def test_items_without_name_are_dropped() -> None:
    data = normalize_ai_response(
        {
            "items": [
                {"name": "   ", "price": 1.0},
                {"price": 2.0},
                "not an item",
                {"name": "Eggs", "qty": None, "price": 3.49, "line_total": None},
            ]
        }
    )

    assert [item.name for item in data.items] == ["Eggs"]
    assert data.items[0].qty is None
    assert data.items[0].price == Decimal("3.49")


def test_wrong_field_types_become_none() -> None:
    data = normalize_ai_response(
        {
            "items": [{"name": "Bread", "qty": "two", "price": True, "line_total": [1]}],
            "merchant": 42,
            "purchase_datetime": "",
            "subtotal": "3.00",
            "tax": None,
            "total": {"value": 3},
        }
    )

    assert data.items == [AiLineItem("Bread")]
    assert data.merchant is None
    assert data.purchase_datetime is None
    assert data.subtotal is None
    assert data.total is None
    assert not data.has_receipt_fields()


def test_non_finite_numbers_become_none() -> None:
    data = parse_ai_receipt_content('{"items": [{"name": "Tea", "qty": NaN, "price": Infinity}], "total": -Infinity}')

    assert data.items == [AiLineItem("Tea")]
    assert data.total is None


def test_malformed_content_gives_empty_result() -> None:
    assert parse_ai_receipt_content("not json") == AiReceiptData()
    assert parse_ai_receipt_content("") == AiReceiptData()
    assert parse_ai_receipt_content(None) == AiReceiptData()
    assert parse_ai_receipt_content("[1, 2, 3]") == AiReceiptData()
    assert normalize_ai_response(None) == AiReceiptData()


def test_items_not_a_list_gives_no_items() -> None:
    data = normalize_ai_response({"items": {"name": "Milk"}, "merchant": "Metro"})

    assert data.items == []
    assert data.merchant == "Metro"
    assert data.has_receipt_fields()


def test_to_parsed_maps_name_to_description() -> None:
    parsed = AiLineItem("Milk", Decimal("1"), Decimal("4.99"), None).to_parsed()

    assert parsed.description == "Milk"
    assert parsed.unit_price == Decimal("4.99")
