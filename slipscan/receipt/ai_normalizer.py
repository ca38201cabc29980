"""Validate and normalize structured receipt data returned by cloud extraction.

The extraction API is asked for a strict JSON schema, but the payload is
still model-generated text. Every field is checked for its runtime type
before it is trusted: decode into plain Python objects first, then map
field by field.
"""

import json
from decimal import Decimal
from typing import Any

from slipscan.domain.receipt import AiLineItem, AiReceiptData

from .reconcile import as_decimal

# JSON schema sent with the extraction request (response_format.json_schema.schema).
RECEIPT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "additionalProperties": False,
                "properties": {
                    "name": {"type": "string"},
                    "qty": {"type": ["number", "null"]},
                    "price": {"type": ["number", "null"]},
                    "line_total": {"type": ["number", "null"]},
                },
                "required": ["name", "qty", "price", "line_total"],
            },
        },
        "merchant": {"type": ["string", "null"]},
        "purchase_datetime": {"type": ["string", "null"]},
        "subtotal": {"type": ["number", "null"]},
        "tax": {"type": ["number", "null"]},
        "total": {"type": ["number", "null"]},
    },
    "required": ["items", "merchant", "purchase_datetime", "subtotal", "tax", "total"],
}


def _non_empty_string(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    return stripped or None


def _normalize_item(raw: object) -> AiLineItem | None:
    """Normalize one item; returns None when it has no usable name."""
    if not isinstance(raw, dict):
        return None
    name = _non_empty_string(raw.get("name"))
    if name is None:
        return None
    return AiLineItem(
        name=name,
        qty=as_decimal(raw.get("qty")),
        price=as_decimal(raw.get("price")),
        line_total=as_decimal(raw.get("line_total")),
    )


def normalize_ai_receipt_data(payload: object) -> AiReceiptData:
    """Map an already-decoded payload onto AiReceiptData, dropping anything malformed."""
    if not isinstance(payload, dict):
        return AiReceiptData()

    raw_items = payload.get("items")
    items: list[AiLineItem] = []
    if isinstance(raw_items, list):
        for raw_item in raw_items:
            item = _normalize_item(raw_item)
            if item is not None:
                items.append(item)

    return AiReceiptData(
        items=items,
        merchant=_non_empty_string(payload.get("merchant")),
        purchase_datetime=_non_empty_string(payload.get("purchase_datetime")),
        subtotal=as_decimal(payload.get("subtotal")),
        tax=as_decimal(payload.get("tax")),
        total=as_decimal(payload.get("total")),
    )


def parse_ai_receipt_content(content: str | bytes | None) -> AiReceiptData:
    """
    Decode the message content of an extraction response.

    Never raises: empty or undecodable content gives an empty result.
    """
    if not content:
        return AiReceiptData()
    try:
        payload = json.loads(content, parse_float=Decimal)
    except (ValueError, RecursionError):
        return AiReceiptData()
    return normalize_ai_receipt_data(payload)


def normalize_ai_response(raw: object) -> AiReceiptData:
    """Normalize either raw JSON text or an already-decoded object."""
    if raw is None or isinstance(raw, (str, bytes)):
        return parse_ai_receipt_content(raw)
    return normalize_ai_receipt_data(raw)
