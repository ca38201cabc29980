"""Receipt extraction and normalization core.

Everything in this package is pure: no I/O, no logging, no global state.

Usage:
    from slipscan.receipt import parse_receipt_items, normalize_receipt_datetime

    items = parse_receipt_items(ocr_text)
    when = normalize_receipt_datetime("2025-01-14 13:45")
"""

from slipscan.receipt.ai_normalizer import (
    RECEIPT_SCHEMA,
    normalize_ai_receipt_data,
    normalize_ai_response,
    parse_ai_receipt_content,
)
from slipscan.receipt.date_utils import (
    end_of_day,
    format_datetime_local,
    normalize_receipt_datetime,
    normalize_receipt_datetime_from_scan,
    parse_flexible_datetime,
    start_of_day,
)
from slipscan.receipt.dedupe import DedupeConfig, dedupe_key, effective_total, is_duplicate_receipt
from slipscan.receipt.ocr_parser import ParserRules, build_parser_rules, parse_receipt_items
from slipscan.receipt.reconcile import reconcile_amounts, reconcile_item, round2

__all__ = [
    # Line parser
    "parse_receipt_items",
    "ParserRules",
    "build_parser_rules",
    # Dates
    "parse_flexible_datetime",
    "format_datetime_local",
    "normalize_receipt_datetime",
    "normalize_receipt_datetime_from_scan",
    "start_of_day",
    "end_of_day",
    # Cloud extraction payloads
    "RECEIPT_SCHEMA",
    "normalize_ai_response",
    "normalize_ai_receipt_data",
    "parse_ai_receipt_content",
    # Amounts
    "reconcile_amounts",
    "reconcile_item",
    "round2",
    # Duplicates
    "DedupeConfig",
    "dedupe_key",
    "effective_total",
    "is_duplicate_receipt",
]
