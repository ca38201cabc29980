"""Shared constants and helpers for OCR receipt parsing."""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..reconcile import parse_money

# Lines containing any of these (case-insensitive) are summary/payment noise.
IGNORE_LINE_KEYWORDS: tuple[str, ...] = (
    "subtotal",
    "tax",
    "total",
    "balance",
    "change",
    "cash",
    "visa",
    "mastercard",
    "amex",
    "amount",
    "tip",
    "gratuity",
    "loyalty",
    "pts",
    "coupon",
    "discount",
    "gst",
    "pst",
    "hst",
)

# Tax-code markers printed after the item name (Ontario grocers, GST/HST/PST).
TAX_CODE_SUFFIXES: tuple[str, ...] = ("MRJ", "HMRJ", "HST", "GST", "PST", "Q", "R", "T")

PRICE_PATTERN = re.compile(r"-?\d{1,6}[.,]\d{2}")
CATEGORY_HEADER_PATTERN = re.compile(r"^\d{2,}-[A-Z]", re.IGNORECASE)
CODE_ONLY_PATTERN = re.compile(r"^\(?\d+\)?$")
LETTER_PATTERN = re.compile(r"[A-Za-z]")

# Quantity/weight modifier patterns for multi-row item formats
# "0.78 kg @ 2.16/kg", "1.22lb @ $2.99"
WEIGHT_AT_PRICE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*(kg|lb)\s*@\s*\$?\s*(\d{1,6}[.,]\d{2})", re.IGNORECASE)
# "2 @ $1.50"
COUNT_AT_PRICE_PATTERN = re.compile(r"(\d+)\s*@\s*\$?\s*(\d{1,6}[.,]\d{2})", re.IGNORECASE)
UNIT_FRAGMENT_PATTERN = re.compile(
    r"\b\d+(?:\.\d+)?\s*(?:kg|lb)?\s*@\s*\$?\s*\d{1,6}[.,]\d{2}(?:/\w+)?\b",
    re.IGNORECASE,
)
LEADING_QUANTITY_PATTERN = re.compile(r"^(\d{1,3})\s+(.*)$")


@dataclass(frozen=True)
class ParserRules:
    """Keyword tables used by the text parser."""

    ignore_keywords: tuple[str, ...] = IGNORE_LINE_KEYWORDS
    tax_code_suffixes: tuple[str, ...] = TAX_CODE_SUFFIXES

    def tax_suffix_pattern(self) -> re.Pattern[str]:
        alternatives = "|".join(re.escape(code) for code in self.tax_code_suffixes)
        return re.compile(rf"\s+({alternatives})$", re.IGNORECASE)


DEFAULT_PARSER_RULES = ParserRules()


def _dedupe_keep_order(values: Iterable[str]) -> tuple[str, ...]:
    seen: set[str] = set()
    out: list[str] = []
    for value in values:
        key = value.lower()
        if not value or key in seen:
            continue
        seen.add(key)
        out.append(value)
    return tuple(out)


def build_parser_rules(config: Mapping[str, Any] | None = None) -> ParserRules:
    """
    Build parser rules from a decoded ``[parser]`` config table.

    Recognized keys:
        extra_ignore_keywords: more summary/payment keywords
        extra_tax_code_suffixes: more trailing tax markers
    """
    if not config:
        return DEFAULT_PARSER_RULES

    extra_keywords = [str(k).strip().lower() for k in config.get("extra_ignore_keywords", []) if str(k).strip()]
    extra_suffixes = [str(s).strip().upper() for s in config.get("extra_tax_code_suffixes", []) if str(s).strip()]
    return ParserRules(
        ignore_keywords=_dedupe_keep_order([*IGNORE_LINE_KEYWORDS, *extra_keywords]),
        tax_code_suffixes=_dedupe_keep_order([*TAX_CODE_SUFFIXES, *extra_suffixes]),
    )


@dataclass(frozen=True)
class UnitLine:
    """Quantity/weight and unit price read from an "N @ price" fragment."""

    qty: Decimal | None
    unit_price: Decimal | None


def _normalize_lines(raw_text: str, rules: ParserRules) -> list[str]:
    """Split text into trimmed, whitespace-collapsed lines without summary noise."""
    lines: list[str] = []
    for raw_line in re.split(r"\r?\n", raw_text or ""):
        line = re.sub(r"\s+", " ", raw_line).strip()
        if not line or _should_ignore_line(line, rules):
            continue
        lines.append(line)
    return lines


def _should_ignore_line(line: str, rules: ParserRules) -> bool:
    lower = line.lower()
    return any(keyword in lower for keyword in rules.ignore_keywords)


def _has_letters(text: str) -> bool:
    return LETTER_PATTERN.search(text) is not None


def _looks_like_category_header(line: str) -> bool:
    """Aisle headers such as "21-GROCERY" or "31-MEATS"."""
    return CATEGORY_HEADER_PATTERN.match(line) is not None


def _looks_like_code_only(line: str) -> bool:
    """Lines that are just an item code, e.g. "062843020000" or "(12)"."""
    return CODE_ONLY_PATTERN.match(re.sub(r"\s+", "", line)) is not None


def _strip_leading_receipt_codes(text: str) -> str:
    """Remove leading "(12)" counters and long SKU codes from an item line."""
    if not text:
        return text
    cleaned = text.strip()
    cleaned = re.sub(r"^\(\d+\)\s*", "", cleaned)
    cleaned = re.sub(r"^\d{6,}\s+", "", cleaned)
    return cleaned.strip()


def _strip_tax_code_suffix(text: str, rules: ParserRules) -> str:
    return rules.tax_suffix_pattern().sub("", text)


def _parse_unit_line(line: str) -> UnitLine | None:
    """
    Parse a quantity/weight modifier from a line.

    Detects patterns like:
    - "0.78 kg @ 2.16/kg" (weight at unit price)
    - "2 @ $1.50" (count at unit price)
    """
    weight_match = WEIGHT_AT_PRICE_PATTERN.search(line)
    if weight_match:
        return UnitLine(
            qty=Decimal(weight_match.group(1)),
            unit_price=parse_money(weight_match.group(3)),
        )

    count_match = COUNT_AT_PRICE_PATTERN.search(line)
    if count_match:
        return UnitLine(
            qty=Decimal(int(count_match.group(1))),
            unit_price=parse_money(count_match.group(2)),
        )
    return None


def _is_unit_only_line(line: str, unit_line: UnitLine | None) -> bool:
    """Return True if nothing but a quantity/weight @ price fragment is on the line."""
    if unit_line is None:
        return False
    remainder = _remove_unit_fragment(line)
    if PRICE_PATTERN.search(remainder):
        return False
    remainder = re.sub(r"/?(kg|lb)\b", "", remainder, flags=re.IGNORECASE)
    return not _has_letters(remainder)


def _remove_unit_fragment(text: str) -> str:
    return UNIT_FRAGMENT_PATTERN.sub("", text, count=1)


def _collapse_spaces(text: str) -> str:
    return re.sub(r"\s{2,}", " ", text).strip()
