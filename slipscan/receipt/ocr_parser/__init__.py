"""Composable OCR receipt parser components."""

from .common import DEFAULT_PARSER_RULES, ParserRules, UnitLine, build_parser_rules
from .items_text_parser import parse_receipt_items

__all__ = [
    "DEFAULT_PARSER_RULES",
    "ParserRules",
    "UnitLine",
    "build_parser_rules",
    "parse_receipt_items",
]
