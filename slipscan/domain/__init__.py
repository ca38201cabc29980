"""Core domain models for slipscan.

This module provides the data models shared by the parsers, the
duplicate check and the storage layer:
- ParsedLineItem: heuristic parser output
- AiLineItem, AiReceiptData: validated cloud extraction output
- ReceiptCandidate: receipt assembled before persistence
- StoredReceipt, StoredReceiptItem: persisted snapshots

Usage:
    from slipscan.domain import ParsedLineItem, ReceiptCandidate
"""

from slipscan.domain.receipt import (
    AiLineItem,
    AiReceiptData,
    ParsedLineItem,
    ReceiptCandidate,
    StoredReceipt,
    StoredReceiptItem,
)

__all__ = [
    "AiLineItem",
    "AiReceiptData",
    "ParsedLineItem",
    "ReceiptCandidate",
    "StoredReceipt",
    "StoredReceiptItem",
]
