"""Data models for receipt digitizing."""

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass
class ParsedLineItem:
    """A single line item recovered from receipt text."""

    description: str
    qty: Decimal | None = None
    unit_price: Decimal | None = None
    line_total: Decimal | None = None


@dataclass
class AiLineItem:
    """A line item as returned by cloud extraction, after validation."""

    name: str
    qty: Decimal | None = None
    price: Decimal | None = None  # unit price
    line_total: Decimal | None = None

    def to_parsed(self) -> ParsedLineItem:
        return ParsedLineItem(
            description=self.name,
            qty=self.qty,
            unit_price=self.price,
            line_total=self.line_total,
        )


@dataclass
class AiReceiptData:
    """Normalized cloud extraction result."""

    items: list[AiLineItem] = field(default_factory=list)
    merchant: str | None = None
    purchase_datetime: str | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None

    def has_receipt_fields(self) -> bool:
        return bool(
            self.merchant
            or self.purchase_datetime
            or self.subtotal is not None
            or self.tax is not None
            or self.total is not None
        )


@dataclass(frozen=True)
class ReceiptCandidate:
    """Receipt assembled from parser output and user edits, ready to persist."""

    merchant: str | None = None
    purchase_datetime: str | None = None  # canonical "YYYY-MM-DD HH:MM:SS" when known
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    total: Decimal | None = None
    items: tuple[ParsedLineItem, ...] = ()
    image_uri: str | None = None
    raw_ocr_text: str | None = None


@dataclass(frozen=True)
class StoredReceipt:
    """Snapshot of a persisted receipt, as used for duplicate checks and listing."""

    purchase_datetime: str
    total: Decimal | None = None
    subtotal: Decimal | None = None
    tax: Decimal | None = None
    id: int | None = None
    merchant_name: str = ""
    dedupe_key: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class StoredReceiptItem:
    """A persisted line item joined with its receipt's purchase time."""

    receipt_id: int
    description: str
    qty: Decimal | None = None
    unit_price: Decimal | None = None
    line_total: Decimal | None = None
    category: str | None = None
    purchase_datetime: str | None = None
    id: int | None = None
