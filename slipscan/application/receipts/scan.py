"""Receipt scan workflow orchestration."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from slipscan.domain.receipt import AiReceiptData, ParsedLineItem, ReceiptCandidate
from slipscan.receipt import (
    DedupeConfig,
    ParserRules,
    is_duplicate_receipt,
    normalize_receipt_datetime_from_scan,
    parse_receipt_items,
    reconcile_item,
    round2,
)
from slipscan.runtime import get_logger, load_dedupe_config, load_parser_rules
from slipscan.runtime.receipt_pipeline import (
    OCR_SERVICE_URL,
    ExtractionNotConfigured,
    ExtractionServiceError,
    OCRServiceUnavailable,
    call_ocr_service,
    extract_receipt_from_image,
    extract_receipt_from_text,
    save_ocr_text,
)
from slipscan.runtime.receipt_storage import DuplicateReceiptError

if TYPE_CHECKING:
    from slipscan.domain.receipt import StoredReceipt
    from slipscan.runtime.receipt_storage import ReceiptStore

logger = get_logger(__name__)

ScanStatus = Literal[
    "file_not_found",
    "ocr_unavailable",
    "parsed",
]
ItemSource = Literal["ai_image", "ai_text", "ocr", "none"]
SaveStatus = Literal["saved", "duplicate", "invalid"]

NOTICE_AI_EMPTY_FALLBACK = "AI parsing returned no items. Falling back to OCR text."
NOTICE_AI_EMPTY_BEST_EFFORT = "AI parsing returned no items. Showing best-effort results."
NOTICE_IMAGE_MISSING = "Image data missing for AI parsing. Falling back to OCR text."
NOTICE_NO_TEXT = "No text detected in the photo."


@dataclass(frozen=True)
class ReceiptScanRequest:
    """Inputs for running receipt scan workflow."""

    image_path: Path
    image_bytes: bytes | None = None
    ocr_url: str | None = None
    api_key: str | None = None
    existing: Sequence[StoredReceipt] = ()
    parser_rules: ParserRules | None = None
    dedupe_config: DedupeConfig | None = None
    recognize_text: Callable[[Path], str] | None = None
    extract_from_image: Callable[[bytes, str], AiReceiptData] | None = None
    extract_from_text: Callable[[str, str], AiReceiptData] | None = None


@dataclass(frozen=True)
class ReceiptScanResult:
    """Outcome from receipt scan workflow."""

    status: ScanStatus
    candidate: ReceiptCandidate | None = None
    source: ItemSource = "none"
    notice: str | None = None
    duplicate_suspected: bool = False
    raw_text: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ReceiptSaveResult:
    """Outcome from saving a reviewed receipt."""

    status: SaveStatus
    receipt_id: int | None = None
    error: str | None = None


@dataclass
class _ScanProgress:
    items: list[ParsedLineItem] = field(default_factory=list)
    fields: AiReceiptData | None = None
    source: ItemSource = "none"
    notice: str | None = None


def items_from_parsed(parsed: Sequence[ParsedLineItem]) -> list[ParsedLineItem]:
    """Seed heuristic items for review: a priced line with no quantity is one unit."""
    seeded: list[ParsedLineItem] = []
    for item in parsed:
        qty = item.qty
        if qty is None and item.line_total is not None:
            qty = Decimal(1)
        unit_price = item.unit_price
        if unit_price is None and item.line_total is not None:
            unit_price = round2(item.line_total / qty) if qty else item.line_total
        seeded.append(reconcile_item(ParsedLineItem(item.description, qty, unit_price, item.line_total)))
    return seeded


def items_from_ai(data: AiReceiptData) -> list[ParsedLineItem]:
    """Convert extraction items; a priced item with no quantity is one unit."""
    items: list[ParsedLineItem] = []
    for ai_item in data.items:
        item = ai_item.to_parsed()
        if item.qty is None and item.unit_price is not None:
            item = ParsedLineItem(item.description, Decimal(1), item.unit_price, item.line_total)
        items.append(reconcile_item(item))
    return items


def _apply_ai_result(progress: _ScanProgress, data: AiReceiptData, source: ItemSource) -> bool:
    """Take items/fields from an extraction result. Returns True if it carried receipt fields."""
    if data.items:
        progress.items = items_from_ai(data)
        progress.source = source
    if data.has_receipt_fields():
        progress.fields = data
        return True
    return False


def _build_candidate(progress: _ScanProgress, raw_text: str, image_path: Path) -> ReceiptCandidate:
    fields = progress.fields or AiReceiptData()
    purchase_datetime = fields.purchase_datetime
    if purchase_datetime:
        purchase_datetime = normalize_receipt_datetime_from_scan(purchase_datetime) or purchase_datetime
    return ReceiptCandidate(
        merchant=fields.merchant,
        purchase_datetime=purchase_datetime,
        subtotal=fields.subtotal,
        tax=fields.tax,
        total=fields.total,
        items=tuple(progress.items),
        image_uri=str(image_path),
        raw_ocr_text=raw_text or None,
    )


def run_receipt_scan(request: ReceiptScanRequest) -> ReceiptScanResult:
    """Run scan flow: cloud image extraction -> text recognition + heuristic parse -> cloud text extraction."""
    image_bytes = request.image_bytes
    if image_bytes is None:
        if not request.image_path.exists():
            return ReceiptScanResult(
                status="file_not_found",
                error=f"Receipt file not found: {request.image_path}",
            )
        image_bytes = request.image_path.read_bytes()

    recognize_text = request.recognize_text or partial(call_ocr_service, ocr_url=request.ocr_url or OCR_SERVICE_URL)
    extract_from_image = request.extract_from_image or extract_receipt_from_image
    extract_from_text = request.extract_from_text or extract_receipt_from_text
    rules = request.parser_rules or load_parser_rules()

    progress = _ScanProgress()
    api_key = request.api_key

    if api_key and image_bytes:
        try:
            if not _apply_ai_result(progress, extract_from_image(image_bytes, api_key), "ai_image"):
                progress.notice = NOTICE_AI_EMPTY_FALLBACK
        except (ExtractionServiceError, ExtractionNotConfigured) as exc:
            logger.warning("Image extraction failed: %s", exc)
            progress.notice = f"{exc} Falling back to OCR text."
    elif api_key:
        progress.notice = NOTICE_IMAGE_MISSING

    raw_text = ""
    if not progress.items:
        try:
            raw_text = recognize_text(request.image_path)
        except OCRServiceUnavailable as exc:
            return ReceiptScanResult(status="ocr_unavailable", notice=progress.notice, error=str(exc))

        if raw_text:
            save_ocr_text(raw_text, request.image_path)

        progress.items = items_from_parsed(parse_receipt_items(raw_text, rules=rules))
        progress.source = "ocr" if progress.items else "none"
        logger.info("Heuristic parser found %d items", len(progress.items))

        if api_key and raw_text:
            try:
                has_fields = _apply_ai_result(progress, extract_from_text(raw_text, api_key), "ai_text")
                if not has_fields and not progress.notice:
                    progress.notice = NOTICE_AI_EMPTY_BEST_EFFORT
            except (ExtractionServiceError, ExtractionNotConfigured) as exc:
                logger.warning("Text extraction failed: %s", exc)
                if not progress.notice:
                    progress.notice = str(exc)
        if not raw_text and not progress.notice:
            progress.notice = NOTICE_NO_TEXT

    candidate = _build_candidate(progress, raw_text, request.image_path)

    duplicate_suspected = False
    if candidate.purchase_datetime:
        duplicate_suspected = is_duplicate_receipt(
            candidate.purchase_datetime,
            candidate.total,
            request.existing,
            config=request.dedupe_config or load_dedupe_config(),
        )
        if duplicate_suspected:
            logger.warning("Receipt at %s looks like one already saved", candidate.purchase_datetime)

    return ReceiptScanResult(
        status="parsed",
        candidate=candidate,
        source=progress.source,
        notice=progress.notice,
        duplicate_suspected=duplicate_suspected,
        raw_text=raw_text,
    )


def save_scanned_receipt(
    store: ReceiptStore,
    candidate: ReceiptCandidate,
    *,
    allow_duplicate: bool = False,
    dedupe_config: DedupeConfig | None = None,
) -> ReceiptSaveResult:
    """Validate a reviewed receipt, warn on duplicates unless overridden, and persist it."""
    if not (candidate.merchant or "").strip():
        return ReceiptSaveResult(status="invalid", error="Please enter the merchant name before saving.")
    if not (candidate.purchase_datetime or "").strip():
        return ReceiptSaveResult(status="invalid", error="Please enter the purchase date and time.")
    if not any(item.description.strip() for item in candidate.items):
        return ReceiptSaveResult(status="invalid", error="Add at least one item before saving.")

    purchase_datetime = (candidate.purchase_datetime or "").strip()
    if not allow_duplicate and is_duplicate_receipt(
        purchase_datetime,
        candidate.total,
        store.fetch_existing_receipts(),
        config=dedupe_config or load_dedupe_config(),
    ):
        return ReceiptSaveResult(
            status="duplicate",
            error=f"A receipt at {purchase_datetime} with the same total is already saved.",
        )

    try:
        receipt_id = store.insert_receipt(candidate, allow_duplicate=allow_duplicate)
    except DuplicateReceiptError as exc:
        return ReceiptSaveResult(status="duplicate", error=str(exc))
    return ReceiptSaveResult(status="saved", receipt_id=receipt_id)
