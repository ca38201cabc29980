"""Receipt command handlers used by the unified CLI."""

import argparse
import sys
from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from pathlib import Path

from slipscan.domain.receipt import ParsedLineItem, ReceiptCandidate, StoredReceipt, StoredReceiptItem
from slipscan.receipt import (
    is_duplicate_receipt,
    normalize_receipt_datetime,
    normalize_receipt_datetime_from_scan,
    parse_flexible_datetime,
    parse_receipt_items,
    reconcile_item,
)
from slipscan.receipt.reconcile import parse_money
from slipscan.runtime import get_logger, load_dedupe_config, load_parser_rules

logger = get_logger(__name__)


def _fmt_money(value: Decimal | None) -> str:
    return f"${value:.2f}" if value is not None else "-"


def _format_item(index: int, item: ParsedLineItem | StoredReceiptItem) -> str:
    qty_str = f" x{item.qty}" if item.qty is not None and item.qty != 1 else ""
    unit_str = f" @ {_fmt_money(item.unit_price)}" if qty_str and item.unit_price is not None else ""
    return f"  {index}. {item.description}{qty_str}{unit_str} - {_fmt_money(item.line_total)}"


def _print_candidate(candidate: ReceiptCandidate) -> None:
    print("\n" + "=" * 60)
    print("PARSED RECEIPT")
    print("=" * 60)
    print(f"Merchant: {candidate.merchant or 'UNKNOWN'}")
    print(f"Date: {candidate.purchase_datetime or 'UNKNOWN'}")
    if candidate.subtotal is not None:
        print(f"Subtotal: {_fmt_money(candidate.subtotal)}")
    if candidate.tax is not None:
        print(f"Tax: {_fmt_money(candidate.tax)}")
    print(f"Total: {_fmt_money(candidate.total)}")
    print(f"\nItems ({len(candidate.items)}):")
    for i, item in enumerate(candidate.items, 1):
        print(_format_item(i, item))
    print("=" * 60)


def _parse_day(value: str | None, flag: str) -> date | None:
    if value is None:
        return None
    parsed = parse_flexible_datetime(value)
    if parsed is None:
        print(f"Error: could not read {flag} date: {value!r}")
        sys.exit(1)
    return parsed.date()


def cmd_parse_text(args: argparse.Namespace) -> None:
    """Parse already recognized receipt text and print the line items."""
    if args.source == "-":
        raw_text = sys.stdin.read()
    else:
        source = Path(args.source)
        if not source.exists():
            print(f"Error: file not found: {source}")
            sys.exit(1)
        raw_text = source.read_text(encoding="utf-8")

    items = [reconcile_item(item) for item in parse_receipt_items(raw_text, rules=load_parser_rules())]
    if not items:
        print("No items found.")
        return
    print(f"Items ({len(items)}):")
    for i, item in enumerate(items, 1):
        print(_format_item(i, item))


def cmd_normalize_date(args: argparse.Namespace) -> None:
    """Print a receipt date/time as YYYY-MM-DD HH:MM:SS."""
    if args.scan:
        normalized = normalize_receipt_datetime_from_scan(args.text)
    else:
        normalized = normalize_receipt_datetime(args.text)
    if normalized is None:
        print(f"Could not parse date: {args.text!r}")
        sys.exit(1)
    print(normalized)


def cmd_scan(args: argparse.Namespace) -> None:
    """Scan a receipt image, print the result and optionally save it."""
    from slipscan.application.receipts.scan import ReceiptScanRequest, run_receipt_scan, save_scanned_receipt
    from slipscan.runtime.receipt_pipeline import get_openai_api_key
    from slipscan.runtime.receipt_storage import ReceiptStore

    receipt_path = Path(args.image)
    with ReceiptStore() as store:
        result = run_receipt_scan(
            ReceiptScanRequest(
                image_path=receipt_path,
                ocr_url=args.ocr_url,
                api_key=None if args.no_ai else get_openai_api_key(),
                existing=store.fetch_existing_receipts(),
            )
        )

        if result.status == "file_not_found":
            logger.error("%s", result.error)
            print(f"Error: {result.error}")
            sys.exit(1)

        if result.status == "ocr_unavailable":
            logger.error("%s", result.error)
            print(f"OCR service unavailable: {result.error}")
            print("Make sure the OCR service is running before scanning receipts.")
            sys.exit(1)

        candidate = result.candidate
        if candidate is None:
            print("Scan failed: missing receipt output.")
            sys.exit(1)

        if result.notice:
            print(result.notice)
        _print_candidate(candidate)
        if result.duplicate_suspected:
            print("Warning: this looks like a receipt that is already saved.")

        if not args.save:
            return

        saved = save_scanned_receipt(store, candidate, allow_duplicate=args.allow_duplicate)
        if saved.status == "saved":
            print(f"\nSaved receipt #{saved.receipt_id}")
            return
        print(f"Not saved: {saved.error}")
        if saved.status == "duplicate":
            print("Re-run with --allow-duplicate to save it anyway.")
        sys.exit(1)


def _print_receipts(receipts: Sequence[StoredReceipt]) -> None:
    if not receipts:
        print("No receipts found.")
        return
    for receipt in receipts:
        print(f"  #{receipt.id}  {receipt.purchase_datetime}  {receipt.merchant_name}  {_fmt_money(receipt.total)}")
    print(f"\nTotal: {len(receipts)} receipt(s)")


def _print_itemwise(items: Sequence[StoredReceiptItem]) -> None:
    if not items:
        print("No items found.")
        return
    for i, item in enumerate(items, 1):
        print(f"{_format_item(i, item)}  ({item.purchase_datetime or 'UNKNOWN'})")


def cmd_list(args: argparse.Namespace) -> None:
    """List saved receipts, newest first, or every saved line item."""
    from slipscan.application.receipts.listing import run_list_itemwise, run_list_receipts
    from slipscan.runtime.receipt_storage import ReceiptStore

    date_from = _parse_day(args.date_from, "--from")
    date_to = _parse_day(args.date_to, "--to")

    with ReceiptStore() as store:
        if args.items:
            _print_itemwise(run_list_itemwise(store, date_from, date_to).items)
            return
        _print_receipts(run_list_receipts(store, date_from, date_to).receipts)


def cmd_check_duplicate(args: argparse.Namespace) -> None:
    """Check whether a receipt at this time (and total) is already saved. Exits 1 if so."""
    from slipscan.runtime.receipt_storage import ReceiptStore

    total = None
    if args.total is not None:
        total = parse_money(args.total.replace("$", "").strip())
        if total is None:
            print(f"Error: could not read total: {args.total!r}")
            sys.exit(1)

    purchase_datetime = normalize_receipt_datetime(args.datetime) or args.datetime
    with ReceiptStore() as store:
        duplicate = is_duplicate_receipt(
            purchase_datetime,
            total,
            store.fetch_existing_receipts(),
            config=load_dedupe_config(),
        )

    if duplicate:
        print(f"Duplicate: a receipt at {purchase_datetime} is already saved.")
        sys.exit(1)
    print("No duplicate found.")


def cmd_serve(args: argparse.Namespace) -> None:
    """Start the FastAPI server for receiving receipt uploads."""
    import uvicorn

    from slipscan.runtime import receipt_server as server

    print(f"Starting receipt server on {args.host}:{args.port}")
    print(f"Endpoints: http://{args.host}:{args.port}/upload | /parse-text | /health")
    print("Press Ctrl+C to stop")

    uvicorn.run(server.app, host=args.host, port=args.port)
