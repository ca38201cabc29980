#!/usr/bin/env python3

import argparse
import logging
from collections.abc import Callable, Sequence

from slipscan.runtime import set_log_level


def _coerce_exit_code(code: object) -> int:
    if code is None:
        return 0
    if isinstance(code, int):
        return code
    return 1


def _run_command(command: Callable[[argparse.Namespace], None], args: argparse.Namespace) -> int:
    """
    Normalize command handlers that call sys.exit().

    This keeps process termination centralized in this module's entrypoint.
    """
    try:
        command(args)
    except SystemExit as exc:
        return _coerce_exit_code(exc.code)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slipscan",
        description="Receipt scanning utilities",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  parse-text <file|->          Parse recognized receipt text into line items
  normalize-date <text>        Print a receipt date/time in canonical form
  scan <image>                 Scan a receipt image
  list [--from] [--to]         List saved receipts
  check-duplicate <dt> [total] Check a receipt against saved receipts
  serve [--host] [--port]      Start receipt upload server

Notes:
  Data lives under $SLIPSCAN_HOME (default: current directory):
  config/parser_rules.toml, data/receipts.db, data/images/
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parse_text_parser = subparsers.add_parser("parse-text", help="Parse recognized receipt text")
    parse_text_parser.add_argument("source", help="Text file to parse, or - for stdin")

    date_parser = subparsers.add_parser("normalize-date", help="Normalize a receipt date/time")
    date_parser.add_argument("text", help="Date/time text as printed on the receipt")
    date_parser.add_argument(
        "--scan",
        action="store_true",
        help="Treat the text as scanned: prefer the current year for two-digit-year dates",
    )

    scan_parser = subparsers.add_parser("scan", help="Scan a receipt image")
    scan_parser.add_argument("image", help="Path to receipt image")
    scan_parser.add_argument("--ocr-url", default=None, help="OCR service URL (default: $SLIPSCAN_OCR_URL)")
    scan_parser.add_argument("--no-ai", action="store_true", help="Skip cloud extraction even if a key is set")
    scan_parser.add_argument("--save", action="store_true", help="Save the scanned receipt")
    scan_parser.add_argument("--allow-duplicate", action="store_true", help="Save even if it looks like a duplicate")

    list_parser = subparsers.add_parser("list", help="List saved receipts")
    list_parser.add_argument("--from", dest="date_from", default=None, help="First day to include")
    list_parser.add_argument("--to", dest="date_to", default=None, help="Last day to include")
    list_parser.add_argument("--items", action="store_true", help="List every saved line item instead")

    dup_parser = subparsers.add_parser("check-duplicate", help="Check a receipt against saved receipts")
    dup_parser.add_argument("datetime", help="Purchase date/time")
    dup_parser.add_argument("total", nargs="?", default=None, help="Receipt total")

    serve_parser = subparsers.add_parser("serve", help="Start receipt upload server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind to (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=8080, help="Port to bind to (default: 8080)")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    if args.verbose:
        set_log_level(logging.DEBUG)

    from slipscan.cli import receipt as commands

    handlers: dict[str, Callable[[argparse.Namespace], None]] = {
        "parse-text": commands.cmd_parse_text,
        "normalize-date": commands.cmd_normalize_date,
        "scan": commands.cmd_scan,
        "list": commands.cmd_list,
        "check-duplicate": commands.cmd_check_duplicate,
        "serve": commands.cmd_serve,
    }
    handler = handlers.get(args.command)
    if handler is None:
        return 1
    return _run_command(handler, args)


if __name__ == "__main__":
    raise SystemExit(main())
