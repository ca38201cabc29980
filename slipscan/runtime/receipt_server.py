"""FastAPI server for receiving receipt photos from a phone."""

import re
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from slipscan.application.receipts.scan import (
    ReceiptScanRequest,
    ReceiptScanResult,
    items_from_parsed,
    run_receipt_scan,
    save_scanned_receipt,
)
from slipscan.domain.receipt import ParsedLineItem, ReceiptCandidate
from slipscan.receipt import parse_receipt_items
from slipscan.runtime import get_logger, get_paths, load_parser_rules
from slipscan.runtime.receipt_pipeline import OCR_SERVICE_URL, call_ocr_service, get_openai_api_key
from slipscan.runtime.receipt_storage import ReceiptStore

logger = get_logger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class FixiOSMultipartMiddleware(BaseHTTPMiddleware):
    """Fix iOS Shortcuts multipart boundary issue (LF vs CRLF)."""

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        content_type = request.headers.get("content-type", "")

        if content_type.startswith("multipart/form-data"):
            boundary_match = re.search(r"boundary=([^;]+)", content_type)
            if boundary_match:
                body = await request.body()
                boundary = boundary_match.group(1).strip().strip('"')
                fixed_body = _normalize_multipart_headers(body, b"--" + boundary.encode())

                async def receive() -> dict[str, Any]:
                    return {"type": "http.request", "body": fixed_body}

                request._receive = receive
                request._body = fixed_body
            else:
                logger.info("Multipart request missing boundary; skipping normalization.")

        return await call_next(request)


def _normalize_multipart_headers(body: bytes, boundary_bytes: bytes) -> bytes:
    """Rewrite each part's header block with CRLF line endings."""
    if re.search(rb"(?<!\r)\n" + re.escape(boundary_bytes), body) is not None:
        logger.info("Multipart boundary uses LF-only line endings; normalizing headers to CRLF.")

    fixed_parts: list[bytes] = []
    for i, part in enumerate(body.split(boundary_bytes)):
        if i == 0 or part.startswith(b"--") or not part:
            fixed_parts.append(part)
            continue

        leading = b""
        if part.startswith(b"\r\n"):
            leading, part_content = b"\r\n", part[2:]
        elif part.startswith(b"\n"):
            leading, part_content = b"\n", part[1:]
        else:
            part_content = part

        if b"\r\n\r\n" in part_content:
            header, body_rest = part_content.split(b"\r\n\r\n", 1)
        elif b"\n\n" in part_content:
            header, body_rest = part_content.split(b"\n\n", 1)
        else:
            fixed_parts.append(part)
            continue

        header = header.replace(b"\r\n", b"\n").replace(b"\n", b"\r\n")
        fixed_parts.append(leading + header + b"\r\n\r\n" + body_rest)

    return boundary_bytes.join(fixed_parts)


def recognize_text(image_path: Path) -> str:
    """Text recognition collaborator used by the upload endpoint."""
    return call_ocr_service(image_path, OCR_SERVICE_URL)


def _money(value: Decimal | None) -> str | None:
    return f"{value:.2f}" if value is not None else None


def _quantity(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


def _item_json(item: ParsedLineItem) -> dict[str, Any]:
    return {
        "description": item.description,
        "qty": _quantity(item.qty),
        "unit_price": _money(item.unit_price),
        "line_total": _money(item.line_total),
    }


def _candidate_json(candidate: ReceiptCandidate) -> dict[str, Any]:
    return {
        "merchant": candidate.merchant,
        "purchase_datetime": candidate.purchase_datetime,
        "subtotal": _money(candidate.subtotal),
        "tax": _money(candidate.tax),
        "total": _money(candidate.total),
    }


def _scan_and_maybe_save(image_path: Path, contents: bytes, save: bool, allow_duplicate: bool) -> JSONResponse:
    with ReceiptStore() as store:
        result: ReceiptScanResult = run_receipt_scan(
            ReceiptScanRequest(
                image_path=image_path,
                image_bytes=contents,
                api_key=get_openai_api_key(),
                existing=store.fetch_existing_receipts(),
                recognize_text=recognize_text,
            )
        )

        if result.status != "parsed" or result.candidate is None:
            return JSONResponse({"status": "error", "message": result.error or result.status}, status_code=502)

        payload: dict[str, Any] = {
            "status": "success",
            "notice": result.notice,
            "source": result.source,
            "receipt": _candidate_json(result.candidate),
            "items": [_item_json(item) for item in result.candidate.items],
            "duplicate_suspected": result.duplicate_suspected,
            "receipt_id": None,
        }

        if save:
            saved = save_scanned_receipt(store, result.candidate, allow_duplicate=allow_duplicate)
            if saved.status == "duplicate":
                payload.update(status="duplicate", message=saved.error)
                return JSONResponse(payload, status_code=409)
            if saved.status == "invalid":
                payload.update(status="invalid", message=saved.error)
                return JSONResponse(payload, status_code=422)
            payload["receipt_id"] = saved.receipt_id

    return JSONResponse(payload)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create data directories on startup."""
    get_paths().ensure_data_directories()
    yield


app = FastAPI(title="Receipt Scanner", lifespan=lifespan)
app.add_middleware(FixiOSMultipartMiddleware)


@app.post("/upload")
async def upload_receipt(request: Request) -> JSONResponse:
    """Receive a receipt photo, extract items and optionally save the receipt."""
    form = await request.form()

    file = None
    for key, value in form.items():
        logger.debug("Form field: key=%r, type=%s", key, type(value))
        if hasattr(value, "read"):
            file = value
            break

    if not file:
        return JSONResponse({"status": "error", "message": "No file found in request"}, status_code=400)

    save = str(form.get("save", "")).lower() in _TRUE_VALUES
    allow_duplicate = str(form.get("allow_duplicate", "")).lower() in _TRUE_VALUES

    images_dir = get_paths().images
    images_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    file_filename = getattr(file, "filename", None)
    ext = Path(file_filename).suffix if file_filename else ".jpg"
    image_path = images_dir / f"receipt_{timestamp}{ext}"

    contents = await file.read()
    image_path.write_bytes(contents)
    logger.info("Received receipt photo %s (%d bytes)", image_path.name, len(contents))

    return await run_in_threadpool(_scan_and_maybe_save, image_path, contents, save, allow_duplicate)


@app.post("/parse-text")
async def parse_text(request: Request) -> JSONResponse:
    """Parse already recognized receipt text with the heuristic parser."""
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse({"status": "error", "message": "Body must be JSON"}, status_code=400)

    text = body.get("text") if isinstance(body, dict) else None
    if not isinstance(text, str):
        return JSONResponse({"status": "error", "message": "Missing 'text'"}, status_code=400)

    items = items_from_parsed(parse_receipt_items(text, rules=load_parser_rules()))
    return JSONResponse({"status": "success", "items": [_item_json(item) for item in items]})


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok"}
