"""Runtime helpers for the text recognition and cloud extraction services."""

import base64
import os
import time
from pathlib import Path
from typing import Any

import httpx

from slipscan.domain.receipt import AiReceiptData
from slipscan.receipt.ai_normalizer import RECEIPT_SCHEMA, parse_ai_receipt_content
from slipscan.runtime.logging import get_logger
from slipscan.runtime.paths import get_paths

logger = get_logger(__name__)

OCR_SERVICE_URL = os.environ.get("SLIPSCAN_OCR_URL", "http://localhost:8001")
OPENAI_API_URL = "https://api.openai.com/v1/chat/completions"
DEFAULT_MODEL = os.environ.get("SLIPSCAN_OPENAI_MODEL", "gpt-4o-mini")
REQUEST_TIMEOUT = 60.0

SYSTEM_PROMPT = (
    "You extract receipt line items and totals from Canadian grocery receipts. "
    "Return only purchasable items, excluding totals, taxes, loyalty, coupons, and payment lines. "
    "Price must be the unit price (per item) and line_total is the final amount charged for the line. "
    "Ignore tax codes, item codes, and category headers. "
    "Be precise with quantities and unit prices, especially for weighted items."
)

USER_INSTRUCTIONS = """\
The receipt is from a Canadian grocery store or a small local grocer. \
Extract items with name, quantity, unit price (per item), and line total (final amount charged). \
Lines for a single item may be split across two rows; merge them. \
Ignore tax codes, item codes, and category headers.

Quantity/unit-price rules:
- Weighted items: a weight like "0.78 kg" is the quantity. "@ 2.16/kg" means the unit price is 2.16. \
Never use the line total as the unit price.
- Multi-quantity items: "2 @ 1.50" or "2x 1.50" means quantity 2 and unit price 1.50.
- If a line total is present and the unit price is missing, unit price = line total / quantity, \
rounded to 2 decimals.
- If no quantity is shown, quantity is 1 and the unit price is the single price shown.

Also extract merchant name, purchase date/time, subtotal, tax, and total when present. \
If a field is missing, return null."""


class OCRServiceUnavailable(RuntimeError):
    """Raised when the text recognition service cannot be reached or returns an error."""


class ExtractionNotConfigured(RuntimeError):
    """Raised when cloud extraction is requested without credentials."""


class ExtractionServiceError(RuntimeError):
    """Raised when the cloud extraction request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def get_openai_api_key() -> str | None:
    """API key for cloud extraction, or None when it is not configured."""
    key = os.environ.get("SLIPSCAN_OPENAI_API_KEY", "").strip()
    return key or None


def _text_from_ocr_result(raw_result: Any) -> str:
    """
    Pull plain text out of a recognition response.

    Accepts {"text": "..."} or PaddleOCR-style {"detections": [[bbox, [text, conf]], ...]}.
    """
    if not isinstance(raw_result, dict):
        return ""
    text = raw_result.get("text")
    if isinstance(text, str):
        return text.strip()

    lines: list[str] = []
    for detection in raw_result.get("detections", []) or []:
        try:
            _bbox, (line_text, _confidence) = detection
        except (TypeError, ValueError):
            continue
        if isinstance(line_text, str) and line_text.strip():
            lines.append(line_text.strip())
    return "\n".join(lines)


def call_ocr_service(image_path: Path, ocr_url: str = OCR_SERVICE_URL, *, client: httpx.Client | None = None) -> str:
    """
    Send a receipt photo to the text recognition service.

    Returns:
        Recognized text; empty string when nothing was recognized.
    """
    ocr_url = ocr_url.rstrip("/")
    logger.info("Sending receipt to OCR service at %s...", ocr_url)

    try:
        image_bytes = image_path.read_bytes()
        start_time = time.time()
        if client is None:
            with httpx.Client(timeout=REQUEST_TIMEOUT) as owned_client:
                response = owned_client.post(
                    f"{ocr_url}/ocr",
                    files={"file": (image_path.name, image_bytes, "image/jpeg")},
                )
        else:
            response = client.post(
                f"{ocr_url}/ocr",
                files={"file": (image_path.name, image_bytes, "image/jpeg")},
            )
        logger.info("OCR service returned in %.2f seconds", time.time() - start_time)
    except httpx.RequestError as e:
        logger.error("Failed to connect to OCR service: %s", e)
        raise OCRServiceUnavailable(f"Failed to connect to OCR service: {e}") from e

    if response.status_code != 200:
        logger.error("OCR service error: %s", response.status_code)
        raise OCRServiceUnavailable(f"OCR service error: {response.status_code}")

    try:
        raw_result = response.json()
    except ValueError as e:
        raise OCRServiceUnavailable("OCR service returned invalid JSON") from e
    return _text_from_ocr_result(raw_result)


def save_ocr_text(raw_text: str, image_path: Path) -> Path:
    """Save recognized text for debugging."""
    ocr_dir = get_paths().ocr_text
    ocr_dir.mkdir(parents=True, exist_ok=True)
    ocr_text_path = ocr_dir / f"{image_path.stem}.txt"
    ocr_text_path.write_text(raw_text, encoding="utf-8")
    logger.debug("OCR text saved to: %s", ocr_text_path)
    return ocr_text_path


def _build_request(user_content: str | list[dict[str, Any]], model: str) -> dict[str, Any]:
    return {
        "model": model,
        "response_format": {
            "type": "json_schema",
            "json_schema": {
                "name": "receipt_items",
                "strict": True,
                "schema": RECEIPT_SCHEMA,
            },
        },
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_content},
        ],
        "temperature": 0,
    }


def _message_content(body: Any) -> str:
    if not isinstance(body, dict):
        return ""
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return ""
    message = choices[0].get("message")
    if not isinstance(message, dict):
        return ""
    content = message.get("content")
    return content if isinstance(content, str) else ""


def _post_extraction(payload: dict[str, Any], api_key: str, client: httpx.Client | None) -> AiReceiptData:
    if not api_key:
        raise ExtractionNotConfigured("No API key configured for cloud extraction")

    headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
    try:
        start_time = time.time()
        if client is None:
            with httpx.Client(timeout=REQUEST_TIMEOUT) as owned_client:
                response = owned_client.post(OPENAI_API_URL, headers=headers, json=payload)
        else:
            response = client.post(OPENAI_API_URL, headers=headers, json=payload)
        logger.info("Extraction service returned in %.2f seconds", time.time() - start_time)
    except httpx.RequestError as e:
        logger.error("Failed to reach extraction service: %s", e)
        raise ExtractionServiceError(f"Extraction request failed: {e}") from e

    if response.status_code != 200:
        message = f"Extraction request failed: {response.status_code} {response.text}".strip()
        logger.error("Extraction service error: %s", response.status_code)
        raise ExtractionServiceError(message, status_code=response.status_code)

    try:
        body = response.json()
    except ValueError:
        logger.warning("Extraction service returned a non-JSON body")
        return AiReceiptData()

    result = parse_ai_receipt_content(_message_content(body))
    logger.debug("Extraction returned %d items", len(result.items))
    return result


def extract_receipt_from_text(
    raw_text: str,
    api_key: str,
    *,
    model: str = DEFAULT_MODEL,
    client: httpx.Client | None = None,
) -> AiReceiptData:
    """Ask the cloud model to structure recognized receipt text."""
    payload = _build_request(f"{USER_INSTRUCTIONS}\n\n{raw_text}", model)
    return _post_extraction(payload, api_key, client)


def extract_receipt_from_image(
    image_bytes: bytes,
    api_key: str,
    *,
    model: str = DEFAULT_MODEL,
    client: httpx.Client | None = None,
) -> AiReceiptData:
    """Ask the cloud model to read a receipt photo directly."""
    encoded = base64.b64encode(image_bytes).decode("ascii")
    content = [
        {"type": "text", "text": USER_INSTRUCTIONS},
        {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{encoded}"}},
    ]
    payload = _build_request(content, model)
    return _post_extraction(payload, api_key, client)
