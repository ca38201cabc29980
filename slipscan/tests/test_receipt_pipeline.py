import json
from decimal import Decimal
from pathlib import Path

import httpx
import pytest

from slipscan.runtime import get_paths
from slipscan.runtime.receipt_pipeline import (
    OPENAI_API_URL,
    ExtractionNotConfigured,
    ExtractionServiceError,
    OCRServiceUnavailable,
    call_ocr_service,
    extract_receipt_from_image,
    extract_receipt_from_text,
    get_openai_api_key,
    save_ocr_text,
)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def _chat_response(content: object) -> httpx.Response:
    return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})


@pytest.fixture
def image_path(tmp_path: Path) -> Path:
    path = tmp_path / "receipt.jpg"
    path.write_bytes(b"\xff\xd8fake-jpeg")
    return path


def test_ocr_service_text_response(image_path: Path) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"text": "  MILK 3.00\n"})

    assert call_ocr_service(image_path, "http://ocr.test/", client=_client(handler)) == "MILK 3.00"
    assert seen == ["http://ocr.test/ocr"]


def test_ocr_service_detections_response(image_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"detections": [[[0, 0, 1, 1], ["MILK", 0.9]], ["malformed"], [[0, 1, 1, 2], ["3.00", 0.8]]]},
        )

    assert call_ocr_service(image_path, "http://ocr.test", client=_client(handler)) == "MILK\n3.00"


def test_ocr_service_error_status_is_unavailable(image_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    with pytest.raises(OCRServiceUnavailable, match="503"):
        call_ocr_service(image_path, "http://ocr.test", client=_client(handler))


def test_ocr_service_connection_error_is_unavailable(image_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(OCRServiceUnavailable, match="connect"):
        call_ocr_service(image_path, "http://ocr.test", client=_client(handler))


def test_text_extraction_request_and_result() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return _chat_response(
            json.dumps(
                {
                    "items": [{"name": "Milk", "qty": 2, "price": 1.5, "line_total": 3.0}],
                    "merchant": "Metro",
                    "purchase_datetime": None,
                    "subtotal": None,
                    "tax": None,
                    "total": 3.0,
                }
            )
        )

    data = extract_receipt_from_text("MILK 3.00", "sk-test", model="test-model", client=_client(handler))

    assert captured["url"] == OPENAI_API_URL
    assert captured["auth"] == "Bearer sk-test"
    body = captured["body"]
    assert isinstance(body, dict)
    assert body["model"] == "test-model"
    assert body["temperature"] == 0
    assert body["response_format"]["json_schema"]["strict"] is True
    assert body["messages"][1]["content"].endswith("MILK 3.00")
    assert data.merchant == "Metro"
    assert data.total == Decimal("3.0")
    assert [item.name for item in data.items] == ["Milk"]


def test_image_extraction_sends_data_url() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        return _chat_response(None)

    data = extract_receipt_from_image(b"abc", "sk-test", client=_client(handler))

    body = captured["body"]
    assert isinstance(body, dict)
    image_part = body["messages"][1]["content"][1]
    assert image_part["image_url"]["url"] == "data:image/jpeg;base64,YWJj"
    assert data.items == []


def test_extraction_error_status_raises() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="bad key")

    with pytest.raises(ExtractionServiceError) as excinfo:
        extract_receipt_from_text("MILK 3.00", "sk-test", client=_client(handler))

    assert excinfo.value.status_code == 401
    assert "bad key" in str(excinfo.value)


def test_extraction_non_json_content_gives_empty_result() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return _chat_response("Sorry, I cannot read this receipt.")

    data = extract_receipt_from_text("???", "sk-test", client=_client(handler))

    assert data.items == []
    assert not data.has_receipt_fields()


def test_extraction_without_key_is_not_configured() -> None:
    with pytest.raises(ExtractionNotConfigured):
        extract_receipt_from_text("MILK 3.00", "")


def test_api_key_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    assert get_openai_api_key() is None
    monkeypatch.setenv("SLIPSCAN_OPENAI_API_KEY", "  sk-env  ")
    assert get_openai_api_key() == "sk-env"


def test_save_ocr_text_writes_under_project_data() -> None:
    path = save_ocr_text("MILK 3.00", Path("/photos/receipt_1.jpg"))

    assert path == get_paths().ocr_text / "receipt_1.txt"
    assert path.read_text(encoding="utf-8") == "MILK 3.00"
