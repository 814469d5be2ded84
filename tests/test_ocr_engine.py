"""Tests for the OCR collaborator and the OCR.space backend."""

import pytest
import requests

from invoice_intake.ocr_engine import ocr_space_backend
from invoice_intake.ocr_engine.engine import OCREngine
from invoice_intake.ocr_engine.ocr_result import OCRResult
from invoice_intake.ocr_engine.ocr_space_backend import OcrSpaceBackend
from invoice_intake.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError


@pytest.fixture
def backend():
    return OcrSpaceBackend(api_key="test-key")


def test_parsed_pages_are_joined(backend, monkeypatch, fake_response):
    captured = {}

    def fake_post(url, files, data, headers, timeout):
        captured.update(url=url, files=files, data=data, headers=headers)
        return fake_response({
            "IsErroredOnProcessing": False,
            "ParsedResults": [{"ParsedText": "Page 1"}, {"ParsedText": "Page 2"}],
        })

    monkeypatch.setattr(ocr_space_backend.requests, "post", fake_post)

    text, pages = backend.extract_text(b"%PDF", "facture.pdf")

    assert text == "Page 1\nPage 2"
    assert pages == 2
    assert captured["headers"] == {"apikey": "test-key"}
    assert captured["files"]["file"] == ("facture.pdf", b"%PDF", "application/pdf")
    assert captured["data"]["filetype"] == "PDF"
    assert captured["data"]["language"] == "fre"


def test_processing_error_is_raised(backend, monkeypatch, fake_response):
    monkeypatch.setattr(
        ocr_space_backend.requests, "post",
        lambda *args, **kwargs: fake_response({
            "IsErroredOnProcessing": True,
            "ErrorMessage": ["File failed validation"],
        }),
    )

    with pytest.raises(OCRProcessingError) as excinfo:
        backend.extract_text(b"img", "scan.png")
    assert "File failed validation" in str(excinfo.value)


def test_http_error_is_raised(backend, monkeypatch, fake_response):
    monkeypatch.setattr(
        ocr_space_backend.requests, "post",
        lambda *args, **kwargs: fake_response(status_code=403, text="Forbidden"),
    )

    with pytest.raises(OCRProcessingError) as excinfo:
        backend.extract_text(b"img", "scan.png")
    assert "HTTP Error 403" in str(excinfo.value)


def test_empty_results_are_an_empty_success(backend, monkeypatch, fake_response):
    monkeypatch.setattr(
        ocr_space_backend.requests, "post",
        lambda *args, **kwargs: fake_response({"ParsedResults": []}),
    )

    result = OCREngine(backend_instance=backend).run_ocr(b"img", "scan.jpg")

    assert result.success is True
    assert result.has_text is False
    assert result.engine == "ocr_space"


def test_engine_turns_transport_errors_into_failed_results(backend, monkeypatch):
    def refuse(*args, **kwargs):
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(ocr_space_backend.requests, "post", refuse)

    result = OCREngine(backend_instance=backend).run_ocr(b"img", "scan.jpg")

    assert result.success is False
    assert "connection refused" in result.error
    assert result.to_dict()["text_length"] == 0


def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("OCR_SPACE_API_KEY", raising=False)
    with pytest.raises(OCREngineNotAvailableError):
        OcrSpaceBackend()


def test_api_key_from_environment(monkeypatch):
    monkeypatch.setenv("OCR_SPACE_API_KEY", "env-key")
    assert OcrSpaceBackend().api_key == "env-key"


def test_ocr_result_helpers():
    failed = OCRResult.failure("boom", engine="tesseract")

    assert failed.success is False
    assert failed.has_text is False
    assert OCRResult(success=True, text=" FACTURE ").has_text is True


def png_bytes():
    from io import BytesIO

    from PIL import Image

    buffer = BytesIO()
    Image.new("L", (20, 10), color=255).save(buffer, format="PNG")
    return buffer.getvalue()


def test_tesseract_backend_reads_images(monkeypatch):
    from invoice_intake.ocr_engine import tesseract_backend

    calls = []

    def fake_image_to_string(image, lang, config):
        calls.append((image.mode, lang, config))
        return "FACTURE FA2024001"

    monkeypatch.setattr(tesseract_backend.pytesseract, "image_to_string", fake_image_to_string)
    backend = tesseract_backend.TesseractBackend(check_version=False)

    text, pages = backend.extract_text(png_bytes(), "scan.png")

    assert (text, pages) == ("FACTURE FA2024001", 1)
    assert calls == [("RGB", "fra", "--psm 3 --oem 3")]


def test_tesseract_backend_rejects_unreadable_bytes():
    from invoice_intake.ocr_engine.tesseract_backend import TesseractBackend

    result = OCREngine(backend_instance=TesseractBackend(check_version=False)).run_ocr(
        b"not an image", "scan.png"
    )

    assert result.success is False
    assert "Could not read document" in result.error
