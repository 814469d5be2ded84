"""Tests for the command-line entry point."""

import pytest

from invoice_intake import service as service_module
from invoice_intake.service import InvoiceIntakeService
from invoice_intake.utils.exceptions import OCREngineNotAvailableError
from main import parse_arguments, run_command


def test_parse_global_options_and_command():
    args = parse_arguments(["--debug", "-c", "custom.yaml", "run-jobs", "--max-jobs", "7"])

    assert args.debug is True
    assert args.config == "custom.yaml"
    assert args.command == "run-jobs"
    assert args.max_jobs == 7


def test_command_is_required():
    with pytest.raises(SystemExit):
        parse_arguments([])


def test_upload_then_status(service, tmp_path):
    document = tmp_path / "facture.pdf"
    document.write_bytes(b"%PDF-1.4")

    uploaded = run_command(service, parse_arguments(["upload", str(document)]))

    assert uploaded["processed"] == 1
    [entry] = uploaded["uploaded"]
    assert entry["file"] == "facture.pdf"

    status = run_command(service, parse_arguments(["status", entry["id"]]))
    assert status["status"] == "PROCESSED"


def test_upload_without_processing(service, tmp_path):
    document = tmp_path / "scan.png"
    document.write_bytes(b"png")

    result = run_command(service, parse_arguments(["upload", "--no-process", str(document)]))

    assert result["processed"] == 0
    assert service.queue.pending_count() == 1


def test_validate_and_sweep(service, tmp_path):
    document = tmp_path / "facture.pdf"
    document.write_bytes(b"%PDF-1.4")
    invoice_id = run_command(service, parse_arguments(["upload", str(document)]))["uploaded"][0]["id"]

    result = run_command(service, parse_arguments(["validate", invoice_id, "unknown-id"]))

    assert result == {"validated": [invoice_id], "skipped": ["unknown-id"]}
    assert run_command(service, parse_arguments(["sweep"])) == {"requeued": 0, "errored": 0}


def test_upload_keeps_files_queued_when_ocr_is_unavailable(database, document_store, tmp_path, monkeypatch):
    def engine_that_cannot_start():
        raise OCREngineNotAvailableError("ocr_space (no API key configured)")

    monkeypatch.setattr(service_module, "OCREngine", engine_that_cannot_start)
    intake = InvoiceIntakeService(database, document_store)
    document = tmp_path / "facture.pdf"
    document.write_bytes(b"%PDF-1.4")

    result = run_command(intake, parse_arguments(["upload", str(document)]))

    assert result["processed"] == 0
    assert "no API key" in result["processing_error"]
    assert len(result["uploaded"]) == 1
    assert intake.queue.pending_count() == 1
