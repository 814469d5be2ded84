"""Tests for the intake service: upload, review actions and maintenance."""

import pytest

from invoice_intake import service as service_module
from invoice_intake.enums import InvoiceCompany, InvoiceStatus
from invoice_intake.service import InvoiceIntakeService
from invoice_intake.utils.exceptions import (
    InvalidStatusTransitionError,
    InvoiceNotFoundError,
    OCREngineNotAvailableError,
    UnsupportedFileTypeError,
)


def processed_invoice(service):
    invoice = service.upload(b"%PDF-1.4", "facture.pdf", process_now=False)
    service.run_jobs(1)
    return invoice


def test_upload_stores_file_and_enqueues(service, document_store):
    invoice = service.upload(b"%PDF-1.4", "Facture Mars.PDF", process_now=False)

    assert invoice.status == InvoiceStatus.PROCESSING
    assert invoice.original_name == "Facture Mars.PDF"
    assert invoice.filename.endswith(".pdf")
    assert invoice.mime_type == "application/pdf"
    assert invoice.size == 8
    assert document_store.read(invoice.filename) == b"%PDF-1.4"
    assert service.queue.pending_count() == 1


def test_upload_rejects_unsupported_extension(service):
    with pytest.raises(UnsupportedFileTypeError):
        service.upload(b"data", "notes.docx", process_now=False)
    assert service.queue.pending_count() == 0


def test_run_jobs_clamps_max_jobs(service):
    for index in range(3):
        service.upload(b"%PDF", f"f{index}.pdf", process_now=False)

    assert service.run_jobs(0) == 1
    assert service.run_jobs(500) == 2


def test_get_status(service):
    invoice = processed_invoice(service)
    status = service.get_status(invoice.id)

    assert status["id"] == invoice.id
    assert status["status"] == "PROCESSED"
    assert status["company"] == "SOFIANE_TRANSPORT"
    assert status["confidence"] == 100
    assert status["updated_at"] is not None


def test_get_status_unknown_invoice(service):
    with pytest.raises(InvoiceNotFoundError):
        service.get_status("missing")


def test_validate_single_and_bulk(service):
    invoice = processed_invoice(service)
    pending = service.upload(b"%PDF", "pending.pdf", process_now=False)

    assert service.validate(invoice.id) == {"validated": [invoice.id], "skipped": []}
    with pytest.raises(InvalidStatusTransitionError):
        service.validate(invoice.id)

    result = service.validate([invoice.id, pending.id, "missing"])
    assert result == {"validated": [], "skipped": [invoice.id, pending.id, "missing"]}


def test_retry_after_error(service, repository, fake_ocr, clock):
    fake_ocr.success = False
    invoice = service.upload(b"%PDF", "facture.pdf", process_now=False)
    for _ in range(3):
        service.run_jobs(1)
        clock.advance(300)
    assert repository.get_status(invoice.id) == InvoiceStatus.ERROR

    fake_ocr.success = True
    job_id = service.retry(invoice.id)

    assert job_id is not None
    assert repository.get_status(invoice.id) == InvoiceStatus.PROCESSING
    assert service.run_jobs(1) == 1
    assert repository.get_status(invoice.id) == InvoiceStatus.PROCESSED


def test_retry_of_validated_invoice_is_rejected(service):
    invoice = processed_invoice(service)
    service.validate(invoice.id)

    with pytest.raises(InvalidStatusTransitionError):
        service.retry(invoice.id)


def test_sweep_expired_leases_marks_exhausted_invoices(service, repository, clock):
    retryable = service.upload(b"%PDF", "a.pdf", process_now=False)
    service.queue.max_attempts = 1
    exhausted = service.upload(b"%PDF", "b.pdf", process_now=False)
    for _ in range(2):
        service.queue.claim_next("crashed")

    clock.advance(700)
    counts = service.sweep_expired_leases(600)

    assert counts == {"requeued": 1, "errored": 1}
    assert repository.get_status(retryable.id) == InvoiceStatus.PROCESSING
    assert repository.get_status(exhausted.id) == InvoiceStatus.ERROR


def test_categorize_and_update_fields(service, repository):
    invoice = processed_invoice(service)

    assert service.categorize([invoice.id, "missing"], "transport") == 1
    service.update_fields(invoice.id, amount=175.5, date="2024-04-01", company="GARAGE_EXPERTISE")

    stored = repository.get(invoice.id)
    assert stored.category == "transport"
    assert stored.amount == 175.5
    assert stored.date.isoformat() == "2024-04-01"
    assert stored.company == InvoiceCompany.GARAGE_EXPERTISE

    with pytest.raises(ValueError):
        service.update_fields(invoice.id, status="VALIDATED")


def test_delete_removes_record_jobs_and_file(service, document_store, repository):
    invoice = processed_invoice(service)

    assert service.delete([invoice.id, "missing"]) == 1

    with pytest.raises(InvoiceNotFoundError):
        repository.get(invoice.id)
    assert service.queue.jobs_for_invoice(invoice.id) == []
    assert not (document_store.base_dir / invoice.filename).exists()


def test_list_unclassified(service, fake_ocr):
    classified = processed_invoice(service)
    fake_ocr.text = "Boulangerie Martin\nTotal TTC 12,00 €"
    unknown = processed_invoice(service)

    ids = [invoice.id for invoice in service.list_unclassified()]

    assert unknown.id in ids
    assert classified.id not in ids


def test_enhance_fills_only_empty_fields(service, repository, make_invoice):
    invoice = make_invoice()
    repository.apply_ocr_result(
        invoice.id,
        ocr_text="SOFIANE TRANSPORT SARL Facture N° FA2024001 TOTAL TTC 150,00 € Date: 14 mars 2024",
        fields={"amount": 99.0},
        confidence=20,
        company=InvoiceCompany.UNKNOWN,
        status=InvoiceStatus.TO_PROCESS,
        ocr_data={},
    )

    assert service.enhance() == 1

    stored = repository.get(invoice.id)
    assert stored.vendor == "SOFIANE TRANSPORT SARL"
    assert stored.invoice_number == "FA2024001"
    assert stored.amount == 99.0
    assert stored.date.isoformat() == "2024-03-14"
    assert service.enhance() == 0


def test_enhance_skips_invalid_identifiers(service, repository, make_invoice):
    invoice = make_invoice()
    repository.apply_ocr_result(
        invoice.id,
        ocr_text="SIRET 12345678901234",
        fields={"vendor": "Acme SARL", "amount": 10.0},
        confidence=50,
        company=InvoiceCompany.UNKNOWN,
        status=InvoiceStatus.TO_PROCESS,
        ocr_data={},
    )

    service.enhance()

    assert repository.get(invoice.id).siret is None


def test_resync_companies_moves_misclassified_invoices(service, repository, make_invoice):
    moved, kept = make_invoice("a.pdf"), make_invoice("b.pdf")
    for invoice, vendor in ((moved, "SOFIANE TRANSPORT SARL"), (kept, "Acme SARL")):
        repository.apply_ocr_result(
            invoice.id,
            ocr_text=f"{vendor} TOTAL TTC 10,00 €",
            fields={"vendor": vendor},
            confidence=60,
            company=InvoiceCompany.GARAGE_EXPERTISE,
            status=InvoiceStatus.TO_PROCESS,
            ocr_data={},
        )

    assert service.resync_companies() == 1

    assert repository.get(moved.id).company == InvoiceCompany.SOFIANE_TRANSPORT
    assert repository.get(kept.id).company == InvoiceCompany.GARAGE_EXPERTISE


def engine_that_cannot_start():
    raise OCREngineNotAvailableError("tesseract (not installed or not in PATH)")


def test_upload_succeeds_when_ocr_engine_cannot_start(database, document_store, monkeypatch):
    monkeypatch.setattr(service_module, "OCREngine", engine_that_cannot_start)
    intake = InvoiceIntakeService(database, document_store)

    invoice = intake.upload(b"%PDF-1.4", "facture.pdf")

    assert invoice.status == InvoiceStatus.PROCESSING
    assert intake.queue.pending_count() == 1
    assert intake.repository.get(invoice.id).status == InvoiceStatus.PROCESSING
    assert document_store.read(invoice.filename) == b"%PDF-1.4"
