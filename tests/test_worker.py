"""Tests for the OCR worker loop and pipeline."""

from invoice_intake.enums import InvoiceCompany, InvoiceStatus, JobStatus
from invoice_intake.job_queue.queue import compute_backoff
from invoice_intake.storage.repository import VendorDirectory
from invoice_intake.utils.exceptions import JobClaimContentionError

from conftest import FakeOcr


def upload(service, name="facture.pdf", cabinet_id=None):
    return service.upload(b"%PDF-1.4 fake", name, cabinet_id=cabinet_id, process_now=False)


def test_successful_job_updates_invoice(service, repository, database, fake_ocr):
    invoice = upload(service)

    assert service.run_jobs(5) == 1

    stored = repository.get(invoice.id)
    assert stored.status == InvoiceStatus.PROCESSED
    assert stored.vendor == "SOFIANE TRANSPORT SARL"
    assert stored.amount == 150.0
    assert stored.date.isoformat() == "2024-03-14"
    assert stored.company == InvoiceCompany.SOFIANE_TRANSPORT
    assert stored.confidence == 100
    assert stored.ocr_data["reviewRequired"] is False
    assert stored.ocr_text.startswith("SOFIANE TRANSPORT SARL Facture")
    assert fake_ocr.calls == ["facture.pdf"]

    [job] = service.queue.jobs_for_invoice(invoice.id)
    assert job.status == JobStatus.DONE

    contact = VendorDirectory(database).get("SOFIANE TRANSPORT SARL", "default-cabinet")
    assert contact is not None


def test_low_confidence_goes_to_review(service, repository, fake_ocr):
    fake_ocr.text = "Boulangerie Martin\nArticles divers 45,50 €"
    invoice = upload(service)

    service.run_jobs(1)

    stored = repository.get(invoice.id)
    assert stored.status == InvoiceStatus.TO_PROCESS
    assert stored.ocr_data["reviewRequired"] is True


def test_ocr_failure_is_retried_then_marks_error(service, repository, fake_ocr, clock):
    fake_ocr.success = False
    fake_ocr.error = "HTTP Error 503"
    invoice = upload(service)

    for attempt in range(1, 4):
        assert service.run_jobs(10) == 1
        clock.advance(compute_backoff(attempt))
        if attempt < 3:
            assert repository.get_status(invoice.id) == InvoiceStatus.PROCESSING

    assert repository.get_status(invoice.id) == InvoiceStatus.ERROR
    [job] = service.queue.jobs_for_invoice(invoice.id)
    assert job.status == JobStatus.FAILED
    assert job.attempts == 3
    assert "HTTP Error 503" in job.last_error
    assert service.run_jobs(10) == 0


def test_empty_ocr_text_is_a_failure(service, fake_ocr):
    fake_ocr.text = "   "
    invoice = upload(service)

    service.run_jobs(1)

    [job] = service.queue.jobs_for_invoice(invoice.id)
    assert job.status == JobStatus.PENDING
    assert "no text" in job.last_error


def test_unexpected_exception_does_not_stop_the_batch(database, document_store, clock):
    from invoice_intake.job_queue.queue import OcrJobQueue
    from invoice_intake.service import InvoiceIntakeService

    service = InvoiceIntakeService(
        database=database,
        document_store=document_store,
        ocr_engine=FakeOcr(raises=RuntimeError("segfault in backend")),
        queue=OcrJobQueue(database, clock=clock),
    )
    first, second = upload(service, "a.pdf"), upload(service, "b.pdf")

    assert service.run_jobs(10) == 2

    for invoice in (first, second):
        [job] = service.queue.jobs_for_invoice(invoice.id)
        assert job.status == JobStatus.PENDING
        assert job.last_error == "RuntimeError: segfault in backend"


def test_missing_document_is_retried(service, document_store):
    invoice = upload(service)
    document_store.delete(invoice.filename)

    service.run_jobs(1)

    [job] = service.queue.jobs_for_invoice(invoice.id)
    assert job.status == JobStatus.PENDING
    assert "Document not found" in job.last_error


def test_batch_in_flight_makes_run_batch_a_no_op(service):
    upload(service)
    worker = service.worker

    assert worker.batch_lock.acquire(blocking=False)
    try:
        assert worker.run_batch("second-runner", 5) == 0
    finally:
        worker.batch_lock.release()

    assert worker.run_batch("second-runner", 5) == 1


def test_batch_stops_at_max_jobs(service):
    for name in ("a.pdf", "b.pdf", "c.pdf"):
        upload(service, name)

    assert service.worker.run_batch("runner", 2) == 2
    assert service.queue.pending_count() == 1


def test_background_trigger_processes_jobs(service, repository):
    invoice = upload(service)

    thread = service.worker.trigger_in_background("web", 3)
    thread.join(timeout=10)

    assert repository.get_status(invoice.id) == InvoiceStatus.PROCESSED


def test_vendor_contact_uses_invoice_cabinet(service, database, fake_ocr):
    fake_ocr.text = "SOFIANE TRANSPORT SARL\ncontact@sofiane.fr\nTOTAL TTC 150,00 €"
    upload(service, cabinet_id="cab-42")

    service.run_jobs(1)

    contact = VendorDirectory(database).get("SOFIANE TRANSPORT SARL", "cab-42")
    assert contact.email == "contact@sofiane.fr"


def test_lost_claim_races_do_not_end_the_batch(service, monkeypatch):
    upload(service)
    upload(service, "second.pdf")
    claim_next = service.queue.claim_next
    contended = []

    def contended_once(worker_id):
        if not contended:
            contended.append(worker_id)
            raise JobClaimContentionError(worker_id, 5)
        return claim_next(worker_id)

    monkeypatch.setattr(service.queue, "claim_next", contended_once)

    assert service.run_jobs(3) == 2
    assert contended == ["api-runner"]
