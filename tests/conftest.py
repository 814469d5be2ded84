"""Shared fixtures: a throwaway SQLite database, a controllable clock and fake OCR."""

import os
import sys
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from invoice_intake.job_queue.queue import OcrJobQueue
from invoice_intake.ocr_engine.ocr_result import OCRResult
from invoice_intake.service import InvoiceIntakeService
from invoice_intake.storage.database import DatabaseHandler
from invoice_intake.storage.document_store import DocumentStore
from invoice_intake.storage.repository import InvoiceRepository

SOFIANE_INVOICE_TEXT = (
    "SOFIANE TRANSPORT SARL\n"
    "Facture N° FA2024001\n"
    "TOTAL TTC 150,00 €\n"
    "Date: 14 mars 2024"
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 3, 14, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class FakeOcr:
    """OCR collaborator returning a canned result and counting calls."""

    def __init__(self, text=SOFIANE_INVOICE_TEXT, success=True, error=None, raises=None):
        self.text = text
        self.success = success
        self.error = error
        self.raises = raises
        self.calls = []

    def run_ocr(self, content, filename):
        self.calls.append(filename)
        if self.raises is not None:
            raise self.raises
        if not self.success:
            return OCRResult.failure(self.error or "service unavailable", engine="fake")
        return OCRResult(success=True, text=self.text, page_count=1, engine="fake")


@pytest.fixture
def database(tmp_path):
    db = DatabaseHandler(f"sqlite:///{tmp_path / 'intake.db'}")
    yield db
    db.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def repository(database):
    return InvoiceRepository(database)


@pytest.fixture
def document_store(tmp_path):
    return DocumentStore(tmp_path / "documents")


@pytest.fixture
def make_invoice(repository):
    def _make(original_name="facture.pdf", cabinet_id=None):
        return repository.create(
            filename=f"stored-{original_name}",
            original_name=original_name,
            mime_type="application/pdf",
            size=10,
            cabinet_id=cabinet_id,
        )
    return _make


@pytest.fixture
def fake_ocr():
    return FakeOcr()


@pytest.fixture
def service(database, document_store, fake_ocr, clock):
    return InvoiceIntakeService(
        database=database,
        document_store=document_store,
        ocr_engine=fake_ocr,
        queue=OcrJobQueue(database, clock=clock),
    )


@pytest.fixture
def fake_response():
    def _response(payload=None, status_code=200, text=""):
        return SimpleNamespace(
            ok=200 <= status_code < 400,
            status_code=status_code,
            text=text,
            json=lambda: payload,
        )
    return _response
