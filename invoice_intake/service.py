"""
Invoice Intake Service.

The facade callers use: upload handlers, the job runner, review
actions and maintenance operations all go through InvoiceIntakeService.

Usage:
    from invoice_intake.service import InvoiceIntakeService

    service = InvoiceIntakeService.from_config()
    invoice = service.upload(content, "facture.pdf")
    service.run_jobs(max_jobs=10)
    print(service.get_status(invoice.id))
"""

import threading
from typing import Any, Dict, Iterable, List, Optional, Union

from config import get_config
from invoice_intake.enums import InvoiceCompany, InvoiceStatus
from invoice_intake.extraction.extractor import InvoiceFieldExtractor
from invoice_intake.extraction.normalizers import parse_extracted_date
from invoice_intake.job_queue.queue import OcrJobQueue
from invoice_intake.ocr_engine.engine import OCREngine
from invoice_intake.postprocessor.confidence import is_vat_consistent
from invoice_intake.postprocessor.processor import PostProcessor
from invoice_intake.postprocessor.validators import is_valid_iban, is_valid_siret
from invoice_intake.storage.database import DatabaseHandler
from invoice_intake.storage.document_store import DocumentStore
from invoice_intake.storage.models import Invoice
from invoice_intake.storage.repository import InvoiceRepository, VendorDirectory
from invoice_intake.utils.exceptions import InvoiceIntakeError
from invoice_intake.utils.helpers import clamp, format_file_size
from invoice_intake.utils.logger import get_logger
from invoice_intake.worker.pipeline import InvoiceOcrPipeline
from invoice_intake.worker.worker import OcrWorker

# Initialize module logger
logger = get_logger(__name__)

RUNNER_WORKER_ID = "api-runner"
UPLOAD_WORKER_ID = "web"

# Fields the backfill may fill, by ExtractionResult name.
BACKFILL_FIELDS = (
    'vendor', 'amount', 'vat_amount', 'date', 'invoice_number',
    'iban', 'email', 'phone', 'siret', 'address',
)


class InvoiceIntakeService:
    """
    Entry point for every invoice intake operation.

    Attributes:
        database: DatabaseHandler
        repository: InvoiceRepository
        vendor_directory: VendorDirectory
        document_store: DocumentStore
        queue: OcrJobQueue
        extractor: InvoiceFieldExtractor
        post_processor: PostProcessor

    Example:
        >>> service = InvoiceIntakeService.from_config()
        >>> service.run_jobs()
        3
    """

    def __init__(
        self,
        database: DatabaseHandler,
        document_store: DocumentStore,
        ocr_engine: Optional[OCREngine] = None,
        queue: Optional[OcrJobQueue] = None,
        extractor: Optional[InvoiceFieldExtractor] = None,
        post_processor: Optional[PostProcessor] = None,
        batch_lock: Optional[threading.Lock] = None,
    ):
        """
        Wire the service.

        Args:
            database: Record store connection.
            document_store: File storage for uploads.
            ocr_engine: OCR collaborator; created from configuration on
                first use when omitted.
            queue: Job queue; defaults to one over ``database``.
            extractor: Field extractor.
            post_processor: Validation/classification/gate step.
            batch_lock: Lock shared by batches of this service.
        """
        self.database = database
        self.document_store = document_store
        self.repository = InvoiceRepository(database)
        self.vendor_directory = VendorDirectory(database)
        self.queue = queue or OcrJobQueue(database)
        self.extractor = extractor or InvoiceFieldExtractor()
        self.post_processor = post_processor or PostProcessor()

        self._ocr_engine = ocr_engine
        self._batch_lock = batch_lock or threading.Lock()
        self._worker: Optional[OcrWorker] = None
        self._worker_init_lock = threading.Lock()

    @classmethod
    def from_config(cls, db_url: Optional[str] = None) -> 'InvoiceIntakeService':
        """Build a service from settings.yaml."""
        return cls(
            database=DatabaseHandler(db_url),
            document_store=DocumentStore(),
        )

    @property
    def worker(self) -> OcrWorker:
        """OCR worker, built on first use so that commands without OCR never start an engine."""
        with self._worker_init_lock:
            if self._worker is None:
                if self._ocr_engine is None:
                    self._ocr_engine = OCREngine()
                pipeline = InvoiceOcrPipeline(
                    repository=self.repository,
                    document_store=self.document_store,
                    ocr_engine=self._ocr_engine,
                    extractor=self.extractor,
                    post_processor=self.post_processor,
                    vendor_directory=self.vendor_directory,
                )
                self._worker = OcrWorker(self.queue, pipeline, self.repository, self._batch_lock)
            return self._worker

    # ------------------------------------------------------------------
    # Intake and processing
    # ------------------------------------------------------------------

    def upload(
        self,
        content: bytes,
        original_name: str,
        mime_type: Optional[str] = None,
        cabinet_id: Optional[str] = None,
        process_now: bool = True,
    ) -> Invoice:
        """
        Store a document, create its invoice and enqueue OCR.

        Args:
            content: Document bytes.
            original_name: Name of the uploaded file.
            mime_type: MIME type; guessed from the name when omitted.
            cabinet_id: Owning cabinet.
            process_now: Start a small background batch right away. If the
                OCR engine cannot start, the job simply stays queued.

        Returns:
            The created invoice, in PROCESSING.

        Raises:
            UnsupportedFileTypeError: If the extension is not allowed.
        """
        filename = self.document_store.save(content, original_name)
        invoice = self.repository.create(
            filename=filename,
            original_name=original_name,
            mime_type=mime_type or self.document_store.guess_mime_type(original_name),
            size=len(content),
            cabinet_id=cabinet_id,
        )
        self.queue.enqueue(invoice.id)
        logger.info(f"Uploaded {original_name!r} ({format_file_size(len(content))}) as invoice {invoice.id}")

        if process_now:
            try:
                self.worker.trigger_in_background(
                    UPLOAD_WORKER_ID, get_config("worker.upload_batch_size", 3)
                )
            except InvoiceIntakeError as e:
                logger.warning(f"Invoice {invoice.id} stays queued, immediate processing unavailable: {e}")
        return invoice

    def run_jobs(self, max_jobs: Optional[int] = None) -> int:
        """
        Process queued jobs on demand.

        Args:
            max_jobs: Clamped into [1, ``worker.runner_max_jobs``];
                defaults to ``worker.runner_default_jobs``.

        Returns:
            Number of jobs processed.
        """
        if max_jobs is None:
            max_jobs = get_config("worker.runner_default_jobs", 10)
        max_jobs = clamp(int(max_jobs), 1, get_config("worker.runner_max_jobs", 50))
        return self.worker.run_batch(RUNNER_WORKER_ID, max_jobs)

    def enqueue(self, invoice_id: str, priority: int = 0) -> Optional[str]:
        """Enqueue OCR for an existing invoice; None when a live job exists."""
        self.repository.get(invoice_id)
        return self.queue.enqueue(invoice_id, priority)

    def retry(self, invoice_id: str, priority: int = 0) -> Optional[str]:
        """
        Manually re-enqueue an invoice, typically one in ERROR.

        The invoice goes back to PROCESSING before the job is enqueued.

        Raises:
            InvoiceNotFoundError: If no invoice has this id.
            InvalidStatusTransitionError: If the invoice is VALIDATED.
        """
        if self.repository.get_status(invoice_id) != InvoiceStatus.PROCESSING:
            self.repository.set_status(invoice_id, InvoiceStatus.PROCESSING)
        job_id = self.queue.enqueue(invoice_id, priority)
        logger.info(f"Retry requested for invoice {invoice_id} (job {job_id})")
        return job_id

    def sweep_expired_leases(self, timeout_seconds: Optional[int] = None) -> Dict[str, int]:
        """
        Recover jobs whose worker died mid-run.

        Returns:
            Counts of requeued jobs and of invoices moved to ERROR.
        """
        requeued, failed_invoice_ids = self.queue.release_expired_leases(timeout_seconds)
        errored = sum(1 for invoice_id in failed_invoice_ids if self.repository.mark_error(invoice_id))
        return {'requeued': requeued, 'errored': errored}

    # ------------------------------------------------------------------
    # Review actions
    # ------------------------------------------------------------------

    def get_status(self, invoice_id: str) -> Dict[str, Any]:
        invoice = self.repository.get(invoice_id)
        return {
            'id': invoice.id,
            'status': invoice.status.value,
            'confidence': invoice.confidence,
            'company': invoice.company.value,
            'updated_at': invoice.updated_at.isoformat() if invoice.updated_at else None,
        }

    def validate(self, invoice_ids: Union[str, Iterable[str]]) -> Dict[str, List[str]]:
        """
        Validate one or many invoices.

        A single id raises when the invoice cannot be validated; a list
        skips those invoices and reports them.

        Raises:
            InvalidStatusTransitionError: Single id not in TO_PROCESS or
                PROCESSED.
            InvoiceNotFoundError: Single id that does not exist.
        """
        if isinstance(invoice_ids, str):
            self.repository.set_status(invoice_ids, InvoiceStatus.VALIDATED)
            return {'validated': [invoice_ids], 'skipped': []}

        validated, skipped = self.repository.validate(invoice_ids)
        return {'validated': validated, 'skipped': skipped}

    def categorize(self, invoice_ids: Iterable[str], category: Optional[str]) -> int:
        return self.repository.categorize(invoice_ids, category)

    def update_fields(self, invoice_id: str, **fields: Any) -> Invoice:
        return self.repository.update_fields(invoice_id, **fields)

    def delete(self, invoice_ids: Iterable[str]) -> int:
        """Delete invoices, then their files (best effort). Returns the number deleted."""
        filenames = self.repository.delete(invoice_ids)
        for filename in filenames:
            self.document_store.delete(filename)
        return len(filenames)

    def list_unclassified(self) -> List[Invoice]:
        return self.repository.list_unclassified()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def enhance(self) -> int:
        """
        Backfill empty fields from stored OCR text.

        Only empty fields are written. IBAN and SIRET are kept only when
        valid, VAT only when consistent with the amount.

        Returns:
            Number of invoices updated.
        """
        updated = 0
        for invoice in self.repository.list_with_ocr_text():
            existing = {name: getattr(invoice, name) for name in BACKFILL_FIELDS}
            found = self.extractor.extract_missing_fields(invoice.ocr_text, existing)
            found = self._acceptable_backfill(found, existing)
            if not found:
                continue

            self.repository.update_fields(invoice.id, **found)
            updated += 1
            logger.debug(f"Backfilled {sorted(found)} on invoice {invoice.id}")

        logger.info(f"Backfill updated {updated} invoice(s)")
        return updated

    @staticmethod
    def _acceptable_backfill(found: Dict[str, Any], existing: Dict[str, Any]) -> Dict[str, Any]:
        accepted = dict(found)

        if 'iban' in accepted and not is_valid_iban(accepted['iban']):
            del accepted['iban']
        if 'siret' in accepted and not is_valid_siret(accepted['siret']):
            del accepted['siret']
        if 'vat_amount' in accepted:
            amount = accepted.get('amount', existing.get('amount'))
            if not is_vat_consistent(amount, accepted['vat_amount']):
                del accepted['vat_amount']
        if 'date' in accepted:
            parsed = parse_extracted_date(accepted['date'])
            if parsed is None:
                del accepted['date']
            else:
                accepted['date'] = parsed

        return accepted

    def resync_companies(self) -> int:
        """
        Re-run classification on classified invoices.

        Invoices whose detected company differs from the stored one are
        moved; a detection of UNKNOWN never overrides a known company.

        Returns:
            Number of invoices moved.
        """
        classifier = self.post_processor.classifier
        changes = 0
        for invoice in self.repository.list_with_ocr_text(known_company_only=True):
            detected = classifier.classify(invoice.vendor, invoice.ocr_text)
            if detected == InvoiceCompany.UNKNOWN or detected == invoice.company:
                continue
            self.repository.update_fields(invoice.id, company=detected)
            logger.info(f"Invoice {invoice.id} moved from {invoice.company.value} to {detected.value}")
            changes += 1
        return changes
