"""
Invoice OCR Pipeline.

One OCR pass over one invoice:

    document bytes -> OCR -> normalize -> extract -> validate/classify/gate
    -> invoice record update -> vendor directory upsert

The pipeline raises on any failure; deciding whether that failure is
retried belongs to the worker and the queue.
"""

from typing import Optional

from config import get_config
from invoice_intake.extraction.extractor import InvoiceFieldExtractor
from invoice_intake.ocr_engine.engine import OCREngine
from invoice_intake.postprocessor.processor import PostProcessor, ProcessingOutcome
from invoice_intake.storage.document_store import DocumentStore
from invoice_intake.storage.repository import InvoiceRepository, VendorDirectory
from invoice_intake.utils.exceptions import OCRProcessingError
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class InvoiceOcrPipeline:
    """
    Runs the full extraction pipeline for a single invoice.

    Attributes:
        repository: Invoice record store
        document_store: Source of the document bytes
        ocr_engine: OCR collaborator exposing ``run_ocr(content, filename)``
        extractor: Field extractor
        post_processor: Validation, classification and review routing
        vendor_directory: Optional vendor contact directory

    Example:
        >>> pipeline = InvoiceOcrPipeline(repository, store, OCREngine())
        >>> outcome = pipeline.process_invoice(invoice_id)
        >>> outcome.status
        <InvoiceStatus.PROCESSED: 'PROCESSED'>
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        document_store: DocumentStore,
        ocr_engine: OCREngine,
        extractor: Optional[InvoiceFieldExtractor] = None,
        post_processor: Optional[PostProcessor] = None,
        vendor_directory: Optional[VendorDirectory] = None,
        default_cabinet_id: Optional[str] = None,
    ):
        self.repository = repository
        self.document_store = document_store
        self.ocr_engine = ocr_engine
        self.extractor = extractor or InvoiceFieldExtractor()
        self.post_processor = post_processor or PostProcessor()
        self.vendor_directory = vendor_directory
        self.default_cabinet_id = default_cabinet_id or get_config("cabinet.default_id", "default-cabinet")

    def process_invoice(self, invoice_id: str) -> ProcessingOutcome:
        """
        OCR and extract one invoice, then persist the result.

        Args:
            invoice_id: Invoice to process; must be in PROCESSING.

        Returns:
            The ProcessingOutcome that was written.

        Raises:
            InvoiceNotFoundError: If the invoice does not exist.
            DocumentNotFoundError: If its file cannot be read.
            OCRProcessingError: If OCR failed or returned no text.
            InvalidStatusTransitionError: If the invoice left PROCESSING.
        """
        invoice = self.repository.get(invoice_id)
        content = self.document_store.read(invoice.filename)

        ocr_result = self.ocr_engine.run_ocr(content, invoice.original_name)
        if not ocr_result.success:
            raise OCRProcessingError(invoice.original_name, ocr_result.error or "OCR parsing failed")
        if not ocr_result.has_text:
            raise OCRProcessingError(invoice.original_name, "OCR returned no text")

        normalized_text = self.extractor.text_normalizer.normalize(ocr_result.text)
        extraction = self.extractor.extract(ocr_result.text)
        outcome = self.post_processor.process(extraction, normalized_text)

        if self.vendor_directory is not None and outcome.fields.vendor:
            self.vendor_directory.upsert(
                name=outcome.fields.vendor,
                cabinet_id=invoice.cabinet_id or self.default_cabinet_id,
                email=outcome.fields.email,
                phone=outcome.fields.phone,
                siret=outcome.fields.siret,
                address=outcome.fields.address,
            )

        fields = outcome.fields.fields
        fields['date'] = outcome.parsed_date

        self.repository.apply_ocr_result(
            invoice_id,
            ocr_text=normalized_text,
            fields=fields,
            confidence=outcome.fields.confidence,
            company=outcome.company,
            status=outcome.status,
            ocr_data=outcome.ocr_data,
        )
        logger.info(
            f"Invoice {invoice_id} processed: status={outcome.status.value} "
            f"confidence={outcome.fields.confidence} company={outcome.company.value}"
        )
        return outcome
