"""
Main Post-Processor Module.

This module provides the PostProcessor class that turns a raw
extraction result into what is persisted on the invoice record.

Operations:
    - Parse the extracted date
    - Classify the company
    - Score fields and decide review routing
    - Null identifiers that fail validation
    - Pick the resulting invoice status
"""

from copy import deepcopy
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional

from invoice_intake.enums import InvoiceCompany, InvoiceStatus
from invoice_intake.extraction.extraction_result import ExtractionResult
from invoice_intake.extraction.normalizers import DateNormalizer
from invoice_intake.utils.logger import get_logger

from .classifier import CompanyClassifier
from .confidence import ConfidenceGate, GateDecision

# Initialize module logger
logger = get_logger(__name__)


@dataclass
class ProcessingOutcome:
    """
    Everything the pipeline writes back for one successful OCR pass.

    Attributes:
        fields: Extraction result with invalid IBAN/SIRET/VAT nulled
        parsed_date: Extracted date as a ``date``
        company: Classified company
        decision: Confidence gate decision
        status: TO_PROCESS when review is required, else PROCESSED
    """
    fields: ExtractionResult
    parsed_date: Optional[date]
    company: InvoiceCompany
    decision: GateDecision
    status: InvoiceStatus

    @property
    def ocr_data(self) -> Dict[str, Any]:
        """Auxiliary data stored alongside the record."""
        return {
            'reviewRequired': self.decision.review_required,
            'fieldConfidence': dict(self.decision.field_confidence),
        }


class PostProcessor:
    """
    Post-processor for invoice extraction results.

    Example:
        >>> processor = PostProcessor()
        >>> outcome = processor.process(extraction, normalized_text)
        >>> outcome.status
        <InvoiceStatus.PROCESSED: 'PROCESSED'>
    """

    def __init__(
        self,
        classifier: Optional[CompanyClassifier] = None,
        gate: Optional[ConfidenceGate] = None,
    ) -> None:
        self.classifier = classifier or CompanyClassifier()
        self.gate = gate or ConfidenceGate()
        self.date_normalizer = DateNormalizer()

    def process(self, extraction: ExtractionResult, normalized_text: str) -> ProcessingOutcome:
        """
        Validate, classify and route an extraction result.

        The gate scores identifiers before they are nulled, so an invalid
        IBAN still counts against the invoice even though it is not stored.

        Args:
            extraction: Result from InvoiceFieldExtractor.
            normalized_text: Normalized OCR text used for classification.

        Returns:
            ProcessingOutcome ready to be persisted.
        """
        fields = deepcopy(extraction)

        parsed_date = self.date_normalizer.to_date(fields.date)
        company = self.classifier.classify(fields.vendor, normalized_text)
        decision = self.gate.evaluate(fields, normalized_text, parsed_date, company)

        if fields.iban and not decision.iban_valid:
            logger.debug(f"Dropping invalid IBAN {fields.iban!r}")
            fields.iban = None
        if fields.siret and not decision.siret_valid:
            logger.debug(f"Dropping invalid SIRET {fields.siret!r}")
            fields.siret = None
        if fields.vat_amount is not None and not decision.vat_consistent:
            logger.debug(f"Dropping VAT {fields.vat_amount} inconsistent with amount {fields.amount}")
            fields.vat_amount = None

        status = InvoiceStatus.TO_PROCESS if decision.review_required else InvoiceStatus.PROCESSED

        logger.info(
            f"Post-processed invoice: vendor={fields.vendor!r} company={company.value} "
            f"confidence={fields.confidence} status={status.value}"
        )
        return ProcessingOutcome(
            fields=fields,
            parsed_date=parsed_date,
            company=company,
            decision=decision,
            status=status,
        )
