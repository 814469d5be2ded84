"""
Confidence Gate Module.

Decides whether an extracted invoice can be accepted automatically or
must be reviewed by a human. The decision combines the extractor's
overall confidence, the presence of the critical fields and the
validity of the checksum-bearing identifiers.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from config import get_config
from invoice_intake.enums import InvoiceCompany
from invoice_intake.extraction.extraction_result import ExtractionResult
from invoice_intake.utils.logger import get_logger

from .validators import is_valid_iban, is_valid_siret

# Initialize module logger
logger = get_logger(__name__)

PRESENT_SCORE = 85
NUMBER_SCORE = 80
VALID_ID_SCORE = 95
INVALID_SCORE = 20
CONSISTENT_VAT_SCORE = 80

CRITICAL_FIELDS = ('vendor', 'amount', 'date', 'invoiceNumber')


@dataclass
class GateDecision:
    """
    Result of the confidence gate.

    Attributes:
        field_confidence: Sub-score per field (camelCase keys, as stored
            in the invoice's ``ocr_data``), plus ``textLength``
        review_required: True when a human must check the invoice
        reasons: Why review is required, empty otherwise
    """
    field_confidence: Dict[str, Any]
    review_required: bool
    reasons: List[str] = field(default_factory=list)

    @property
    def iban_valid(self) -> bool:
        return self.field_confidence.get('iban') == VALID_ID_SCORE

    @property
    def siret_valid(self) -> bool:
        return self.field_confidence.get('siret') == VALID_ID_SCORE

    @property
    def vat_consistent(self) -> bool:
        return self.field_confidence.get('vatAmount') == CONSISTENT_VAT_SCORE


def is_vat_consistent(amount: Optional[float], vat_amount: Optional[float]) -> bool:
    """True if 0 <= vat_amount <= amount with a positive amount."""
    if vat_amount is None or amount is None or amount <= 0:
        return False
    return 0 <= vat_amount <= amount


class ConfidenceGate:
    """
    Review-routing decision for extracted invoices.

    Example:
        >>> gate = ConfidenceGate()
        >>> decision = gate.evaluate(result, normalized_text, parsed_date)
        >>> decision.review_required
        False
    """

    def __init__(
        self,
        review_threshold: Optional[int] = None,
        critical_threshold: Optional[int] = None,
    ):
        self.review_threshold = (
            review_threshold if review_threshold is not None
            else get_config("review.confidence_threshold", 80)
        )
        self.critical_threshold = (
            critical_threshold if critical_threshold is not None
            else get_config("review.critical_field_threshold", 70)
        )

    def field_confidence(
        self,
        result: ExtractionResult,
        normalized_text: str,
        parsed_date: Optional[date],
        company: InvoiceCompany = InvoiceCompany.UNKNOWN,
    ) -> Dict[str, Any]:
        """
        Compute per-field sub-scores.

        Returns:
            Mapping with vendor, amount, date, invoiceNumber, company
            (0 or a fixed score), iban, siret, vatAmount (None when
            absent, else a valid/invalid score) and textLength.
        """
        amount_ok = result.amount is not None and result.amount > 0

        scores: Dict[str, Any] = {
            'vendor': PRESENT_SCORE if result.vendor else 0,
            'amount': PRESENT_SCORE if amount_ok else 0,
            'date': PRESENT_SCORE if parsed_date else 0,
            'invoiceNumber': NUMBER_SCORE if result.invoice_number else 0,
            'company': NUMBER_SCORE if company != InvoiceCompany.UNKNOWN else 0,
            'iban': None,
            'siret': None,
            'vatAmount': None,
            'textLength': len(normalized_text or ""),
        }

        if result.iban:
            scores['iban'] = VALID_ID_SCORE if is_valid_iban(result.iban) else INVALID_SCORE
        if result.siret:
            scores['siret'] = VALID_ID_SCORE if is_valid_siret(result.siret) else INVALID_SCORE
        if result.vat_amount is not None:
            consistent = is_vat_consistent(result.amount, result.vat_amount)
            scores['vatAmount'] = CONSISTENT_VAT_SCORE if consistent else INVALID_SCORE

        return scores

    def evaluate(
        self,
        result: ExtractionResult,
        normalized_text: str,
        parsed_date: Optional[date],
        company: InvoiceCompany = InvoiceCompany.UNKNOWN,
    ) -> GateDecision:
        """
        Decide whether the invoice needs human review.

        Args:
            result: Extraction result, before invalid values are nulled.
            normalized_text: Normalized OCR text.
            parsed_date: The extracted date parsed to a ``date``, or None.
            company: Classification of the invoice.

        Returns:
            GateDecision with sub-scores and the review flag.
        """
        scores = self.field_confidence(result, normalized_text, parsed_date, company)
        reasons = []

        if result.confidence < self.review_threshold:
            reasons.append(f"confidence {result.confidence} below {self.review_threshold}")

        has_critical_fields = bool(
            result.vendor and result.amount and parsed_date and result.invoice_number
        )
        if not has_critical_fields:
            reasons.append("missing critical fields")

        for name in CRITICAL_FIELDS:
            if scores[name] < self.critical_threshold:
                reasons.append(f"{name} score {scores[name]} below {self.critical_threshold}")

        if scores['iban'] == INVALID_SCORE:
            reasons.append("invalid IBAN")
        if scores['siret'] == INVALID_SCORE:
            reasons.append("invalid SIRET")
        if scores['vatAmount'] == INVALID_SCORE:
            reasons.append("VAT inconsistent with amount")

        decision = GateDecision(
            field_confidence=scores,
            review_required=bool(reasons),
            reasons=reasons,
        )
        logger.debug(f"Gate decision: review={decision.review_required} reasons={reasons}")
        return decision
