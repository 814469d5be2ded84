"""
Extraction Result Data Class.

This module defines the data structure produced by the field extractor:
the best-guess invoice fields plus the additive extraction confidence.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ExtractionResult:
    """
    Represents the result of heuristic invoice field extraction.

    Attributes:
        vendor: Issuer of the invoice ("Inconnu" when nothing matched)
        client_name: Billed-to party
        invoice_number: Invoice identifier
        amount: Total amount to pay
        vat_amount: VAT amount, always strictly below ``amount``
        date: Invoice date as ``YYYY-MM-DD``
        iban: Bank account as matched (not yet validated)
        email: First e-mail address in the document
        phone: Phone number as matched
        siret: 14-digit business registration number (not yet validated)
        address: Street address fragment
        confidence: Additive score clamped to [0, 100]
        matched_rules: Field name to the name of the rule that produced it

    Example:
        >>> result = ExtractionResult(vendor="SOFIANE TRANSPORT SARL", amount=150.0)
        >>> result.missing_fields[:2]
        ['client_name', 'invoice_number']
    """
    vendor: Optional[str] = None
    client_name: Optional[str] = None
    invoice_number: Optional[str] = None
    amount: Optional[float] = None
    vat_amount: Optional[float] = None
    date: Optional[str] = None
    iban: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    siret: Optional[str] = None
    address: Optional[str] = None

    confidence: int = 0
    matched_rules: Dict[str, str] = field(default_factory=dict)

    FIELD_NAMES = (
        'vendor', 'client_name', 'invoice_number', 'amount', 'vat_amount',
        'date', 'iban', 'email', 'phone', 'siret', 'address',
    )

    def add_points(self, points: int) -> None:
        """Add extraction points; the cap is applied by clamp_confidence()."""
        self.confidence += points

    def clamp_confidence(self) -> None:
        self.confidence = max(0, min(100, self.confidence))

    @property
    def fields(self) -> Dict[str, Any]:
        """All extracted fields as a dictionary."""
        return {name: getattr(self, name) for name in self.FIELD_NAMES}

    @property
    def missing_fields(self) -> List[str]:
        """Names of fields that were not extracted."""
        return [name for name, value in self.fields.items() if value is None or value == ""]

    def to_dict(self) -> Dict[str, Any]:
        data = self.fields
        data['confidence'] = self.confidence
        data['matched_rules'] = dict(self.matched_rules)
        return data
