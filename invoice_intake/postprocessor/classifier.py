"""
Company Classifier Module.

Maps an invoice to the business entity it is filed under, using a
data-driven table of keyword rules. The table lives in
``classification.companies`` so a new entity can be added without
touching this module.

Rule evaluation is two-tier and ordered:
    1. The vendor name is checked against each rule's vendor keywords.
    2. If no rule matched, the full OCR text is checked against each
       rule's text keywords.

A rule is rejected when one of its exclusion keywords appears in the
string being checked. Order matters: "sofiane" contains "sofia", so the
SOFIANE_TRANSPORT rule must come first and SOFIA_TRANSPORT excludes
"sofian". No match at either tier gives UNKNOWN.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from config import get_config
from invoice_intake.enums import InvoiceCompany
from invoice_intake.extraction.normalizers import strip_accents
from invoice_intake.utils.exceptions import ConfigurationError
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


def normalize_for_matching(value: Optional[str]) -> str:
    """Lowercase, strip accents and drop everything but [a-z0-9]."""
    if not value:
        return ""
    return re.sub(r'[^a-z0-9]', '', strip_accents(value).lower())


@dataclass
class CompanyRule:
    """One row of the classification table."""
    company: InvoiceCompany
    vendor_keywords: List[str] = field(default_factory=list)
    text_keywords: List[str] = field(default_factory=list)
    exclusion_keywords: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.company = InvoiceCompany(self.company)
        self.vendor_keywords = [normalize_for_matching(k) for k in self.vendor_keywords]
        self.text_keywords = [normalize_for_matching(k) for k in self.text_keywords]
        self.exclusion_keywords = [normalize_for_matching(k) for k in self.exclusion_keywords]

    def matches(self, normalized: str, keywords: Iterable[str]) -> bool:
        if not normalized:
            return False
        if not any(keyword and keyword in normalized for keyword in keywords):
            return False
        return not any(excluded and excluded in normalized for excluded in self.exclusion_keywords)


DEFAULT_COMPANY_RULES: List[Dict[str, Any]] = [
    {
        'company': 'SOFIANE_TRANSPORT',
        'vendor_keywords': ['sofian', 'sofiane'],
        'text_keywords': ['sofiane'],
        'exclusion_keywords': [],
    },
    {
        'company': 'SOFIA_TRANSPORT',
        'vendor_keywords': ['sofia'],
        'text_keywords': ['sofia'],
        'exclusion_keywords': ['sofian'],
    },
    {
        'company': 'GARAGE_EXPERTISE',
        'vendor_keywords': ['garage', 'expertise', 'mecanique', 'automobile'],
        'text_keywords': ['garage'],
        'exclusion_keywords': [],
    },
]


class CompanyClassifier:
    """
    Classifies invoices into InvoiceCompany buckets.

    Example:
        >>> classifier = CompanyClassifier()
        >>> classifier.classify("Sofiane Transport SARL", "")
        <InvoiceCompany.SOFIANE_TRANSPORT: 'SOFIANE_TRANSPORT'>
        >>> classifier.classify("Acme Corp", "").value
        'UNKNOWN'
    """

    def __init__(self, rules: Optional[List[Dict[str, Any]]] = None):
        """
        Initialize the classifier.

        Args:
            rules: Rule table as a list of mappings. Defaults to
                ``classification.companies`` from the configuration.

        Raises:
            ConfigurationError: If a rule names an unknown company or
                has unexpected keys.
        """
        raw_rules = rules if rules is not None else get_config(
            "classification.companies", DEFAULT_COMPANY_RULES
        )
        self.rules = self._build_rules(raw_rules)
        logger.debug(f"CompanyClassifier initialized with {len(self.rules)} rules")

    @staticmethod
    def _build_rules(raw_rules: List[Dict[str, Any]]) -> List[CompanyRule]:
        built = []
        for raw in raw_rules:
            try:
                built.append(CompanyRule(**raw))
            except (TypeError, ValueError) as e:
                raise ConfigurationError("classification.companies", f"invalid rule {raw!r}: {e}")
        return built

    def classify(self, vendor: Optional[str], full_text: Optional[str]) -> InvoiceCompany:
        """
        Classify an invoice.

        Args:
            vendor: Extracted vendor name.
            full_text: Normalized OCR text.

        Returns:
            The matched company, or InvoiceCompany.UNKNOWN.
        """
        company, _ = self.classify_with_reason(vendor, full_text)
        return company

    def classify_with_reason(
        self,
        vendor: Optional[str],
        full_text: Optional[str],
    ) -> Tuple[InvoiceCompany, str]:
        """Classify and report which tier decided ('vendor', 'text' or 'none')."""
        normalized_vendor = normalize_for_matching(vendor)
        for rule in self.rules:
            if rule.matches(normalized_vendor, rule.vendor_keywords):
                return rule.company, 'vendor'

        normalized_text = normalize_for_matching(full_text)
        for rule in self.rules:
            if rule.matches(normalized_text, rule.text_keywords):
                return rule.company, 'text'

        return InvoiceCompany.UNKNOWN, 'none'
