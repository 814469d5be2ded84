"""
Invoice Field Extractor Module.

This module turns OCR text into a best-guess structured invoice record
by evaluating the ordered rule tables of ``rules.py``. Every field that
is found adds its rule's points to an additive confidence score, which
is clamped to [0, 100] at the end.

Field order:
    iban, email, phone, siret, address, invoice_number, vendor,
    client_name, amount, vat_amount, date

The amount must be known before the VAT amount, and the vendor before
the client name, so the order is not cosmetic.
"""

from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from config import get_config
from invoice_intake.utils.logger import get_logger

from . import rules
from .extraction_result import ExtractionResult
from .normalizers import AmountNormalizer, DateNormalizer, TextNormalizer
from .rules import ExtractionRule

# Initialize module logger
logger = get_logger(__name__)


class InvoiceFieldExtractor:
    """
    Heuristic, rule-based invoice field extractor.

    The extractor is pure: it performs no I/O and keeps no state between
    calls, so one instance can be shared by every worker thread.

    Example:
        >>> extractor = InvoiceFieldExtractor()
        >>> result = extractor.extract(
        ...     "SOFIANE TRANSPORT SARL\\nFacture N° FA2024001\\n"
        ...     "TOTAL TTC 150,00 €\\nDate: 14 mars 2024"
        ... )
        >>> result.vendor, result.amount, result.date
        ('SOFIANE TRANSPORT SARL', 150.0, '2024-03-14')
    """

    def __init__(
        self,
        line_scan_limit: Optional[int] = None,
        max_amount: Optional[float] = None,
    ):
        """
        Initialize the extractor.

        Args:
            line_scan_limit: Number of leading non-empty lines scanned by
                line-scoped rules. Defaults to ``extraction.line_scan_limit``.
            max_amount: Exclusive upper bound for amount candidates.
                Defaults to ``extraction.max_amount``.
        """
        self.line_scan_limit = line_scan_limit or get_config("extraction.line_scan_limit", 20)
        self.max_amount = max_amount or get_config("extraction.max_amount", 1_000_000)

        self.text_normalizer = TextNormalizer()
        self.amount_normalizer = AmountNormalizer()
        self.date_normalizer = DateNormalizer()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def extract(self, raw_text: Optional[str]) -> ExtractionResult:
        """
        Extract invoice fields from raw OCR text.

        Args:
            raw_text: Text as returned by the OCR collaborator. Line
                breaks are kept for line-scoped rules.

        Returns:
            ExtractionResult with the fields found and the confidence.
        """
        text = self.text_normalizer.normalize(raw_text)
        lines = self.text_normalizer.normalize_lines(raw_text)[:self.line_scan_limit]
        lines = [self._strip_markup(line) for line in lines]
        lines = [line for line in lines if line]

        result = ExtractionResult()

        for field_rules in (
            rules.IBAN_RULES,
            rules.EMAIL_RULES,
            rules.PHONE_RULES,
            rules.SIRET_RULES,
            rules.ADDRESS_RULES,
            rules.INVOICE_NUMBER_RULES,
        ):
            self._apply_first_match(result, field_rules, text, lines)

        self._extract_vendor(result, lines)
        self._extract_client(result, lines)
        self._extract_amount(result, text)
        self._extract_vat(result, text)
        self._extract_date(result, text)

        result.clamp_confidence()
        logger.debug(
            f"Extracted {len(result.FIELD_NAMES) - len(result.missing_fields)} fields, "
            f"confidence {result.confidence}, rules {result.matched_rules}"
        )
        return result

    def extract_missing_fields(self, raw_text: Optional[str], existing: Dict[str, Any]) -> Dict[str, Any]:
        """
        Extract only the fields that are empty in an existing record.

        A vendor stored as "Inconnu" counts as empty.

        Args:
            raw_text: Stored OCR text of the invoice.
            existing: Current field values keyed by ExtractionResult names.

        Returns:
            Mapping of newly found field values; empty when nothing new.
        """
        if not raw_text:
            return {}

        result = self.extract(raw_text)
        found = {}
        for name, value in result.fields.items():
            if name not in existing:
                continue
            current = existing[name]
            is_empty = current is None or current == "" or (
                name == 'vendor' and current == rules.VENDOR_UNKNOWN
            )
            if not is_empty or value is None:
                continue
            if name == 'vendor' and value == rules.VENDOR_UNKNOWN:
                continue
            found[name] = value
        return found

    # ------------------------------------------------------------------
    # Generic rule evaluation
    # ------------------------------------------------------------------

    def _candidates(
        self,
        rule: ExtractionRule,
        text: str,
        lines: Sequence[str],
    ) -> Iterator[Tuple[str, Any]]:
        """Yield (value, match) pairs for a rule in document order."""
        haystacks = lines if rule.scope == rules.LINES else [text]
        for haystack in haystacks:
            for match in rule.pattern.finditer(haystack):
                value = match.group(rule.group)
                if value is not None:
                    yield value.strip(), match

    def _apply_first_match(
        self,
        result: ExtractionResult,
        field_rules: List[ExtractionRule],
        text: str,
        lines: Sequence[str],
    ) -> None:
        """
        Fill one field from the first rule that matches.

        Line-scoped rules are evaluated line by line: for each line every
        rule is tried in order before moving to the next line.
        """
        if field_rules and field_rules[0].scope == rules.LINES:
            for line in lines:
                for rule in field_rules:
                    for value, _ in self._candidates(rule, line, [line]):
                        if value:
                            self._set(result, rule, value)
                            return
            return

        for rule in field_rules:
            for value, _ in self._candidates(rule, text, lines):
                if value:
                    self._set(result, rule, self._clean_value(rule.field, value))
                    return

    @staticmethod
    def _set(result: ExtractionResult, rule: ExtractionRule, value: Any, points: Optional[int] = None) -> None:
        setattr(result, rule.field, value)
        result.add_points(rule.points if points is None else points)
        result.matched_rules[rule.field] = rule.name

    @staticmethod
    def _clean_value(field_name: str, value: str) -> str:
        if field_name == 'iban':
            return value.upper()
        return value

    @staticmethod
    def _strip_markup(line: str) -> str:
        """Drop markdown decorations ('# ', '**', table pipes) around a line."""
        return line.strip('#*|>_ ').strip()

    # ------------------------------------------------------------------
    # Field-specific rules
    # ------------------------------------------------------------------

    @staticmethod
    def _is_label_line(line: str) -> bool:
        return bool(rules.LABEL_LINE.match(line) or rules.NUMERIC_LINE.match(line))

    def _extract_vendor(self, result: ExtractionResult, lines: Sequence[str]) -> None:
        candidate_lines = [line for line in lines if not self._is_label_line(line)]

        for rule in rules.VENDOR_RULES:
            for line in candidate_lines:
                match = rule.pattern.search(line)
                if match:
                    self._set(result, rule, match.group(rule.group).strip())
                    return

        for line in candidate_lines:
            if 3 <= len(line) <= 50 and rules.CAPITALIZED_LINE.match(line):
                result.vendor = line
                result.add_points(rules.VENDOR_FALLBACK_POINTS)
                result.matched_rules['vendor'] = 'vendor_first_line'
                return

        result.vendor = rules.VENDOR_UNKNOWN
        result.add_points(rules.VENDOR_UNKNOWN_POINTS)
        result.matched_rules['vendor'] = 'vendor_unknown'

    def _extract_client(self, result: ExtractionResult, lines: Sequence[str]) -> None:
        for rule in rules.CLIENT_RULES:
            for index, line in enumerate(lines):
                match = rule.pattern.match(line)
                if not match:
                    continue

                name = match.group(rule.group).strip(' :-')
                if not name and index + 1 < len(lines):
                    name = lines[index + 1]

                if not name or not any(ch.isalpha() for ch in name):
                    continue
                if result.vendor and name.casefold() == result.vendor.casefold():
                    logger.debug(f"Client candidate {name!r} equals vendor, skipped")
                    continue

                self._set(result, rule, name)
                return

    def _parse_amount(self, value: str) -> Optional[float]:
        amount = self.amount_normalizer.to_float(value)
        if amount is None or not 0 < amount < self.max_amount:
            return None
        return amount

    def _extract_amount(self, result: ExtractionResult, text: str) -> None:
        """
        Labeled totals first, keeping the largest; then any amount
        followed by a euro sign, again keeping the largest.
        """
        best: Optional[Tuple[float, ExtractionRule]] = None
        for rule in rules.AMOUNT_RULES:
            for value, _ in self._candidates(rule, text, ()):
                amount = self._parse_amount(value)
                if amount is not None:
                    if best is None or amount > best[0]:
                        best = (amount, rule)
                    break

        if best is None:
            rule = rules.AMOUNT_FALLBACK_RULE
            for value, _ in self._candidates(rule, text, ()):
                amount = self._parse_amount(value)
                if amount is not None and (best is None or amount > best[0]):
                    best = (amount, rule)

        if best is not None:
            self._set(result, best[1], best[0])

    def _extract_vat(self, result: ExtractionResult, text: str) -> None:
        if result.amount is None:
            return

        for rule in rules.VAT_RULES:
            for value, _ in self._candidates(rule, text, ()):
                vat = self.amount_normalizer.to_float(value)
                if vat is not None and 0 <= vat < result.amount:
                    self._set(result, rule, vat)
                    return

    def _extract_date(self, result: ExtractionResult, text: str) -> None:
        for rule in rules.DATE_RULES:
            for _, match in self._candidates(rule, text, ()):
                first, second, third = match.group(1), match.group(2), match.group(3)
                if rule.order == 'ymd':
                    iso = self.date_normalizer.from_parts(third, second, first)
                else:
                    iso = self.date_normalizer.from_parts(first, second, third)
                if iso:
                    self._set(result, rule, iso)
                    return
