"""
Data Normalizers Module.

This module provides normalization functions for:
    - Raw OCR text (Unicode, whitespace, O/0 and I/1 confusions)
    - French and English amount strings
    - Dates written as numbers or with French month names
"""

import re
import unicodedata
from datetime import date, datetime
from typing import List, Optional

from dateutil import parser as date_parser

from config import get_config
from invoice_intake.utils.logger import get_logger

logger = get_logger(__name__)


class TextNormalizer:
    """
    Cleans raw OCR text before extraction.

    Steps, in order:
        1. NFKC Unicode normalization
        2. Non-breaking spaces and tabs become plain spaces
        3. ``O``/``o`` immediately followed by a digit becomes ``0``
        4. ``I``/``l`` immediately preceded by a digit becomes ``1``
        5. Whitespace runs collapse to a single space
        6. Leading/trailing whitespace is trimmed

    Example:
        >>> TextNormalizer().normalize("Total\\u00a0: 1O0,5l €")
        'Total : 100,51 €'
    """

    _SPACE_LIKE = re.compile(r'[\u00a0\t]')
    _O_BEFORE_DIGIT = re.compile(r'[Oo](?=\d)')
    _I_AFTER_DIGIT = re.compile(r'(?<=\d)[Il]')
    _WHITESPACE = re.compile(r'\s+')

    def normalize(self, raw_text: Optional[str]) -> str:
        """
        Normalize raw OCR text into a single cleaned line.

        Args:
            raw_text: Text as returned by the OCR service, may be None.

        Returns:
            Normalized text, possibly empty.
        """
        if not raw_text:
            return ""

        text = unicodedata.normalize('NFKC', raw_text)
        text = self._SPACE_LIKE.sub(' ', text)
        text = self._O_BEFORE_DIGIT.sub('0', text)
        text = self._I_AFTER_DIGIT.sub('1', text)
        text = self._WHITESPACE.sub(' ', text)
        return text.strip()

    def normalize_lines(self, raw_text: Optional[str]) -> List[str]:
        """
        Normalize text line by line, dropping empty lines.

        Line-scoped extraction rules (invoice number, vendor, client)
        need the original line structure that normalize() collapses.
        """
        if not raw_text:
            return []

        lines = []
        for line in raw_text.splitlines():
            cleaned = self.normalize(line)
            if cleaned:
                lines.append(cleaned)
        return lines


class AmountNormalizer:
    """
    Parses French and English formatted amounts into floats.

    A comma followed by exactly two digits is a decimal separator,
    otherwise it is a thousands separator. When both a comma and a dot
    are present, the right-most one is the decimal separator.

    Example:
        >>> normalizer = AmountNormalizer()
        >>> normalizer.to_float("1 234,56 €")
        1234.56
        >>> normalizer.to_float("12,340.00")
        12340.0
    """

    CURRENCY_SYMBOLS = ['€', '$', '£']
    CURRENCY_CODES = ['EUR', 'USD', 'GBP']

    def to_float(self, amount_str: Optional[str]) -> Optional[float]:
        """
        Convert an amount string to float.

        Args:
            amount_str: Amount as found in the document.

        Returns:
            Float value rounded to cents, or None if unparseable.
        """
        if not amount_str:
            return None

        cleaned = self._clean_amount_string(amount_str)
        if not cleaned:
            return None

        cleaned = self._resolve_separators(cleaned)

        try:
            return round(float(cleaned), 2)
        except ValueError:
            logger.debug(f"Could not parse amount: {amount_str!r}")
            return None

    def _clean_amount_string(self, amount_str: str) -> str:
        """Strip currency markers and whitespace, keep digits and separators."""
        for symbol in self.CURRENCY_SYMBOLS:
            amount_str = amount_str.replace(symbol, '')

        for code in self.CURRENCY_CODES:
            amount_str = re.sub(rf'\b{code}\b', '', amount_str, flags=re.IGNORECASE)

        return re.sub(r'[^\d,.\-]', '', amount_str)

    def _resolve_separators(self, amount_str: str) -> str:
        """
        Rewrite the amount with '.' as decimal separator and no grouping.

        Args:
            amount_str: Digits with ',' and/or '.' separators.

        Returns:
            Amount string parseable by float().
        """
        comma_pos = amount_str.rfind(',')
        dot_pos = amount_str.rfind('.')

        if comma_pos >= 0 and dot_pos >= 0:
            if comma_pos > dot_pos:
                # 1.234,56
                return amount_str.replace('.', '').replace(',', '.')
            # 1,234.56
            return amount_str.replace(',', '')

        if comma_pos >= 0:
            # A thousands group always has 3 digits: "45,5" and "150,00" are decimal.
            after_comma = amount_str[comma_pos + 1:]
            if len(after_comma) in (1, 2) and amount_str.count(',') == 1:
                return amount_str.replace(',', '.')
            return amount_str.replace(',', '')

        if dot_pos >= 0:
            after_dot = amount_str[dot_pos + 1:]
            if amount_str.count('.') > 1 or len(after_dot) == 3:
                # 1.234 or 1.234.567
                return amount_str.replace('.', '')

        return amount_str


class DateNormalizer:
    """
    Builds ISO dates from matched day/month/year parts.

    Handles numeric months and French month names with their common
    abbreviations, and rejects years outside the configured window.

    Example:
        >>> normalizer = DateNormalizer()
        >>> normalizer.from_parts("14", "mars", "2024")
        '2024-03-14'
        >>> normalizer.from_parts("31", "02", "2024") is None
        True
    """

    FRENCH_MONTHS = {
        'janvier': 1, 'janv': 1, 'jan': 1,
        'fevrier': 2, 'fevr': 2, 'fev': 2,
        'mars': 3, 'mar': 3,
        'avril': 4, 'avr': 4,
        'mai': 5,
        'juin': 6,
        'juillet': 7, 'juil': 7,
        'aout': 8,
        'septembre': 9, 'sept': 9, 'sep': 9,
        'octobre': 10, 'oct': 10,
        'novembre': 11, 'nov': 11,
        'decembre': 12, 'dec': 12,
    }

    def __init__(self) -> None:
        self.min_year = get_config("extraction.min_year", 2000)
        self.max_year = get_config("extraction.max_year", 2100)

    def month_number(self, month: str) -> Optional[int]:
        """Numeric month for a number or a French month name."""
        if month.isdigit():
            return int(month)
        key = strip_accents(month.lower()).rstrip('.')
        return self.FRENCH_MONTHS.get(key)

    def from_parts(self, day: str, month: str, year: str) -> Optional[str]:
        """
        Assemble an ISO date string from its parts.

        Args:
            day: Day of month digits.
            month: Month digits or French month name.
            year: Two- or four-digit year; two digits mean 20YY.

        Returns:
            ``YYYY-MM-DD`` or None when the parts are not a real date
            inside the year window.
        """
        month_num = self.month_number(month)
        if month_num is None:
            return None

        year_num = int(year)
        if year_num < 100:
            year_num += 2000

        if not self.min_year <= year_num < self.max_year:
            return None

        try:
            return date(year_num, month_num, int(day)).isoformat()
        except ValueError:
            return None

    def to_date(self, value: Optional[str]) -> Optional[date]:
        """
        Parse a stored or extracted date value.

        Accepts ISO ``YYYY-MM-DD``, ``D/M/Y`` (2- or 4-digit year) and
        ``Y/M/D`` with '/', '-' or '.' separators, then falls back to a
        day-first dateutil parse for manually entered values.

        Returns:
            A date inside the year window, or None.
        """
        if not value:
            return None

        value = value.strip()

        iso = re.fullmatch(r'(\d{4})-(\d{2})-(\d{2})', value)
        if iso:
            return self._as_date(self.from_parts(iso.group(3), iso.group(2), iso.group(1)))

        # Year-first goes first: "2024/03/14" also contains "24/03/14".
        year_first = re.search(r'\b(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})\b', value)
        if year_first:
            return self._as_date(
                self.from_parts(year_first.group(3), year_first.group(2), year_first.group(1))
            )

        day_first = re.search(r'\b(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})\b', value)
        if day_first:
            return self._as_date(
                self.from_parts(day_first.group(1), day_first.group(2), day_first.group(3))
            )

        try:
            parsed = date_parser.parse(value, dayfirst=True)
        except (ValueError, OverflowError):
            return None

        if not self.min_year <= parsed.year < self.max_year:
            return None
        return parsed.date()

    @staticmethod
    def _as_date(iso_value: Optional[str]) -> Optional[date]:
        if iso_value is None:
            return None
        return datetime.strptime(iso_value, "%Y-%m-%d").date()


def strip_accents(text: str) -> str:
    """Remove combining accents: 'février' -> 'fevrier'."""
    decomposed = unicodedata.normalize('NFKD', text)
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch))


def parse_extracted_date(value: Optional[str]) -> Optional[date]:
    """Module-level shortcut for DateNormalizer().to_date()."""
    return DateNormalizer().to_date(value)
