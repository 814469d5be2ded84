"""
Extraction Module.

Turns OCR text into structured invoice fields:
    - Text, amount and date normalization
    - Ordered rule tables per field
    - Field extractor with additive confidence
"""

from .extraction_result import ExtractionResult
from .extractor import InvoiceFieldExtractor
from .normalizers import (
    AmountNormalizer,
    DateNormalizer,
    TextNormalizer,
    parse_extracted_date,
    strip_accents,
)

__all__ = [
    'ExtractionResult',
    'InvoiceFieldExtractor',
    'AmountNormalizer',
    'DateNormalizer',
    'TextNormalizer',
    'parse_extracted_date',
    'strip_accents',
]
