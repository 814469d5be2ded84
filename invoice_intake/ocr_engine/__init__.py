"""
OCR Engine Module for the Invoice Intake System.

This module provides OCR with pluggable backends:
    - Tesseract (local, via pytesseract and pdf2image)
    - OCR.space (HTTP API, via requests)
"""

from .engine import OCREngine
from .ocr_result import OCRResult
from .ocr_space_backend import OcrSpaceBackend
from .tesseract_backend import TesseractBackend

__all__ = [
    'OCREngine',
    'OCRResult',
    'OcrSpaceBackend',
    'TesseractBackend',
]
