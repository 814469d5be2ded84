"""
Main OCR Engine Module.

This module provides the OCREngine class, the single OCR collaborator
used by the worker pipeline. It hides the backend choice and turns
every backend failure into an unsuccessful OCRResult.

Usage:
    from invoice_intake.ocr_engine import OCREngine

    engine = OCREngine()
    result = engine.run_ocr(content, "facture.pdf")
    if result.success:
        print(result.text)
"""

import time
from typing import Optional

from config import get_config
from invoice_intake.utils.exceptions import OCRError
from invoice_intake.utils.logger import get_logger

from .ocr_result import OCRResult
from .ocr_space_backend import OcrSpaceBackend
from .tesseract_backend import TesseractBackend

# Initialize module logger
logger = get_logger(__name__)


class OCREngine:
    """
    Unified OCR interface over the configured backend.

    Supported Backends:
        - tesseract: local Tesseract OCR (default)
        - ocr_space: OCR.space HTTP API

    Attributes:
        backend_name: Name of the active OCR backend
        backend: The active OCR backend instance

    Example:
        >>> engine = OCREngine(backend="ocr_space")
        >>> result = engine.run_ocr(content, "facture.pdf")
        >>> result.success, len(result.text)
        (True, 1834)
    """

    SUPPORTED_BACKENDS = ['tesseract', 'ocr_space']

    def __init__(self, backend: Optional[str] = None, backend_instance=None) -> None:
        """
        Initialize the OCR engine.

        Args:
            backend: Backend name; defaults to ``ocr.engine``.
            backend_instance: Ready-made backend object exposing
                ``extract_text(content, filename)``; overrides ``backend``.

        Raises:
            OCREngineNotAvailableError: If the backend cannot start.
        """
        if backend_instance is not None:
            self.backend = backend_instance
            self.backend_name = getattr(backend_instance, 'name', type(backend_instance).__name__)
        else:
            self.backend_name = backend or get_config("ocr.engine", "tesseract")
            if self.backend_name == "pytesseract":
                self.backend_name = "tesseract"
            self.backend = self._initialize_backend()

        logger.info(f"OCR Engine initialized with backend: {self.backend_name}")

    def _initialize_backend(self):
        if self.backend_name == "tesseract":
            return TesseractBackend()

        if self.backend_name == "ocr_space":
            return OcrSpaceBackend()

        logger.warning(f"Unknown backend '{self.backend_name}', falling back to tesseract")
        self.backend_name = "tesseract"
        return TesseractBackend()

    def run_ocr(self, content: bytes, filename: str) -> OCRResult:
        """
        Run OCR on a document.

        Never raises for backend failures: they come back as
        ``OCRResult(success=False, error=...)``.

        Args:
            content: Document bytes.
            filename: File name, used for PDF/image detection.

        Returns:
            OCRResult with the raw text.
        """
        start_time = time.time()

        try:
            text, page_count = self.backend.extract_text(content, filename)
        except OCRError as e:
            elapsed = time.time() - start_time
            logger.warning(f"OCR failed for {filename} with {self.backend_name}: {e}")
            return OCRResult.failure(str(e), engine=self.backend_name, processing_time=elapsed)

        elapsed = time.time() - start_time
        result = OCRResult(
            success=True,
            text=text or "",
            page_count=page_count,
            engine=self.backend_name,
            processing_time=elapsed,
        )
        logger.info(
            f"OCR completed for {filename}: {len(result.text)} chars, "
            f"{page_count} page(s) ({elapsed:.2f}s)"
        )
        return result
