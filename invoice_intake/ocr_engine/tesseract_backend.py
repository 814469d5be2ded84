"""
Tesseract OCR Backend.

This module provides local OCR using Tesseract (pytesseract). Images are
opened with Pillow; PDFs are rasterized page by page with pdf2image.

Requirements:
    - Tesseract OCR installed on the system, with the French language data
    - Poppler installed on the system for PDF rasterization
"""

import io
from typing import List

import pytesseract
from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image

from config import get_config
from invoice_intake.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError
from invoice_intake.utils.helpers import get_file_extension
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)


class TesseractBackend:
    """
    Tesseract OCR backend implementation.

    Attributes:
        language: Tesseract language code (e.g., "fra")
        psm: Page Segmentation Mode (1-13)
        oem: OCR Engine Mode (0-3)
        pdf_dpi: Rasterization resolution for PDF pages
        max_pages: Maximum number of PDF pages sent to Tesseract

    Example:
        >>> backend = TesseractBackend()
        >>> text, pages = backend.extract_text(content, "facture.pdf")
    """

    name = "tesseract"

    def __init__(self, check_version: bool = True) -> None:
        """
        Initialize the Tesseract backend with configuration.

        Args:
            check_version: Probe the Tesseract binary at startup.

        Raises:
            OCREngineNotAvailableError: If the Tesseract binary is missing.
        """
        self.language = get_config("ocr.tesseract.lang", "fra")
        self.psm = get_config("ocr.tesseract.psm", 3)
        self.oem = get_config("ocr.tesseract.oem", 3)
        self.extra_config = get_config("ocr.tesseract.config", "")
        self.pdf_dpi = get_config("ocr.tesseract.pdf_dpi", 300)
        self.max_pages = get_config("ocr.tesseract.max_pages", 10)

        if check_version:
            self._check_binary()

        logger.debug(
            f"TesseractBackend initialized (lang={self.language}, "
            f"psm={self.psm}, oem={self.oem})"
        )

    def _check_binary(self) -> None:
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as e:
            raise OCREngineNotAvailableError(f"Tesseract OCR (not installed or not in PATH): {e}")
        logger.info(f"Tesseract version: {version}")

    def _build_config(self) -> str:
        config_parts = [f"--psm {self.psm}", f"--oem {self.oem}"]
        if self.extra_config:
            config_parts.append(self.extra_config)
        return ' '.join(config_parts)

    def _load_images(self, content: bytes, filename: str) -> List[Image.Image]:
        """
        Turn document bytes into page images.

        Raises:
            OCRProcessingError: If the bytes are not a readable PDF or image.
        """
        try:
            if get_file_extension(filename) == ".pdf":
                return convert_from_bytes(
                    content,
                    dpi=self.pdf_dpi,
                    first_page=1,
                    last_page=self.max_pages,
                )
            image = Image.open(io.BytesIO(content))
            image.load()
            return [image]
        except (OSError, ValueError, PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as e:
            raise OCRProcessingError(filename, f"Could not read document: {e}")

    def extract_text(self, content: bytes, filename: str):
        """
        Run Tesseract on every page of a document.

        Args:
            content: Document bytes.
            filename: Name used to pick PDF or image handling.

        Returns:
            Tuple of (text, page_count); pages are joined by newlines.

        Raises:
            OCRProcessingError: If the document cannot be read or
                Tesseract fails.
        """
        images = self._load_images(content, filename)
        config = self._build_config()

        pages = []
        for index, image in enumerate(images):
            if image.mode != 'RGB':
                image = image.convert('RGB')
            logger.debug(f"Running Tesseract on page {index + 1}/{len(images)} (config: {config})")
            try:
                pages.append(pytesseract.image_to_string(image, lang=self.language, config=config))
            except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError) as e:
                raise OCRProcessingError(filename, f"Tesseract failed on page {index + 1}: {e}")

        return "\n".join(pages), len(images)
