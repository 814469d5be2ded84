"""
OCR.space HTTP Backend.

Sends the document to the OCR.space parsing API as a multipart upload
and returns the parsed text of every page.

The API key is read from ``ocr.ocr_space.api_key`` and, when that is
empty, from the ``OCR_SPACE_API_KEY`` environment variable.
"""

import os
from typing import Any, Dict, Tuple

import requests

from config import get_config
from invoice_intake.utils.exceptions import OCREngineNotAvailableError, OCRProcessingError
from invoice_intake.utils.helpers import get_file_extension
from invoice_intake.utils.logger import get_logger

# Initialize module logger
logger = get_logger(__name__)

MIME_TYPES = {
    '.pdf': 'application/pdf',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
    '.gif': 'image/gif',
}


class OcrSpaceBackend:
    """
    OCR.space API backend.

    Example:
        >>> backend = OcrSpaceBackend(api_key="K0000")
        >>> text, pages = backend.extract_text(content, "facture.pdf")
    """

    name = "ocr_space"

    def __init__(self, api_key: str = None) -> None:
        """
        Initialize the backend.

        Args:
            api_key: OCR.space key; defaults to configuration, then the
                OCR_SPACE_API_KEY environment variable.

        Raises:
            OCREngineNotAvailableError: If no API key is available.
        """
        self.url = get_config("ocr.ocr_space.url", "https://api.ocr.space/parse/image")
        self.language = get_config("ocr.ocr_space.language", "fre")
        self.ocr_engine = get_config("ocr.ocr_space.ocr_engine", 2)
        self.timeout = get_config("ocr.ocr_space.timeout", 60)
        self.api_key = (
            api_key
            or get_config("ocr.ocr_space.api_key", "")
            or os.environ.get("OCR_SPACE_API_KEY", "")
        )

        if not self.api_key:
            raise OCREngineNotAvailableError("ocr_space (no API key configured)")

        logger.debug(f"OcrSpaceBackend initialized (url={self.url}, language={self.language})")

    def _form_fields(self, filename: str) -> Dict[str, str]:
        fields = {
            'language': self.language,
            'isOverlayRequired': 'false',
            'detectOrientation': 'true',
            'scale': 'true',
            'OCREngine': str(self.ocr_engine),
        }
        if get_file_extension(filename) == '.pdf':
            fields['filetype'] = 'PDF'
        return fields

    def extract_text(self, content: bytes, filename: str) -> Tuple[str, int]:
        """
        Send a document to OCR.space.

        Args:
            content: Document bytes.
            filename: Original or stored file name.

        Returns:
            Tuple of (text, page_count). A response without parsed
            results is a successful empty text.

        Raises:
            OCRProcessingError: On transport errors, HTTP errors or
                when the API reports a processing error.
        """
        mime_type = MIME_TYPES.get(get_file_extension(filename), 'application/octet-stream')

        logger.debug(f"Sending {filename} ({len(content)} bytes) to OCR.space")
        try:
            response = requests.post(
                self.url,
                files={'file': (filename, content, mime_type)},
                data=self._form_fields(filename),
                headers={'apikey': self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise OCRProcessingError(filename, f"OCR.space request failed: {e}")

        if not response.ok:
            raise OCRProcessingError(
                filename, f"HTTP Error {response.status_code}: {response.text[:500]}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise OCRProcessingError(filename, f"Malformed OCR.space response: {e}")

        return self._parse_response(data, filename)

    @staticmethod
    def _parse_response(data: Dict[str, Any], filename: str) -> Tuple[str, int]:
        if data.get('IsErroredOnProcessing'):
            message = data.get('ErrorMessage') or 'OCR processing failed'
            if isinstance(message, list):
                message = message[0] if message else 'OCR processing failed'
            raise OCRProcessingError(filename, str(message))

        parsed_results = data.get('ParsedResults') or []
        if not parsed_results:
            logger.warning(f"OCR.space returned no results for {filename}")
            return "", 0

        pages = [page.get('ParsedText') or '' for page in parsed_results]
        return "\n".join(pages), len(pages)
